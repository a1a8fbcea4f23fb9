"""Runner — converts many units concurrently over one shared transport.

Each unit owns its conversation history; the only shared data is the
read-only knowledge excerpt. A failing or cancelled unit resolves to a
failed result and never aborts its siblings.
"""

import asyncio
import logging
from typing import Mapping

from abap_refactor.config import get_config
from abap_refactor.graph import fail_unit, initial_state, run_conversion, to_result
from abap_refactor.results import OrchestratorResult
from abap_refactor.utils.knowledge import load_knowledge

logger = logging.getLogger(__name__)


class ConversionRunner:
    """Run conversion units with a concurrency cap and per-unit cancellation."""

    def __init__(
        self,
        transport,
        *,
        knowledge: str | None = None,
        max_iterations: int | None = None,
        max_concurrency: int | None = None,
    ):
        cfg = get_config()
        self.transport = transport
        self.knowledge = load_knowledge() if knowledge is None else knowledge
        self.max_iterations = max_iterations
        self.max_concurrency = max_concurrency or cfg.get("max_concurrent_units", 4)
        self._semaphore = asyncio.Semaphore(self.max_concurrency)
        self._tasks: dict[str, asyncio.Task] = {}

    async def convert(self, name: str, source_code: str, requirements: str = "") -> OrchestratorResult:
        """Convert a single unit, waiting for a free slot first."""
        try:
            async with self._semaphore:
                logger.info("Converting %s", name)
                result = await run_conversion(
                    self.transport,
                    source_code,
                    requirements,
                    knowledge=self.knowledge,
                    max_iterations=self.max_iterations,
                )
        except asyncio.CancelledError:
            # Cancelled while still waiting for a slot.
            state = initial_state(source_code, requirements)
            result = to_result(fail_unit(state, "queued", "Conversion cancelled."))

        logger.info("Finished %s: %s", name, result.status)
        return result

    async def convert_many(
        self, sources: Mapping[str, str], requirements: str = ""
    ) -> dict[str, OrchestratorResult]:
        """Convert every ``name -> source`` unit concurrently; results keyed by name."""
        duplicates = [name for name in sources if name in self._tasks]
        if duplicates:
            raise ValueError(f"Unit(s) already running: {', '.join(duplicates)}")
        for name, source_code in sources.items():
            self._tasks[name] = asyncio.create_task(
                self.convert(name, source_code, requirements), name=name
            )
        names = list(sources)
        try:
            results = await asyncio.gather(*(self._tasks[n] for n in names))
        finally:
            for name in names:
                self._tasks.pop(name, None)
        return dict(zip(names, results))

    def running(self) -> list[str]:
        return [name for name, task in self._tasks.items() if not task.done()]

    def cancel(self, name: str) -> bool:
        """Abort one running unit. Returns False if no such unit is in flight."""
        task = self._tasks.get(name)
        if task is None or task.done():
            return False
        logger.warning("Cancelling %s", name)
        return task.cancel()
