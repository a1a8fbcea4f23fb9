"""LangGraph StateGraph definition for the specify → convert → review/correct pipeline.

One graph run converts one unit. Nodes never raise: a failed phase or an
unexpected error moves the unit to ``failed`` and is recorded in its
history, and ``run_conversion`` turns the final state into an
OrchestratorResult.
"""

import asyncio
import functools
import logging

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from abap_refactor.agents.converter import convert_code, correct_code
from abap_refactor.agents.reviewer import review
from abap_refactor.agents.specifier import specify
from abap_refactor.config import get_config
from abap_refactor.history import DEFAULT_MAX_MESSAGES, History
from abap_refactor.results import OrchestratorResult, PhaseFailure
from abap_refactor.state import ConversionUnit, PhaseRecord
from abap_refactor.utils.validator import validate_source

logger = logging.getLogger(__name__)

MAX_REVIEW_ITERATIONS = 3

_TERMINAL = {"completed", "completed_with_warning", "failed"}
_PHASE_BY_STATUS = {
    "specifying": "specification",
    "converting": "conversion",
    "reviewing": "review",
    "correcting": "correction",
}


def _record(state: ConversionUnit, phase: str, content: str = "", error: str | None = None,
            **extra) -> list[PhaseRecord]:
    """Return the audit history with one more record appended."""
    entry: PhaseRecord = {
        "phase": phase,
        "iteration": state["iteration"],
        "content": content,
        "error": error,
        **extra,
    }
    return state["history"] + [entry]


def _fail(state: ConversionUnit, phase: str, message: str) -> dict:
    logger.error("Unit failed in %s phase: %s", phase, message)
    return {
        "status": "failed",
        "error": message,
        "history": _record(state, phase, error=message),
    }


def fail_unit(state: ConversionUnit, phase: str, message: str) -> ConversionUnit:
    """Return ``state`` moved to failed, with the error recorded."""
    return {**state, **_fail(state, phase, message)}


def _phase_failure(state: ConversionUnit, phase: str, failure: PhaseFailure) -> dict:
    return _fail(state, phase, f"{phase.replace('_', ' ').capitalize()} phase failed: {failure.reason}")


def _guarded(phase: str):
    """Convert any exception raised by a node into a failed-unit update."""

    def decorate(node):
        @functools.wraps(node)
        async def wrapper(state: ConversionUnit, config: RunnableConfig) -> dict:
            try:
                return await node(state, config)
            except Exception as exc:
                logger.exception("Unexpected error in %s phase", phase)
                return _fail(state, phase, f"Unexpected error in {phase} phase: {exc}")

        return wrapper

    return decorate


def _transport(config: RunnableConfig):
    return config["configurable"]["transport"]


def _exhausted_warning(state: ConversionUnit) -> str:
    return (
        f"Maximum review iterations ({state['max_iterations']}) reached; "
        "the converted code may still need manual correction."
    )


# --- Nodes ---


@_guarded("specification")
async def specify_node(state: ConversionUnit, config: RunnableConfig) -> dict:
    result = await specify(
        _transport(config),
        state["source_code"],
        state["requirements"],
        state["messages"],
        knowledge=state["knowledge"],
    )
    if isinstance(result, PhaseFailure):
        return _phase_failure(state, "specification", result)

    return {
        "specification": result.value,
        "messages": result.history,
        "status": "converting",
        "history": _record(state, "specification", result.value),
    }


@_guarded("conversion")
async def convert_node(state: ConversionUnit, config: RunnableConfig) -> dict:
    result = await convert_code(
        _transport(config),
        state["source_code"],
        state["specification"],
        state["requirements"],
        state["messages"],
        knowledge=state["knowledge"],
    )
    if isinstance(result, PhaseFailure):
        return _phase_failure(state, "conversion", result)

    return {
        "current_code": result.value,
        "messages": result.history,
        "status": "reviewing",
        "history": _record(state, "conversion", result.value),
    }


async def _review_current(state: ConversionUnit, config: RunnableConfig):
    return await review(
        _transport(config),
        state["current_code"],
        state["specification"],
        state["source_code"],
        state["requirements"],
        state["messages"],
        knowledge=state["knowledge"],
    )


@_guarded("review")
async def review_node(state: ConversionUnit, config: RunnableConfig) -> dict:
    result = await _review_current(state, config)
    if isinstance(result, PhaseFailure):
        return _phase_failure(state, "review", result)

    outcome = result.value
    logger.info(
        "Review after %d correction(s): needs_correction=%s",
        state["iteration"], outcome.needs_correction,
    )
    updates = {
        "review_report": outcome.report,
        "needs_correction": outcome.needs_correction,
        "messages": result.history,
        "history": _record(
            state, "review", outcome.report, needs_correction=outcome.needs_correction
        ),
    }
    if not outcome.needs_correction:
        updates["status"] = "completed"
    elif state["iteration"] >= state["max_iterations"]:
        # Only reachable with max_iterations == 0: no correction allowed at all.
        updates["status"] = "completed_with_warning"
        updates["warning"] = _exhausted_warning(state)
    else:
        updates["status"] = "correcting"
    return updates


@_guarded("correction")
async def correct_node(state: ConversionUnit, config: RunnableConfig) -> dict:
    result = await correct_code(
        _transport(config),
        state["current_code"],
        state["source_code"],
        state["specification"],
        state["review_report"],
        state["requirements"],
        state["messages"],
        knowledge=state["knowledge"],
    )
    if isinstance(result, PhaseFailure):
        return _phase_failure(state, "correction", result)

    iteration = state["iteration"] + 1
    return {
        "current_code": result.value,
        "iteration": iteration,
        "messages": result.history,
        "status": "reviewing",
        "history": _record({**state, "iteration": iteration}, "correction", result.value),
    }


@_guarded("final_review")
async def final_review_node(state: ConversionUnit, config: RunnableConfig) -> dict:
    """Closing review once corrections are exhausted; the verdict no longer changes the outcome."""
    result = await _review_current(state, config)
    if isinstance(result, PhaseFailure):
        return _phase_failure(state, "final_review", result)

    outcome = result.value
    warning = _exhausted_warning(state)
    logger.warning(warning)
    return {
        "review_report": outcome.report,
        "needs_correction": outcome.needs_correction,
        "messages": result.history,
        "status": "completed_with_warning",
        "warning": warning,
        "history": _record(
            state, "final_review", outcome.report, needs_correction=outcome.needs_correction
        ),
    }


# --- Routing ---


def _continue_unless_failed(state: ConversionUnit) -> str:
    return "end" if state["status"] == "failed" else "continue"


def _route_after_review(state: ConversionUnit) -> str:
    """Loop into correction while the reviewer asks for it and passes remain."""
    return "correct" if state["status"] == "correcting" else "end"


def _route_after_correction(state: ConversionUnit) -> str:
    if state["status"] == "failed":
        return "end"
    if state["iteration"] >= state["max_iterations"]:
        return "final_review"
    return "review"


# --- Build the graph ---

workflow = StateGraph(ConversionUnit)

workflow.add_node("specify", specify_node)
workflow.add_node("convert", convert_node)
workflow.add_node("review", review_node)
workflow.add_node("correct", correct_node)
workflow.add_node("final_review", final_review_node)

workflow.set_entry_point("specify")

workflow.add_conditional_edges("specify", _continue_unless_failed, {"continue": "convert", "end": END})
workflow.add_conditional_edges("convert", _continue_unless_failed, {"continue": "review", "end": END})
workflow.add_conditional_edges("review", _route_after_review, {"correct": "correct", "end": END})
workflow.add_conditional_edges(
    "correct",
    _route_after_correction,
    {"review": "review", "final_review": "final_review", "end": END},
)
workflow.add_edge("final_review", END)

graph = workflow.compile()


# --- Entry point ---


def initial_state(
    source_code: str,
    requirements: str = "",
    *,
    knowledge: str = "",
    max_iterations: int = MAX_REVIEW_ITERATIONS,
    messages: History | None = None,
) -> ConversionUnit:
    if messages is None:
        limit = get_config().get("history_max_messages", DEFAULT_MAX_MESSAGES)
        messages = History(max_length=limit)
    return {
        "source_code": source_code,
        "requirements": (requirements or "").strip(),
        "knowledge": knowledge,
        "specification": "",
        "current_code": "",
        "review_report": "",
        "needs_correction": False,
        "iteration": 0,
        "max_iterations": max_iterations,
        "messages": messages,
        "history": [],
        "status": "specifying",
        "warning": "",
        "error": "",
    }


def to_result(state: ConversionUnit) -> OrchestratorResult:
    """Map a terminal unit state to the caller-facing result."""
    status = state["status"]
    if status not in _TERMINAL:
        state = fail_unit(
            state,
            _PHASE_BY_STATUS.get(status, status),
            f"Conversion stopped in non-terminal state '{status}'.",
        )
        status = "failed"

    if status == "failed":
        return OrchestratorResult(
            status="failed",
            error=state["error"],
            history=state["history"],
            messages=state["messages"],
        )
    return OrchestratorResult(
        status=status,
        final_code=state["current_code"],
        final_review=state["review_report"],
        specification=state["specification"],
        warning=state["warning"] or None,
        history=state["history"],
        messages=state["messages"],
    )


async def run_conversion(
    transport,
    source_code: str,
    requirements: str = "",
    *,
    knowledge: str = "",
    max_iterations: int | None = None,
    messages: History | None = None,
) -> OrchestratorResult:
    """Convert one unit end to end. Never raises; failures come back as a failed result.

    Cancelling the task running this coroutine cancels the in-flight request
    and resolves the unit to ``failed``.
    """
    if max_iterations is None:
        max_iterations = get_config().get("max_review_iterations", MAX_REVIEW_ITERATIONS)
    state = initial_state(
        source_code,
        requirements,
        knowledge=knowledge,
        max_iterations=max_iterations,
        messages=messages,
    )

    try:
        validate_source(source_code)
    except ValueError as exc:
        return to_result(fail_unit(state, "input", str(exc)))

    run_config = {
        "configurable": {"transport": transport},
        "recursion_limit": 2 * max_iterations + 10,
    }
    last = state
    try:
        async for snapshot in graph.astream(state, config=run_config, stream_mode="values"):
            last = snapshot
    except asyncio.CancelledError:
        phase = _PHASE_BY_STATUS.get(last["status"], last["status"])
        last = fail_unit(last, phase, "Conversion cancelled.")
    except Exception as exc:
        logger.exception("Conversion graph aborted")
        phase = _PHASE_BY_STATUS.get(last["status"], last["status"])
        last = fail_unit(last, phase, f"Conversion aborted: {exc}")

    return to_result(last)
