"""Shared parsing utilities for model replies: fenced code and review verdicts."""

import logging
import re
from functools import lru_cache

logger = logging.getLogger(__name__)

_VERDICT_RE = re.compile(
    r"needs\s+correction\s*\**\s*:\s*\**\s*(yes|no)\b",
    re.IGNORECASE,
)


@lru_cache(maxsize=8)
def _fence_re(language: str) -> re.Pattern:
    # The closing fence must sit on its own line; ABAP string templates use backticks.
    return re.compile(
        r"```" + re.escape(language) + r"[^\S\n]*\n(?:(.*?)\n)??```[^\S\n]*$",
        re.DOTALL | re.IGNORECASE | re.MULTILINE,
    )


def extract_code_block(text: str, language: str = "abap") -> str:
    """Return the inner text of the first fenced block tagged with ``language``.

    The content between the opening fence line and the closing fence is
    returned unchanged. Replies without such a block are returned whole,
    since models sometimes omit the fence.
    """
    match = _fence_re(language).search(text)
    if match is None:
        logger.debug("No ```%s fence in reply; using the full reply as code.", language)
        return text
    return match.group(1) or ""


def parse_verdict(report: str) -> bool | None:
    """Return the ``Needs Correction: YES|NO`` verdict, or None if absent.

    The last verdict line wins when a report contains several.
    """
    matches = _VERDICT_RE.findall(report)
    if not matches:
        return None
    return matches[-1].lower() == "yes"


def needs_correction(report: str) -> bool:
    """Verdict with the lenient default: a missing verdict line means no correction."""
    verdict = parse_verdict(report)
    if verdict is None:
        logger.warning(
            "Review report has no 'Needs Correction: YES|NO' line; treating as NO."
        )
        return False
    return verdict
