"""Converter — produces the target-system code, and corrects it after a failed review.

Both steps return the content of the first fenced block tagged with the
source language, or the whole reply when the model left the code unfenced.
"""

import logging

from abap_refactor.history import History
from abap_refactor.results import PhaseFailure, PhaseResult, PhaseSuccess
from abap_refactor.utils.parsing import extract_code_block
from abap_refactor.utils.prompting import (
    build_system_message,
    build_user_message,
    conversion_labels,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
Current role: developer. Write {target_label} code that implements the agreed specification \
and keeps the behaviour of the original program.\
"""

CONVERT_PROMPT = """\
## Task: Code Conversion
Convert the {source_label} program below to {target_label}, following the technical \
specification. Return the complete converted program in a single ```{fence_language} fenced \
block. Outside the block, list briefly any assumption you had to make.

## Technical Specification
{specification}

## {source_label} Source
```{fence_language}
{source_code}
```\
"""

CORRECT_PROMPT = """\
## Task: Code Correction
The review below found problems in the current {target_label} code. Fix every issue it \
reports, keep everything that was correct, and stay faithful to the original program and the \
specification. Return the complete corrected program in a single ```{fence_language} fenced block.

## Review Report
{review_report}

## Current {target_label} Code
```{fence_language}
{current_code}
```

## Technical Specification
{specification}

## Original {source_label} Source
```{fence_language}
{source_code}
```\
"""


async def _code_phase(transport, phase: str, user_message: str, requirements, history, knowledge):
    system_message = build_system_message(SYSTEM_PROMPT, requirements, knowledge)
    reply = await transport.call(system_message, user_message, history)
    if isinstance(reply, PhaseFailure):
        logger.error("%s phase failed: %s", phase, reply.reason)
        return reply

    code = extract_code_block(reply.message.content, conversion_labels()["fence_language"])
    return PhaseSuccess(value=code, history=reply.history)


async def convert_code(
    transport,
    source_code: str,
    specification: str,
    requirements: str,
    history: History,
    *,
    knowledge: str = "",
) -> PhaseResult:
    """Conversion phase: returns the converted code."""
    user_message = build_user_message(
        CONVERT_PROMPT, specification=specification, source_code=source_code
    )
    return await _code_phase(transport, "Conversion", user_message, requirements, history, knowledge)


async def correct_code(
    transport,
    current_code: str,
    source_code: str,
    specification: str,
    review_report: str,
    requirements: str,
    history: History,
    *,
    knowledge: str = "",
) -> PhaseResult:
    """Correction step: returns the corrected code addressing ``review_report``."""
    user_message = build_user_message(
        CORRECT_PROMPT,
        review_report=review_report,
        current_code=current_code,
        specification=specification,
        source_code=source_code,
    )
    return await _code_phase(transport, "Correction", user_message, requirements, history, knowledge)
