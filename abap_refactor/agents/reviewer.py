"""Reviewer Agent — checks the candidate code against the specification and the original.

Required closing line of every review:

    Needs Correction: YES
    Needs Correction: NO

A review without that line is read as NO. This default is lenient on
purpose and is logged; it can let a broken candidate through when the model
ignores the format.
"""

import logging

from abap_refactor.history import History
from abap_refactor.results import PhaseFailure, PhaseResult, PhaseSuccess, ReviewOutcome
from abap_refactor.utils.parsing import needs_correction
from abap_refactor.utils.prompting import build_system_message, build_user_message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
Current role: reviewer. Be strict: judge the {target_label} code only by whether it is \
correct, complete and faithful to the original program and the specification.\
"""

USER_PROMPT = """\
## Task: Code Review
Review the {target_label} code below. Check:

- Functional equivalence with the original {source_label} program
- Coverage of every point in the technical specification
- Syntax errors and statements that are obsolete or not permitted in {target_label}
- Data model changes (replaced tables, fields, function modules) handled correctly
- Compliance with the additional requirements, if any

Write the review in Markdown: a short summary, then each issue with its location, severity \
and the fix required. End the review with exactly one line, either

Needs Correction: YES

when any issue must be fixed before the code can be used, or

Needs Correction: NO

when the code is ready.

## {target_label} Code Under Review
```{fence_language}
{candidate_code}
```

## Technical Specification
{specification}

## Original {source_label} Source
```{fence_language}
{source_code}
```\
"""


async def review(
    transport,
    candidate_code: str,
    specification: str,
    source_code: str,
    requirements: str,
    history: History,
    *,
    knowledge: str = "",
) -> PhaseResult:
    """Review phase: returns a ReviewOutcome with the raw report and the parsed verdict."""
    system_message = build_system_message(SYSTEM_PROMPT, requirements, knowledge)
    user_message = build_user_message(
        USER_PROMPT,
        candidate_code=candidate_code,
        specification=specification,
        source_code=source_code,
    )

    reply = await transport.call(system_message, user_message, history)
    if isinstance(reply, PhaseFailure):
        logger.error("Review phase failed: %s", reply.reason)
        return reply

    report = reply.message.content
    outcome = ReviewOutcome(report=report, needs_correction=needs_correction(report))
    return PhaseSuccess(value=outcome, history=reply.history)
