"""Specifier — reads the legacy source and writes a technical specification for the target system.

The reply is used verbatim as the specification document; no extraction.
"""

import logging

from abap_refactor.history import History
from abap_refactor.results import PhaseFailure, PhaseResult, PhaseSuccess
from abap_refactor.utils.prompting import build_system_message, build_user_message

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
Current role: analyst. Read the legacy program and describe what its {target_label} version \
must do, before any code is written.\
"""

USER_PROMPT = """\
## Task: Technical Specification
Analyse the {source_label} program below and write a technical specification for its \
{target_label} version, in Markdown, with these sections:

1. Purpose and business functionality
2. Inputs (selection screen, parameters) and outputs
3. Data sources: tables, views, function modules and BAPIs, each with its {target_label} replacement
4. Processing logic, step by step
5. Obsolete constructs found and how each must be modernised
6. Risks and open points for the conversion

Respond with the specification only.

## {source_label} Source
```{fence_language}
{source_code}
```\
"""


async def specify(
    transport,
    source_code: str,
    requirements: str,
    history: History,
    *,
    knowledge: str = "",
) -> PhaseResult:
    """Specification phase: returns the raw reply text as the specification."""
    system_message = build_system_message(SYSTEM_PROMPT, requirements, knowledge)
    user_message = build_user_message(USER_PROMPT, source_code=source_code)

    reply = await transport.call(system_message, user_message, history)
    if isinstance(reply, PhaseFailure):
        logger.error("Specification phase failed: %s", reply.reason)
        return reply

    return PhaseSuccess(value=reply.message.content, history=reply.history)
