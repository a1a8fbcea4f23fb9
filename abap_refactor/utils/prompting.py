"""System-message assembly shared by all phases.

Only the first system message of a conversation is kept, so the base prompt
carries the rules every phase relies on and each user message restates its
own task and output format.
"""

from abap_refactor.config import get_config

BASE_SYSTEM_PROMPT = """\
You are an SAP technical expert converting {source_label} programs to {target_label}.

Throughout this conversation you will specify, convert, review and correct one program. \
Each request states its task and the exact output format expected; follow it precisely.

General conversion rules:
- Preserve the business behaviour of the original program exactly.
- Replace obsolete statements, tables and function modules with their {target_label} equivalents \
(e.g. simplified data model tables, released APIs, modern Open SQL syntax).
- Prefer inline declarations, string templates and constructor expressions where they keep \
the code readable.
- Never invent business logic the original program does not contain.
- Whenever you return code, return the complete program in one ```{fence_language} fenced block.\
"""


def conversion_labels() -> dict:
    """Return the source/target labels and fence tag from config."""
    conversion = get_config().get("conversion", {})
    return {
        "source_label": conversion.get("source_label", "SAP R/3 ABAP"),
        "target_label": conversion.get("target_label", "SAP S/4HANA ABAP 7.5+"),
        "fence_language": conversion.get("fence_language", "abap"),
    }


def build_system_message(role_prompt: str, requirements: str = "", knowledge: str = "") -> str:
    """Base prompt plus ``role_prompt``, filled with the labels, then knowledge and requirements."""
    content = f"{BASE_SYSTEM_PROMPT}\n\n{role_prompt}".format(**conversion_labels())
    if knowledge:
        content += (
            "\n\n## Reference Knowledge\n"
            "Technical knowledge you should refer to when it applies:\n\n"
            f"{knowledge}"
        )
    if requirements:
        content += (
            "\n\n## Additional Requirements\n"
            "The user asked for the following on top of the standard conversion. "
            "They take precedence over general conventions:\n\n"
            f"{requirements}"
        )
    return content


def build_user_message(template: str, **fields) -> str:
    """Fill a phase's user-message template with its inputs and the conversion labels."""
    return template.format(**conversion_labels(), **fields)
