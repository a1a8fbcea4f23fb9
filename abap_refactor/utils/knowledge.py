"""Knowledge excerpt for injection into every phase's system message.

The excerpt is a plain-text file (``knowledge_path`` in config.yaml) read
once at process start and shared read-only by all conversion units.
"""

import logging
from pathlib import Path

from abap_refactor.config import get_config, resolve_path

logger = logging.getLogger(__name__)


def load_knowledge(path: str | Path | None = None) -> str:
    """Return the knowledge excerpt text.

    Returns an empty string if no path is configured or the file cannot be
    read; the conversion proceeds without reference knowledge.
    """
    if path is None:
        configured = get_config().get("knowledge_path", "")
        if not configured:
            return ""
        path = resolve_path(configured)

    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Knowledge excerpt %s unavailable (%s); continuing without it.", path, exc)
        return ""
