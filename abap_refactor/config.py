"""Centralized config loading — read once at import time."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load .env from project root (parent of abap_refactor/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_config = yaml.safe_load(CONFIG_PATH.read_text())


def get_config() -> dict:
    """Return the loaded config dictionary."""
    return _config


def get_llm_settings() -> dict:
    """Return endpoint settings, environment values taking precedence over config.yaml."""
    config = get_config()
    return {
        "endpoint": os.getenv("LLM_ENDPOINT") or os.getenv("LLM_4OMINI_CHAT", ""),
        "model": os.getenv("MODEL") or config.get("model", ""),
        "api_key": os.getenv("API_KEY", ""),
        "api_key_header": config.get("api_key_header", "api-key"),
        "timeout": float(config.get("request_timeout_seconds", 120)),
        "proxy_url": os.getenv("PROX", ""),
        "proxy_user": os.getenv("AGENT_USER", ""),
        "proxy_password": os.getenv("AGENT_PWD", ""),
    }


def resolve_path(value: str) -> Path:
    """Resolve a config path relative to the project root."""
    path = Path(value)
    return path if path.is_absolute() else _PROJECT_ROOT / path
