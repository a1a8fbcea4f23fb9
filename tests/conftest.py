"""Shared fixtures for the ABAP Refactor test suite."""

import asyncio

import pytest
from unittest.mock import patch

from abap_refactor.history import History, Message
from abap_refactor.results import PhaseFailure, TransportReply

SOURCE = "REPORT zdemo.\nSELECT * FROM bseg INTO TABLE @DATA(lt_bseg).\n"


def fenced(code: str, language: str = "abap") -> str:
    """Model-style reply wrapping ``code`` in a fence."""
    return f"Here is the program:\n```{language}\n{code}\n```\nAssumptions: none."


def phase_of(user_message: str) -> str:
    """Name the phase a user message belongs to from its task heading."""
    for heading, phase in (
        ("## Task: Technical Specification", "specification"),
        ("## Task: Code Conversion", "conversion"),
        ("## Task: Code Review", "review"),
        ("## Task: Code Correction", "correction"),
    ):
        if user_message.startswith(heading):
            return phase
    return "unknown"


class ScriptedTransport:
    """Transport double that answers calls in order from a script.

    Script items are reply strings, PhaseFailure values (returned) or
    exceptions (raised).
    """

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def call(self, system_message, user_message, history):
        self.calls.append({"system": system_message, "user": user_message, "history": history})
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, PhaseFailure):
            return reply
        outbound = history if history.has_system_message() else history.with_system(system_message)
        outbound = outbound.append(Message("user", user_message))
        message = Message("assistant", reply)
        return TransportReply(message=message, history=outbound.append(message))

    @property
    def phases(self) -> list[str]:
        return [phase_of(c["user"]) for c in self.calls]


class RoutingTransport:
    """Transport double answering by phase; sources containing BLOCK hang until cancelled."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.calls = []

    async def call(self, system_message, user_message, history):
        self.calls.append(user_message)
        if "BLOCK" in user_message:
            self.entered.set()
            await asyncio.Event().wait()
        phase = phase_of(user_message)
        if "EXPLODE" in user_message and phase == "conversion":
            return PhaseFailure(reason="Bad Gateway", kind="http", status_code=502)
        text = {
            "specification": "## Spec",
            "conversion": fenced("NEW CODE"),
            "review": "Looks good.\nNeeds Correction: NO",
        }[phase]
        outbound = history if history.has_system_message() else history.with_system(system_message)
        outbound = outbound.append(Message("user", user_message))
        message = Message("assistant", text)
        return TransportReply(message=message, history=outbound.append(message))


@pytest.fixture
def empty_history():
    return History(max_length=20)


@pytest.fixture
def mock_config():
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "model": "test-model",
        "api_key_header": "x-api-key",
        "request_timeout_seconds": 5,
        "history_max_messages": 20,
        "max_review_iterations": 3,
        "max_concurrent_units": 2,
        "knowledge_path": "",
        "source_extensions": [".abap", ".prog"],
        "output_suffix": "_S4",
        "conversion": {
            "source_label": "SAP R/3 ABAP",
            "target_label": "SAP S/4HANA ABAP 7.5+",
            "fence_language": "abap",
        },
    }
    with patch("abap_refactor.config._config", test_config):
        yield test_config
