"""Result values returned across component boundaries."""

from dataclasses import dataclass, field
from typing import Any, Literal

from abap_refactor.history import History, Message
from abap_refactor.state import PhaseRecord

FailureKind = Literal["http", "malformed", "network", "phase"]
TerminalStatus = Literal["completed", "completed_with_warning", "failed"]


@dataclass(frozen=True)
class TransportReply:
    message: Message  # The assistant message from choices[0].
    history: History  # Caller's history plus this exchange.


@dataclass(frozen=True)
class PhaseSuccess:
    value: Any
    history: History


@dataclass(frozen=True)
class PhaseFailure:
    reason: str
    kind: FailureKind = "phase"
    status_code: int | None = None
    body: str = ""


PhaseResult = PhaseSuccess | PhaseFailure


@dataclass(frozen=True)
class ReviewOutcome:
    report: str
    needs_correction: bool


@dataclass
class OrchestratorResult:
    status: TerminalStatus
    final_code: str | None = None
    final_review: str | None = None
    specification: str | None = None
    warning: str | None = None
    error: str | None = None
    history: list[PhaseRecord] = field(default_factory=list)  # Audit trail, one record per phase.
    messages: History | None = None  # Conversation as last sent to the model.

    @property
    def ok(self) -> bool:
        return self.status != "failed"
