"""Conversion state — single source of truth passed through the graph."""

from typing import Any, Literal, NotRequired, TypedDict

UnitStatus = Literal[
    "specifying",
    "converting",
    "reviewing",
    "correcting",
    "completed",
    "completed_with_warning",
    "failed",
]


class PhaseRecord(TypedDict):
    phase: str  # specification | conversion | review | correction | final_review | input | queued
    iteration: int
    content: str  # Raw content produced by the phase, empty on failure.
    error: str | None
    needs_correction: NotRequired[bool]  # Review phases only.


class ConversionUnit(TypedDict):
    source_code: str  # Original legacy source. Immutable after init.
    requirements: str  # Optional user-supplied requirements, "" if none.
    knowledge: str  # Shared read-only knowledge excerpt.
    specification: str
    current_code: str  # Latest candidate produced by conversion/correction.
    review_report: str
    needs_correction: bool
    iteration: int  # Correction passes performed. Starts at 0.
    max_iterations: int
    messages: Any  # abap_refactor.history.History owned by this unit.
    history: list[PhaseRecord]  # Audit trail, in order.
    status: UnitStatus
    warning: str
    error: str
