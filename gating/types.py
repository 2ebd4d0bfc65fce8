"""
Stepgate — Gating Type Definitions

Data structures shared by the state computation engine and the
navigation controller: steps, sub-items, statuses and the immutable
snapshot produced by one status computation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping


# Predicate signature: receives the opaque context, returns truthy/falsy
Predicate = Callable[[Any], bool]


# ─── Step Status ─────────────────────────────────────────────────────

class StepStatus(str, enum.Enum):
    """Closed set of statuses a step can be shown with."""
    LOCKED = "locked"
    NEXT = "next"
    LOADING = "loading"
    AVAILABLE = "available"
    ACTIVE = "active"
    COMPLETED = "completed"


# ─── Steps ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SubItem:
    """Optional sub-choice attached to a step. Opaque to the engine."""
    id: str
    title: str
    description: str = ""


@dataclass(frozen=True)
class Step:
    """
    One node in the linear workflow.

    A step with no validator can only be unlocked manually; a step with
    no loader is never shown as loading.
    """
    id: str
    title: str
    validate: Predicate | None = None
    is_loading: Predicate | None = None
    sub_items: tuple[SubItem, ...] = ()
    description: str = ""

    @property
    def has_sub_items(self) -> bool:
        return bool(self.sub_items)


# ─── Evaluation Errors ───────────────────────────────────────────────

@dataclass(frozen=True)
class EvaluationError:
    """A predicate that raised during status computation."""
    step_id: str
    predicate: str          # "validate" | "is_loading"
    error_type: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {
            "step_id": self.step_id,
            "predicate": self.predicate,
            "error_type": self.error_type,
            "message": self.message,
        }


# ─── Snapshot ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StatusSnapshot:
    """
    Result of one status computation.

    `statuses` preserves the configured step order. Queries for ids that
    are not in the map read as LOCKED.
    """
    statuses: Mapping[str, StepStatus] = field(default_factory=dict)
    progress: float = 0.0
    errors: tuple[EvaluationError, ...] = ()

    @staticmethod
    def empty() -> StatusSnapshot:
        return StatusSnapshot()

    def status_of(self, step_id: str | None) -> StepStatus:
        if step_id is None:
            return StepStatus.LOCKED
        return self.statuses.get(step_id, StepStatus.LOCKED)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def ids_with(self, status: StepStatus) -> list[str]:
        return [sid for sid, st in self.statuses.items() if st == status]

    def to_dict(self) -> dict[str, Any]:
        return {
            "statuses": {sid: st.value for sid, st in self.statuses.items()},
            "progress": round(self.progress, 1),
            "errors": [e.to_dict() for e in self.errors],
        }
