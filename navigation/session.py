"""
Stepgate — Navigation Session

Mutable per-workflow state. Owned and mutated only by the
NavigationController; the status computation reads frozen copies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from gating.types import Step


@dataclass
class NavigationSession:
    """Session state for one workflow instantiation."""
    current_step_id: str | None = None
    manually_completed: set[str] = field(default_factory=set)
    last_navigation_at: float | None = None
    pending_advance: bool = False

    @staticmethod
    def create(steps: Sequence[Step]) -> NavigationSession:
        return NavigationSession(current_step_id=steps[0].id if steps else None)

    def completed_snapshot(self) -> frozenset[str]:
        return frozenset(self.manually_completed)
