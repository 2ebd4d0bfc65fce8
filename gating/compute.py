"""
Stepgate — Step Status Computation

Turns an ordered list of steps plus a context snapshot into a status for
every step and an overall progress percentage.

Pure logic, no I/O. Safe to call on every context or session change:
inputs are never mutated and nothing is retained between calls.

Rules, in order:
  1. A step is available when its validator passes or it was completed
     manually.
  2. The first non-available step is the frontier. It shows as LOADING
     when its loader says so, otherwise NEXT. Everything after it is
     LOCKED.
  3. Available steps before the current step show as COMPLETED. Steps
     before the current one that are not available keep their real
     status so regressions stay visible.
  4. The current step shows as ACTIVE unless it is LOCKED.
  5. Progress counts COMPLETED steps, plus half a step when the current
     one is ACTIVE or LOADING.
"""

from __future__ import annotations

from typing import AbstractSet, Any, Sequence

from gating.predicates import evaluate_step
from gating.types import EvaluationError, StatusSnapshot, Step, StepStatus

NO_FRONTIER = -1
ACTIVE_BONUS = 0.5


def find_index(steps: Sequence[Step], step_id: str | None) -> int:
    """Position of step_id in the ordered list, -1 if absent."""
    if step_id is None:
        return -1
    for i, step in enumerate(steps):
        if step.id == step_id:
            return i
    return -1


def compute_statuses(
    steps: Sequence[Step],
    context: Any,
    manually_completed: AbstractSet[str],
    current_step_id: str | None,
) -> StatusSnapshot:
    """
    Derive per-step statuses and progress.

    Args:
        steps: Ordered workflow steps
        context: Opaque value passed to every predicate
        manually_completed: Ids completed regardless of their validator
        current_step_id: Step currently in view, or None

    Returns:
        StatusSnapshot with one entry per configured step.
    """
    if not steps:
        return StatusSnapshot.empty()

    errors: list[EvaluationError] = []
    loading_flags: list[bool] = []
    statuses: dict[str, StepStatus] = {}
    frontier = NO_FRONTIER

    for index, step in enumerate(steps):
        is_valid, is_loading, step_errors = evaluate_step(step, context)
        errors.extend(step_errors)
        loading_flags.append(is_loading)

        if is_valid or step.id in manually_completed:
            statuses[step.id] = StepStatus.AVAILABLE
        elif frontier == NO_FRONTIER:
            frontier = index

    if frontier != NO_FRONTIER:
        for index, step in enumerate(steps):
            if index < frontier:
                continue
            if index == frontier:
                statuses[step.id] = (
                    StepStatus.LOADING if loading_flags[index] else StepStatus.NEXT
                )
            else:
                # Steps past the frontier are locked even when available
                statuses[step.id] = StepStatus.LOCKED

    # Restore configured order after the frontier pass
    ordered = {step.id: statuses[step.id] for step in steps}

    current_index = find_index(steps, current_step_id)
    for index, step in enumerate(steps):
        if index >= current_index:
            break
        if ordered[step.id] == StepStatus.AVAILABLE:
            ordered[step.id] = StepStatus.COMPLETED

    # Unknown current ids are not added to the map; status_of() reads them as LOCKED
    if current_index != -1 and ordered[current_step_id] != StepStatus.LOCKED:
        ordered[current_step_id] = StepStatus.ACTIVE

    completed = sum(1 for st in ordered.values() if st == StepStatus.COMPLETED)
    current_status = ordered.get(current_step_id) if current_step_id else None
    bonus = ACTIVE_BONUS if current_status in (StepStatus.ACTIVE, StepStatus.LOADING) else 0.0
    progress = (completed + bonus) / len(steps) * 100

    return StatusSnapshot(
        statuses=ordered,
        progress=progress,
        errors=tuple(errors),
    )
