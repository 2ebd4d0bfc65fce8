"""
Stepgate — Navigation Controller

Owns the navigation session for one workflow and exposes the operations
a host uses to move through it: click/navigate, complete, reset, context
updates and sub-item selection.

Statuses are recomputed from scratch (gating.compute) whenever they are
queried, so every decision sees the latest context and completion set.

Completion is two-phase:
  1. complete_step() records the completion and flags a pending advance.
  2. The scheduler later runs _resolve_pending_advance(), which moves to
     the first non-locked step after the current one using statuses
     computed *after* the completion was recorded.

Host callbacks are fault-isolated: an exception from on_step_changed,
on_sub_item_selected or on_context_update_requested is logged and
swallowed, never raised to the caller.

Usage:
    controller = NavigationController(
        steps,
        context=validator_state,
        on_step_changed=lambda step_id: print("now at", step_id),
    )
    controller.click("profile")
    controller.complete_step({"profile": {"name": "Ada"}})
    controller.settle()
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from gating.compute import compute_statuses, find_index
from gating.conditions import DefinitionError
from gating.config_loader import NavigationSettings
from gating.logging import NavigationEventLogger
from gating.rate_limit import NavigationCooldown
from gating.types import EvaluationError, StatusSnapshot, Step, StepStatus
from navigation.scheduler import DeferredScheduler, SettleQueue
from navigation.session import NavigationSession

logger = logging.getLogger("stepgate.navigation")

StepChangedCallback = Callable[[str], None]
SubItemSelectedCallback = Callable[[str, str], None]
ContextUpdateCallback = Callable[[Any], None]


class NavigationController:
    """Gated navigation over a fixed, ordered list of steps."""

    def __init__(
        self,
        steps: Sequence[Step],
        context: Any = None,
        on_step_changed: StepChangedCallback | None = None,
        on_sub_item_selected: SubItemSelectedCallback | None = None,
        on_context_update_requested: ContextUpdateCallback | None = None,
        scheduler: DeferredScheduler | None = None,
        cooldown: NavigationCooldown | None = None,
        settings: NavigationSettings | None = None,
        event_logger: NavigationEventLogger | None = None,
    ):
        self._steps: tuple[Step, ...] = tuple(steps or ())
        _check_unique_ids(self._steps)

        self.settings = settings or NavigationSettings()
        self._context = context
        self._on_step_changed = on_step_changed
        self._on_sub_item_selected = on_sub_item_selected
        self._on_context_update_requested = on_context_update_requested
        self._scheduler = scheduler or SettleQueue()
        self._cooldown = cooldown or NavigationCooldown(self.settings.cooldown_config())
        self._events = event_logger or NavigationEventLogger()

        self._session = NavigationSession.create(self._steps)
        self._events.on_session_start(len(self._steps), self._session.current_step_id)

    # ── Query Surface ──────────────────────────────────────────────

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    @property
    def is_empty(self) -> bool:
        return not self._steps

    @property
    def empty_message(self) -> str:
        return self.settings.empty_message

    @property
    def context(self) -> Any:
        return self._context

    @property
    def current_step_id(self) -> str | None:
        return self._session.current_step_id

    @property
    def current_step(self) -> Step | None:
        index = find_index(self._steps, self._session.current_step_id)
        return self._steps[index] if index >= 0 else None

    @property
    def manually_completed(self) -> frozenset[str]:
        return self._session.completed_snapshot()

    @property
    def pending_advance(self) -> bool:
        return self._session.pending_advance

    @property
    def last_navigation_at(self) -> float | None:
        return self._session.last_navigation_at

    @property
    def snapshot(self) -> StatusSnapshot:
        """Statuses computed against the current context and session."""
        if self.is_empty:
            return StatusSnapshot.empty()
        return compute_statuses(
            self._steps,
            self._context,
            self._session.completed_snapshot(),
            self._session.current_step_id,
        )

    @property
    def statuses(self) -> dict[str, StepStatus]:
        return dict(self.snapshot.statuses)

    @property
    def progress(self) -> float:
        return self.snapshot.progress

    @property
    def validation_errors(self) -> tuple[EvaluationError, ...]:
        return self.snapshot.errors

    def get_status(self, step_id: str) -> StepStatus:
        return self.snapshot.status_of(step_id)

    # ── Context ────────────────────────────────────────────────────

    def set_context(self, context: Any) -> None:
        """Replace the context snapshot the predicates are evaluated against."""
        self._context = context

    def update_context(self, updates: Any) -> None:
        """Forward updates to the external context holder."""
        self._safe_call("on_context_update_requested", self._on_context_update_requested, updates)

    # ── Navigation ─────────────────────────────────────────────────

    def click(self, step_id: str) -> bool:
        return self.navigate_to(step_id)

    def navigate_to(self, step_id: str) -> bool:
        """
        Move to step_id if it is not locked and the cooldown has elapsed.

        Returns True when the navigation was accepted. Re-selecting the
        current step is accepted and notifies again.
        """
        if self.get_status(step_id) == StepStatus.LOCKED:
            self._events.on_navigation_rejected(step_id, "locked")
            return False
        if not self._cooldown.try_acquire():
            self._events.on_navigation_rejected(step_id, "cooldown")
            return False

        self._session.last_navigation_at = self._cooldown.last_accepted_at
        self._move_to(step_id, reason="navigate")
        return True

    def complete_step(self, data: Any = None) -> None:
        """
        Mark the current step complete and schedule the advance.

        The move itself is deferred until the statuses can be recomputed
        with the updated completion set.
        """
        current = self._session.current_step_id
        if current is None:
            return

        index = find_index(self._steps, current)
        is_last = index == len(self._steps) - 1

        self._session.manually_completed.add(current)
        self._events.on_step_completed(current, bool(data), is_last)

        if data:
            self._safe_call("on_context_update_requested", self._on_context_update_requested, data)

        if not self._session.pending_advance:
            self._schedule_advance()

        # No later step to advance to; still tell the host
        if is_last:
            self._notify_step_changed(current)

    def reset_to_step(self, step_id: str) -> None:
        """Roll back completions from step_id onward and move there."""
        index = find_index(self._steps, step_id)
        if index < 0:
            self._events.on_navigation_rejected(step_id, "unknown")
            return

        cleared = [s.id for s in self._steps[index:] if s.id in self._session.manually_completed]
        for s in self._steps[index:]:
            self._session.manually_completed.discard(s.id)

        self._events.on_step_reset(step_id, cleared)
        self._move_to(step_id, reason="reset")

    def select_sub_item(self, step_id: str, sub_item_id: str) -> None:
        """Forward a sub-choice to the host. No gating applies."""
        self._safe_call("on_sub_item_selected", self._on_sub_item_selected, step_id, sub_item_id)

    def settle(self) -> int:
        """Run deferred work. Hosts using SettleQueue call this once per update cycle."""
        return self._scheduler.drain()

    # ── Internals ──────────────────────────────────────────────────

    def _schedule_advance(self) -> None:
        # The flag is set only once the scheduler has accepted the work
        try:
            self._scheduler.defer(self._resolve_pending_advance, label="advance")
        except Exception as e:
            logger.warning("Could not schedule advance: %s", e, exc_info=True)
            self._events.on_callback_error("scheduler.defer", e)
            return
        self._session.pending_advance = True

    def _resolve_pending_advance(self) -> None:
        if not self._session.pending_advance:
            return

        current = self._session.current_step_id
        snapshot = self.snapshot
        index = find_index(self._steps, current)

        target = None
        for step in self._steps[index + 1:]:
            status = snapshot.statuses.get(step.id)
            if status is not None and status != StepStatus.LOCKED:
                target = step.id
                break

        if target is not None:
            self._session.last_navigation_at = self._cooldown.stamp()
            self._move_to(target, reason="advance")

        self._session.pending_advance = False
        self._events.on_advance_resolved(current, target)

    def _move_to(self, step_id: str, reason: str) -> None:
        previous = self._session.current_step_id
        self._session.current_step_id = step_id
        self._events.on_step_changed(previous, step_id, reason)
        self._notify_step_changed(step_id)

    def _notify_step_changed(self, step_id: str) -> None:
        self._safe_call("on_step_changed", self._on_step_changed, step_id)

    def _safe_call(self, name: str, callback: Callable | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.warning("Callback %s failed: %s", name, e, exc_info=True)
            self._events.on_callback_error(name, e)


def _check_unique_ids(steps: Sequence[Step]) -> None:
    seen: set[str] = set()
    for step in steps:
        if step.id in seen:
            raise DefinitionError(f"Duplicate step id '{step.id}'")
        seen.add(step.id)
