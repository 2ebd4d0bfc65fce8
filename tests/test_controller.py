"""
Stepgate — Navigation Controller Tests

Covers:
  1. Initial session and query surface
  2. Click / navigate gating and the cooldown
  3. Two-phase completion and the deferred advance
  4. Reset
  5. Callback fault isolation
  6. Empty configuration
  7. asyncio scheduling

All tests use a fake monotonic clock; nothing sleeps.
"""

import asyncio
import os
import sys
import unittest

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from gating.conditions import DefinitionError
from gating.config_loader import NavigationSettings
from gating.rate_limit import CooldownConfig, NavigationCooldown
from gating.types import Step, StepStatus
from navigation.controller import NavigationController
from navigation.scheduler import EventLoopScheduler

L, N, LD, AV, AC, C = (
    StepStatus.LOCKED, StepStatus.NEXT, StepStatus.LOADING,
    StepStatus.AVAILABLE, StepStatus.ACTIVE, StepStatus.COMPLETED,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


def _always(value):
    return lambda ctx: value


def _abc_steps():
    return [
        Step("A", "Step A", validate=_always(True)),
        Step("B", "Step B", validate=_always(False), is_loading=_always(False)),
        Step("C", "Step C", validate=_always(False)),
    ]


class _ControllerTestCase(unittest.TestCase):

    def _make(self, steps=None, **kwargs):
        self.clock = FakeClock()
        self.changed = []
        self.updates = []
        self.selected = []
        kwargs.setdefault("on_step_changed", self.changed.append)
        kwargs.setdefault("on_context_update_requested", self.updates.append)
        kwargs.setdefault("on_sub_item_selected", lambda sid, sub: self.selected.append((sid, sub)))
        kwargs.setdefault(
            "cooldown",
            NavigationCooldown(CooldownConfig(cooldown_ms=250), clock=self.clock),
        )
        return NavigationController(_abc_steps() if steps is None else steps, **kwargs)


# ═══════════════════════════════════════════════════════════════════
# 1. Initial Session
# ═══════════════════════════════════════════════════════════════════

class TestInitialSession(_ControllerTestCase):

    def test_starts_on_first_step(self):
        ctl = self._make()
        self.assertEqual(ctl.current_step_id, "A")
        self.assertEqual(ctl.current_step.title, "Step A")
        self.assertEqual(ctl.manually_completed, frozenset())
        self.assertFalse(ctl.pending_advance)
        self.assertIsNone(ctl.last_navigation_at)

    def test_initial_statuses_and_progress(self):
        ctl = self._make()
        self.assertEqual(ctl.statuses, {"A": AC, "B": N, "C": L})
        self.assertAlmostEqual(ctl.progress, 0.5 / 3 * 100)

    def test_get_status_defaults_to_locked(self):
        ctl = self._make()
        self.assertEqual(ctl.get_status("B"), N)
        self.assertEqual(ctl.get_status("nope"), L)

    def test_duplicate_ids_rejected(self):
        with self.assertRaises(DefinitionError):
            NavigationController([Step("A", "A"), Step("A", "again")])

    def test_set_context_recomputes(self):
        steps = [
            Step("A", "A", validate=_always(True)),
            Step("B", "B", validate=lambda ctx: ctx.get("b_done", False)),
            Step("C", "C"),
        ]
        ctl = self._make(steps, context={})
        self.assertEqual(ctl.get_status("C"), L)
        ctl.set_context({"b_done": True})
        self.assertEqual(ctl.statuses, {"A": AC, "B": AV, "C": N})

    def test_validation_errors_surface(self):
        def boom(ctx):
            raise KeyError("missing")

        steps = [Step("A", "A", validate=_always(True)), Step("B", "B", validate=boom)]
        ctl = self._make(steps)
        with self.assertLogs("stepgate.compute", level="WARNING"):
            errors = ctl.validation_errors
        self.assertEqual([e.step_id for e in errors], ["B"])
        with self.assertLogs("stepgate.compute", level="WARNING"):
            self.assertEqual(ctl.get_status("B"), N)


# ═══════════════════════════════════════════════════════════════════
# 2. Click / Navigate
# ═══════════════════════════════════════════════════════════════════

class TestNavigate(_ControllerTestCase):

    def test_click_locked_is_noop(self):
        ctl = self._make()
        self.assertFalse(ctl.click("C"))
        self.assertEqual(ctl.current_step_id, "A")
        self.assertEqual(self.changed, [])
        self.assertEqual(ctl.statuses, {"A": AC, "B": N, "C": L})

    def test_click_unknown_is_noop(self):
        ctl = self._make()
        self.assertFalse(ctl.click("Z"))
        self.assertEqual(self.changed, [])

    def test_click_current_notifies_again(self):
        ctl = self._make()
        self.assertTrue(ctl.click("A"))
        self.assertEqual(self.changed, ["A"])
        self.assertEqual(ctl.statuses, {"A": AC, "B": N, "C": L})

    def test_click_next_step(self):
        ctl = self._make()
        self.assertTrue(ctl.navigate_to("B"))
        self.assertEqual(ctl.current_step_id, "B")
        self.assertEqual(self.changed, ["B"])
        self.assertEqual(ctl.statuses, {"A": C, "B": AC, "C": L})
        self.assertEqual(ctl.last_navigation_at, self.clock.now)

    def test_double_click_debounced(self):
        ctl = self._make()
        self.assertTrue(ctl.click("A"))
        self.assertFalse(ctl.click("A"))
        self.assertEqual(self.changed, ["A"])

    def test_click_after_cooldown_accepted(self):
        ctl = self._make()
        ctl.click("A")
        self.clock.advance_ms(300)
        self.assertTrue(ctl.click("A"))
        self.assertEqual(self.changed, ["A", "A"])

    def test_dropped_click_does_not_extend_window(self):
        ctl = self._make()
        ctl.click("A")
        self.clock.advance_ms(200)
        ctl.click("B")              # dropped
        self.clock.advance_ms(60)   # 260ms after the accepted click
        self.assertTrue(ctl.click("B"))
        self.assertEqual(self.changed, ["A", "B"])

    def test_locked_click_does_not_consume_cooldown(self):
        ctl = self._make()
        ctl.click("C")
        self.assertTrue(ctl.click("B"))


# ═══════════════════════════════════════════════════════════════════
# 3. Completion & Deferred Advance
# ═══════════════════════════════════════════════════════════════════

class TestCompleteStep(_ControllerTestCase):

    def test_completion_is_deferred(self):
        ctl = self._make()
        ctl.complete_step()
        self.assertEqual(ctl.manually_completed, {"A"})
        self.assertTrue(ctl.pending_advance)
        self.assertEqual(ctl.current_step_id, "A")
        self.assertEqual(self.changed, [])

    def test_settle_advances_to_next_non_locked(self):
        ctl = self._make()
        ctl.complete_step()
        self.assertEqual(ctl.settle(), 1)
        self.assertEqual(ctl.current_step_id, "B")
        self.assertEqual(self.changed, ["B"])
        self.assertFalse(ctl.pending_advance)
        self.assertEqual(ctl.statuses, {"A": C, "B": AC, "C": L})
        self.assertAlmostEqual(ctl.progress, 1.5 / 3 * 100)

    def test_complete_twice_is_idempotent(self):
        ctl = self._make()
        ctl.complete_step()
        ctl.complete_step()
        self.assertEqual(ctl.manually_completed, {"A"})
        ctl.settle()
        self.assertEqual(self.changed, ["B"])

    def test_data_forwarded_to_context_holder(self):
        ctl = self._make()
        ctl.complete_step({"answer": 42})
        self.assertEqual(self.updates, [{"answer": 42}])

    def test_no_data_no_forward(self):
        ctl = self._make()
        ctl.complete_step()
        self.assertEqual(self.updates, [])

    def test_empty_data_not_forwarded(self):
        ctl = self._make()
        ctl.complete_step({})
        self.assertEqual(self.updates, [])
        self.assertEqual(ctl.manually_completed, {"A"})

    def test_advance_ignores_cooldown_but_stamps_it(self):
        ctl = self._make()
        ctl.click("A")
        ctl.complete_step()
        ctl.settle()
        self.assertEqual(ctl.current_step_id, "B")
        self.assertFalse(ctl.click("A"))
        self.clock.advance_ms(250)
        self.assertTrue(ctl.click("A"))
        self.assertEqual(self.changed, ["A", "B", "A"])

    def test_advance_uses_updated_context(self):
        """The advance sees a context update made during completion."""
        context = {"b_done": False}
        steps = [
            Step("A", "A", validate=_always(True)),
            Step("B", "B", validate=lambda ctx: ctx["b_done"]),
            Step("C", "C", validate=_always(False)),
        ]
        holder = {}

        def on_update(updates):
            holder["ctl"].set_context({**context, **updates})

        ctl = self._make(steps, context=context, on_context_update_requested=on_update)
        holder["ctl"] = ctl
        ctl.complete_step({"b_done": True})
        ctl.settle()
        self.assertEqual(ctl.current_step_id, "B")
        self.assertEqual(ctl.statuses, {"A": C, "B": AC, "C": N})

    def test_last_step_notifies_immediately(self):
        steps = [Step(s, s, validate=_always(True)) for s in "ABC"]
        ctl = self._make(steps)
        ctl.click("C")
        ctl.complete_step()
        self.assertEqual(self.changed, ["C", "C"])
        ctl.settle()
        self.assertEqual(self.changed, ["C", "C"])
        self.assertEqual(ctl.current_step_id, "C")
        self.assertFalse(ctl.pending_advance)

    def test_single_step_workflow(self):
        ctl = self._make([Step("only", "Only")])
        ctl.complete_step()
        self.assertEqual(self.changed, ["only"])
        ctl.settle()
        self.assertEqual(ctl.statuses, {"only": AC})

    def test_pending_cleared_when_no_target(self):
        steps = [
            Step("A", "A", validate=_always(True)),
            Step("B", "B", validate=_always(False)),
            Step("C", "C", validate=_always(False)),
            Step("D", "D", validate=_always(False)),
        ]
        ctl = self._make(steps)
        ctl.reset_to_step("C")          # reset does not gate
        self.assertEqual(ctl.get_status("C"), L)
        ctl.complete_step()
        ctl.settle()
        self.assertEqual(ctl.current_step_id, "C")
        self.assertFalse(ctl.pending_advance)
        self.assertEqual(self.changed, ["C"])

    def test_walk_through_workflow(self):
        ctl = self._make()
        ctl.complete_step()
        ctl.settle()
        ctl.complete_step()
        ctl.settle()
        self.assertEqual(ctl.current_step_id, "C")
        self.assertEqual(ctl.statuses, {"A": C, "B": C, "C": AC})
        ctl.complete_step()
        ctl.settle()
        self.assertEqual(self.changed, ["B", "C", "C"])
        self.assertEqual(ctl.statuses, {"A": C, "B": C, "C": AC})
        self.assertEqual(ctl.manually_completed, {"A", "B", "C"})


# ═══════════════════════════════════════════════════════════════════
# 4. Reset
# ═══════════════════════════════════════════════════════════════════

class TestResetToStep(_ControllerTestCase):

    def test_reset_restores_initial_state(self):
        ctl = self._make()
        ctl.complete_step()
        ctl.settle()
        ctl.reset_to_step("A")
        self.assertEqual(ctl.manually_completed, frozenset())
        self.assertEqual(ctl.current_step_id, "A")
        self.assertEqual(self.changed, ["B", "A"])
        self.assertEqual(ctl.statuses, {"A": AC, "B": N, "C": L})

    def test_reset_keeps_earlier_completions(self):
        ctl = self._make()
        ctl.complete_step()
        ctl.settle()
        ctl.complete_step()
        ctl.settle()
        ctl.reset_to_step("B")
        self.assertEqual(ctl.manually_completed, {"A"})
        self.assertEqual(ctl.current_step_id, "B")
        self.assertEqual(ctl.statuses, {"A": C, "B": AC, "C": L})

    def test_reset_unknown_is_noop(self):
        ctl = self._make()
        ctl.complete_step()
        ctl.reset_to_step("Z")
        self.assertEqual(ctl.manually_completed, {"A"})
        self.assertEqual(self.changed, [])

    def test_reset_ignores_cooldown(self):
        ctl = self._make()
        ctl.click("B")
        ctl.reset_to_step("A")
        self.assertEqual(self.changed, ["B", "A"])


# ═══════════════════════════════════════════════════════════════════
# 5. Callbacks
# ═══════════════════════════════════════════════════════════════════

class TestCallbackIsolation(_ControllerTestCase):

    def _raise(self, *args):
        raise RuntimeError("consumer broke")

    def test_step_changed_failure_swallowed(self):
        ctl = self._make(on_step_changed=self._raise)
        with self.assertLogs("stepgate.navigation", level="WARNING"):
            self.assertTrue(ctl.click("B"))
        self.assertEqual(ctl.current_step_id, "B")

    def test_context_update_failure_swallowed(self):
        ctl = self._make(on_context_update_requested=self._raise)
        with self.assertLogs("stepgate.navigation", level="WARNING"):
            ctl.update_context({"x": 1})

    def test_completion_survives_context_failure(self):
        ctl = self._make(on_context_update_requested=self._raise)
        with self.assertLogs("stepgate.navigation", level="WARNING"):
            ctl.complete_step({"x": 1})
        ctl.settle()
        self.assertEqual(ctl.current_step_id, "B")

    def test_sub_item_failure_swallowed(self):
        ctl = self._make(on_sub_item_selected=self._raise)
        with self.assertLogs("stepgate.navigation", level="WARNING"):
            ctl.select_sub_item("A", "x")

    def test_update_context_forwards(self):
        ctl = self._make()
        ctl.update_context({"k": "v"})
        self.assertEqual(self.updates, [{"k": "v"}])

    def test_sub_item_forwarded_without_gating(self):
        ctl = self._make()
        ctl.select_sub_item("C", "c-1")
        self.assertEqual(self.selected, [("C", "c-1")])
        self.assertEqual(ctl.current_step_id, "A")

    def test_missing_callbacks_are_fine(self):
        ctl = NavigationController(_abc_steps())
        ctl.click("A")
        ctl.update_context({"a": 1})
        ctl.select_sub_item("A", "x")
        ctl.complete_step({"a": 1})
        ctl.settle()
        self.assertEqual(ctl.current_step_id, "B")


# ═══════════════════════════════════════════════════════════════════
# 6. Empty Configuration
# ═══════════════════════════════════════════════════════════════════

class TestEmptyConfiguration(_ControllerTestCase):

    def test_no_steps_state(self):
        ctl = self._make([])
        self.assertTrue(ctl.is_empty)
        self.assertIsNone(ctl.current_step_id)
        self.assertIsNone(ctl.current_step)
        self.assertEqual(ctl.statuses, {})
        self.assertEqual(ctl.progress, 0.0)
        self.assertEqual(ctl.get_status("A"), L)
        self.assertEqual(ctl.empty_message, "No steps configured.")

    def test_operations_are_noops(self):
        ctl = self._make([])
        self.assertFalse(ctl.click("A"))
        ctl.complete_step()
        ctl.reset_to_step("A")
        self.assertEqual(ctl.settle(), 0)
        self.assertEqual(self.changed, [])
        self.assertEqual(ctl.manually_completed, frozenset())

    def test_custom_empty_message(self):
        ctl = self._make([], settings=NavigationSettings(empty_message="Nothing here."))
        self.assertEqual(ctl.empty_message, "Nothing here.")


# ═══════════════════════════════════════════════════════════════════
# 7. asyncio Scheduling
# ═══════════════════════════════════════════════════════════════════

class TestEventLoopScheduler(_ControllerTestCase):

    def test_advance_runs_on_next_tick(self):
        async def scenario():
            ctl = self._make(scheduler=EventLoopScheduler())
            ctl.complete_step()
            before = ctl.current_step_id
            await asyncio.sleep(0)
            return before, ctl.current_step_id

        before, after = asyncio.run(scenario())
        self.assertEqual(before, "A")
        self.assertEqual(after, "B")
        self.assertEqual(self.changed, ["B"])

    def test_completion_outside_loop_is_contained(self):
        ctl = self._make(scheduler=EventLoopScheduler())
        with self.assertLogs("stepgate.navigation", level="WARNING"):
            ctl.complete_step()
        self.assertEqual(ctl.manually_completed, {"A"})
        self.assertFalse(ctl.pending_advance)
        self.assertEqual(ctl.current_step_id, "A")

    def test_advance_resumes_once_loop_is_running(self):
        ctl = self._make(scheduler=EventLoopScheduler())
        with self.assertLogs("stepgate.navigation", level="WARNING"):
            ctl.complete_step()

        async def scenario():
            ctl.complete_step()
            await asyncio.sleep(0)
            return ctl.current_step_id

        self.assertEqual(asyncio.run(scenario()), "B")
        self.assertFalse(ctl.pending_advance)
        self.assertEqual(self.changed, ["B"])


if __name__ == "__main__":
    unittest.main()
