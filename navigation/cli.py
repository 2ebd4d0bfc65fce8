"""
Stepgate — Workflow CLI

Inspect and script a YAML-defined workflow without a UI.

Usage:
    # Validate a definition and list its steps
    python -m navigation.cli check workflows/onboarding.yaml

    # Compute statuses for a context snapshot
    python -m navigation.cli status workflows/onboarding.yaml \\
        --context ctx.yaml --completed account --current profile

    # Run a scripted session
    python -m navigation.cli play workflows/onboarding.yaml \\
        --context ctx.yaml \\
        --action complete:'{"account": {"email": "a@b.c"}}' \\
        --action wait:300 --action click:account

Actions for `play`:
    click:ID          navigate to a step
    complete[:JSON]   complete the current step, optionally with data
    reset:ID          roll back to a step
    select:ID:SUB     pick a sub-item
    update:JSON       request a context update
    wait:MS           advance the session clock (the cooldown is measured on it)

Context update requests are deep-merged into the working context.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from gating.compute import compute_statuses
from gating.conditions import DefinitionError
from gating.config_loader import NavigationSettings, deep_merge, get_config
from gating.logging import NavigationEventLogger, configure_logging
from gating.rate_limit import NavigationCooldown
from gating.types import StatusSnapshot, StepStatus
from navigation.controller import NavigationController
from navigation.definitions import WorkflowDefinition, load_workflow

_MARKERS = {
    StepStatus.COMPLETED: "✓",
    StepStatus.ACTIVE: "●",
    StepStatus.AVAILABLE: "○",
    StepStatus.NEXT: "→",
    StepStatus.LOADING: "…",
    StepStatus.LOCKED: "✗",
}


class ScriptClock:
    """Virtual monotonic clock for scripted sessions. Only `wait:` moves it."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


# ═══════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════

def _load_context(path: str | None) -> Any:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        raise DefinitionError(f"context file not found: {path}")
    with open(p) as f:
        if p.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f) or {}


def _split_ids(raw: str | None) -> set[str]:
    if not raw:
        return set()
    return {part.strip() for part in raw.split(",") if part.strip()}


def _print_snapshot(definition: WorkflowDefinition, snapshot: StatusSnapshot, out=None):
    for step in definition.steps:
        status = snapshot.status_of(step.id)
        print(f"  {_MARKERS[status]} {step.id:20s} {status.value:10s} {step.title}", file=out)
    print(f"  progress: {snapshot.progress:.1f}%", file=out)
    for err in snapshot.errors:
        print(f"  ⚠ {err.step_id}.{err.predicate}: {err.error_type}: {err.message}", file=out)


# ═══════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════

def cmd_check(args, settings: NavigationSettings) -> int:
    definition = load_workflow(args.workflow)
    print(f"{definition.name or Path(args.workflow).stem}: {len(definition.steps)} step(s)")
    if not definition.steps:
        print(f"  {definition.empty_message}")
    for i, step in enumerate(definition.steps, 1):
        gates = []
        if step.validate:
            gates.append("validate")
        if step.is_loading:
            gates.append("loading")
        subs = f" [{len(step.sub_items)} sub-items]" if step.sub_items else ""
        print(f"  {i}. {step.id}: {step.title} ({', '.join(gates) or 'manual only'}){subs}")
    return 0


def cmd_status(args, settings: NavigationSettings) -> int:
    definition = load_workflow(args.workflow)
    if not definition.steps:
        print(definition.empty_message)
        return 0

    context = _load_context(args.context)
    completed = _split_ids(args.completed) & set(definition.step_ids)
    current = args.current or definition.steps[0].id

    snapshot = compute_statuses(definition.steps, context, completed, current)
    if args.json:
        print(json.dumps({"current": current, **snapshot.to_dict()}, indent=2))
    else:
        _print_snapshot(definition, snapshot)
    return 0


def cmd_play(args, settings: NavigationSettings) -> int:
    definition = load_workflow(args.workflow)
    if args.cooldown_ms is not None:
        settings.cooldown_ms = args.cooldown_ms
    settings.empty_message = definition.empty_message

    clock = ScriptClock()
    events: list[str] = []
    state = {"context": _load_context(args.context)}

    def on_context_update(updates):
        if not isinstance(updates, dict):
            raise TypeError(f"context updates must be a mapping, got {type(updates).__name__}")
        state["context"] = deep_merge(state["context"] or {}, updates)
        controller.set_context(state["context"])
        events.append(f"context updated: {sorted(updates)}")

    controller = NavigationController(
        definition.steps,
        context=state["context"],
        on_step_changed=lambda sid: events.append(f"step changed → {sid}"),
        on_sub_item_selected=lambda sid, sub: events.append(f"sub-item {sub} selected on {sid}"),
        on_context_update_requested=on_context_update,
        cooldown=NavigationCooldown(settings.cooldown_config(), clock=clock),
        settings=settings,
        event_logger=NavigationEventLogger(workflow=definition.name),
    )

    if controller.is_empty:
        print(controller.empty_message)
        return 0

    print(f"start at {controller.current_step_id}")
    _print_snapshot(definition, controller.snapshot)

    for action in args.action or []:
        verb, _, arg = action.partition(":")
        if verb == "click":
            accepted = controller.click(arg)
            if not accepted:
                events.append(f"click {arg} ignored")
        elif verb == "complete":
            controller.complete_step(json.loads(arg) if arg else None)
        elif verb == "reset":
            controller.reset_to_step(arg)
        elif verb == "select":
            step_id, _, sub_id = arg.partition(":")
            controller.select_sub_item(step_id, sub_id)
        elif verb == "update":
            controller.update_context(json.loads(arg))
        elif verb == "wait":
            clock.advance_ms(float(arg))
        else:
            print(f"Error: unknown action '{action}'", file=sys.stderr)
            return 1

        controller.settle()
        print(f"\n$ {action}")
        for line in events:
            print(f"  • {line}")
        events.clear()
        _print_snapshot(definition, controller.snapshot)

    return 0


# ═══════════════════════════════════════════════════════════════════
# Entry Point
# ═══════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stepgate",
        description="Stepgate — gated workflow navigation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default=None, help="Override logging.level")

    subs = parser.add_subparsers(dest="command", help="Command")

    check_p = subs.add_parser("check", help="Validate a workflow definition")
    check_p.add_argument("workflow")

    status_p = subs.add_parser("status", help="Compute step statuses")
    status_p.add_argument("workflow")
    status_p.add_argument("--context", "-c", help="Context YAML/JSON file")
    status_p.add_argument("--completed", help="Comma-separated manually completed ids")
    status_p.add_argument("--current", help="Current step id (default: first step)")
    status_p.add_argument("--json", action="store_true", help="Emit JSON")

    play_p = subs.add_parser("play", help="Run a scripted navigation session")
    play_p.add_argument("workflow")
    play_p.add_argument("--context", "-c", help="Context YAML/JSON file")
    play_p.add_argument("--cooldown-ms", type=float, default=None)
    play_p.add_argument("--action", "-a", action="append", help="Action, repeatable")

    return parser


_COMMANDS = {
    "check": cmd_check,
    "status": cmd_status,
    "play": cmd_play,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    settings = NavigationSettings.from_config(get_config())
    configure_logging(
        level=args.log_level or settings.log_level,
        fmt=settings.log_format,
    )

    try:
        return _COMMANDS[args.command](args, settings)
    except DefinitionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"Error: invalid JSON in action: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
