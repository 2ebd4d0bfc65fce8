"""
Stepgate — Workflow Definitions

Loads an ordered list of steps from YAML. Predicates are declared as
condition specs (see gating.conditions) and compiled at load time, so a
malformed definition fails here and never inside a navigation call.

    workflow:
      name: onboarding
      empty_message: Nothing to do yet.
      steps:
        - id: account
          title: Account
          validate: {field: account.email, operator: exists}
          loading: {field: account.status, operator: eq, value: verifying}
          sub_items:
            - {id: personal, title: Personal, description: Individual account}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gating.conditions import DefinitionError, build_condition
from gating.types import Step, SubItem

logger = logging.getLogger("stepgate.definitions")

_STEP_KEYS = {"id", "title", "description", "validate", "loading", "sub_items"}


@dataclass
class WorkflowDefinition:
    """A named, ordered list of steps loaded from YAML."""
    name: str
    steps: list[Step] = field(default_factory=list)
    empty_message: str = "No steps configured."
    source: str = ""

    @property
    def step_ids(self) -> list[str]:
        return [s.id for s in self.steps]


def load_workflow(path: str | Path) -> WorkflowDefinition:
    """Load a workflow definition from a YAML file."""
    p = Path(path)
    if not p.is_file():
        raise DefinitionError(f"Workflow file not found: {p}")
    with open(p) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DefinitionError(f"{p}: invalid YAML: {e}") from e
    definition = parse_workflow(raw, source=str(p))
    logger.info(
        "Loaded workflow %s from %s (%d steps)",
        definition.name, p, len(definition.steps),
    )
    return definition


def parse_workflow(raw: Any, source: str = "") -> WorkflowDefinition:
    """Build a WorkflowDefinition from an already-parsed document."""
    if not isinstance(raw, dict) or not isinstance(raw.get("workflow"), dict):
        raise DefinitionError(f"{source or 'definition'}: top-level 'workflow' mapping required")

    wf = raw["workflow"]
    raw_steps = wf.get("steps") or []
    if not isinstance(raw_steps, list):
        raise DefinitionError("workflow.steps: expected a list")

    steps: list[Step] = []
    seen: set[str] = set()
    for i, raw_step in enumerate(raw_steps):
        step = _parse_step(raw_step, f"workflow.steps[{i}]")
        if step.id in seen:
            raise DefinitionError(f"workflow.steps[{i}]: duplicate step id '{step.id}'")
        seen.add(step.id)
        steps.append(step)

    return WorkflowDefinition(
        name=str(wf.get("name", "")),
        steps=steps,
        empty_message=str(wf.get("empty_message", "No steps configured.")),
        source=source,
    )


def _parse_step(raw: Any, where: str) -> Step:
    if not isinstance(raw, dict):
        raise DefinitionError(f"{where}: expected a mapping")

    unknown = set(raw) - _STEP_KEYS
    if unknown:
        raise DefinitionError(f"{where}: unexpected keys {sorted(unknown)}")

    step_id = raw.get("id")
    if not isinstance(step_id, str) or not step_id:
        raise DefinitionError(f"{where}: 'id' must be a non-empty string")

    validate = None
    if raw.get("validate") is not None:
        validate = build_condition(raw["validate"], f"{where}.validate")

    is_loading = None
    if raw.get("loading") is not None:
        is_loading = build_condition(raw["loading"], f"{where}.loading")

    return Step(
        id=step_id,
        title=str(raw.get("title", step_id)),
        validate=validate,
        is_loading=is_loading,
        sub_items=_parse_sub_items(raw.get("sub_items"), f"{where}.sub_items"),
        description=str(raw.get("description", "")),
    )


def _parse_sub_items(raw: Any, where: str) -> tuple[SubItem, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise DefinitionError(f"{where}: expected a list")
    items = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get("id"):
            raise DefinitionError(f"{where}[{i}]: sub-item needs an 'id'")
        items.append(SubItem(
            id=str(item["id"]),
            title=str(item.get("title", item["id"])),
            description=str(item.get("description", "")),
        ))
    return tuple(items)
