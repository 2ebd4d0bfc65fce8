"""
Stepgate — Declarative Step Conditions

Builds step predicates from condition specs found in workflow YAML, so
a workflow can be gated without writing Python callables.

Condition forms:
    true / false                              literal
    {field: a.b, operator: eq, value: 3}      single field test
    {all: [cond, ...]}                        every sub-condition holds
    {any: [cond, ...]}                        at least one holds
    {not: cond}                               negation

Fields are dot-paths into a mapping context. A path that cannot be
resolved yields None, which fails every operator except `missing`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from gating.types import Predicate

OPERATORS = (
    "exists", "missing", "truthy",
    "eq", "ne", "gt", "gte", "lt", "lte",
    "in", "contains_any",
)

_ORDERING = {
    "gt": lambda a, b: a > b,
    "gte": lambda a, b: a >= b,
    "lt": lambda a, b: a < b,
    "lte": lambda a, b: a <= b,
}


class DefinitionError(ValueError):
    """Raised when a workflow or condition definition is malformed."""
    pass


# ═══════════════════════════════════════════════════════════════════
# Field Conditions
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FieldCondition:
    """Single test of a context field."""
    field: str
    operator: str = "exists"
    value: Any = None

    def __call__(self, context: Any) -> bool:
        val = get_nested(context, self.field)
        op = self.operator

        if op == "missing":
            return val is None
        if op == "exists":
            return val is not None
        if val is None:
            return False

        if op == "truthy":
            return bool(val)
        if op == "eq":
            return val == self.value
        if op == "ne":
            return val != self.value

        if op in _ORDERING:
            try:
                return _ORDERING[op](float(val), float(self.value))
            except (ValueError, TypeError):
                return False

        if op == "in":
            options = self.value if isinstance(self.value, (list, tuple, set)) else [self.value]
            return val in options

        if op == "contains_any":
            target = self.value if isinstance(self.value, (list, tuple, set)) else [self.value]
            if isinstance(val, (list, tuple, set)):
                return bool(set(val) & set(target))
            if isinstance(val, str):
                return any(str(t) in val for t in target)
            return False

        return False


def get_nested(obj: Any, path: str) -> Any:
    """Navigate a dot-separated path into a nested mapping."""
    if not path:
        return obj
    current = obj
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
            if current is None:
                return None
        else:
            return None
    return current


# ═══════════════════════════════════════════════════════════════════
# Composites
# ═══════════════════════════════════════════════════════════════════

def _all_of(preds: list[Predicate]) -> Predicate:
    return lambda ctx: all(p(ctx) for p in preds)


def _any_of(preds: list[Predicate]) -> Predicate:
    return lambda ctx: any(p(ctx) for p in preds)


def _negate(pred: Predicate) -> Predicate:
    return lambda ctx: not pred(ctx)


def _constant(value: bool) -> Predicate:
    return lambda ctx: value


# ═══════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════

_COMPOSITES: dict[str, Callable[[list[Predicate]], Predicate]] = {
    "all": _all_of,
    "any": _any_of,
}


def build_condition(spec: Any, where: str = "condition") -> Predicate:
    """
    Build a predicate from a condition spec.

    Raises DefinitionError for anything that is not a recognised form.
    `where` names the location for error messages.
    """
    if isinstance(spec, bool):
        return _constant(spec)

    if not isinstance(spec, dict):
        raise DefinitionError(
            f"{where}: expected a mapping or boolean, got {type(spec).__name__}"
        )

    for key, combine in _COMPOSITES.items():
        if key in spec:
            _only_key(spec, key, where)
            children = spec[key]
            if not isinstance(children, list) or not children:
                raise DefinitionError(f"{where}.{key}: expected a non-empty list")
            return combine([
                build_condition(child, f"{where}.{key}[{i}]")
                for i, child in enumerate(children)
            ])

    if "not" in spec:
        _only_key(spec, "not", where)
        return _negate(build_condition(spec["not"], f"{where}.not"))

    field_path = spec.get("field")
    if not isinstance(field_path, str) or not field_path:
        raise DefinitionError(f"{where}: 'field' must be a non-empty string")

    operator = spec.get("operator", "exists")
    if operator not in OPERATORS:
        raise DefinitionError(
            f"{where}: unknown operator '{operator}'. "
            f"Valid operators: {', '.join(OPERATORS)}"
        )

    unknown = set(spec) - {"field", "operator", "value"}
    if unknown:
        raise DefinitionError(f"{where}: unexpected keys {sorted(unknown)}")

    if operator not in ("exists", "missing", "truthy") and "value" not in spec:
        raise DefinitionError(f"{where}: operator '{operator}' requires a 'value'")

    return FieldCondition(field=field_path, operator=operator, value=spec.get("value"))


def _only_key(spec: dict, key: str, where: str) -> None:
    if len(spec) != 1:
        raise DefinitionError(
            f"{where}: '{key}' cannot be combined with {sorted(set(spec) - {key})}"
        )
