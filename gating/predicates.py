"""
Stepgate — Fault-Isolated Predicate Evaluation

Step predicates are supplied by the host and may raise. Every call goes
through evaluate_predicate(), which converts an exception into a False
result plus an EvaluationError, and logs it at WARNING. A broken
validator blocks its step; it never unlocks it.
"""

from __future__ import annotations

import logging
from typing import Any

from gating.types import EvaluationError, Predicate, Step

logger = logging.getLogger("stepgate.compute")


def evaluate_predicate(
    step_id: str,
    name: str,
    predicate: Predicate | None,
    context: Any,
) -> tuple[bool, EvaluationError | None]:
    """
    Evaluate one predicate against the context.

    Returns (result, error). A missing predicate is (False, None).
    A raising predicate is (False, EvaluationError).
    """
    if predicate is None or not callable(predicate):
        return False, None
    try:
        return bool(predicate(context)), None
    except Exception as e:
        logger.warning(
            "Predicate %s for step '%s' raised %s: %s; treating as False",
            name, step_id, type(e).__name__, e,
        )
        return False, EvaluationError(
            step_id=step_id,
            predicate=name,
            error_type=type(e).__name__,
            message=str(e)[:500],
        )


def evaluate_step(
    step: Step,
    context: Any,
) -> tuple[bool, bool, list[EvaluationError]]:
    """Evaluate validate and is_loading for a step: (is_valid, is_loading, errors)."""
    errors: list[EvaluationError] = []

    is_valid, err = evaluate_predicate(step.id, "validate", step.validate, context)
    if err:
        errors.append(err)

    is_loading, err = evaluate_predicate(step.id, "is_loading", step.is_loading, context)
    if err:
        errors.append(err)

    return is_valid, is_loading, errors
