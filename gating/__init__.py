"""
Stepgate — Gating Package

The state computation engine and the ambient pieces it shares with the
navigation layer (logging, configuration, cooldown).

  - gating.types: Step, SubItem, StepStatus, StatusSnapshot
  - gating.compute: compute_statuses
  - gating.conditions: build_condition, DefinitionError
  - gating.rate_limit: NavigationCooldown
  - gating.logging: configure_logging, NavigationEventLogger
  - gating.config_loader: ConfigLoader, NavigationSettings
"""

from gating.types import (
    Step, SubItem, StepStatus, StatusSnapshot, EvaluationError, Predicate,
)
from gating.compute import compute_statuses, find_index
from gating.conditions import build_condition, DefinitionError
from gating.rate_limit import NavigationCooldown, CooldownConfig

__all__ = [
    "Step",
    "SubItem",
    "StepStatus",
    "StatusSnapshot",
    "EvaluationError",
    "Predicate",
    "compute_statuses",
    "find_index",
    "build_condition",
    "DefinitionError",
    "NavigationCooldown",
    "CooldownConfig",
]
