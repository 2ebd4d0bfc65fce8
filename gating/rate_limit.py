"""
Stepgate — Navigation Cooldown

Debounces navigation so that a single rapid user action (a double click)
is not registered as two transitions.

A request arriving less than `cooldown_ms` after the last *accepted*
navigation is dropped. Dropped requests are discarded, not queued or
retried.

Usage:
    cooldown = NavigationCooldown(CooldownConfig(cooldown_ms=250))
    if cooldown.try_acquire():
        move_to(step_id)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger("stepgate.rate_limit")

DEFAULT_COOLDOWN_MS = 250.0


# ═══════════════════════════════════════════════════════════════════
# Cooldown Config
# ═══════════════════════════════════════════════════════════════════

@dataclass
class CooldownConfig:
    """Configuration for the navigation debounce window."""
    cooldown_ms: float = DEFAULT_COOLDOWN_MS


DEFAULT_CONFIG = CooldownConfig()


# ═══════════════════════════════════════════════════════════════════
# Navigation Cooldown
# ═══════════════════════════════════════════════════════════════════

class NavigationCooldown:
    """
    Fixed-window debounce keyed on the last accepted navigation.

    The clock must be monotonic and return seconds. Tests inject a fake.
    """

    def __init__(
        self,
        config: CooldownConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or DEFAULT_CONFIG
        self._clock = clock
        self._last_accepted: float | None = None
        self._metrics = _CooldownMetrics()

    @property
    def window_seconds(self) -> float:
        return max(self.config.cooldown_ms, 0.0) / 1000.0

    @property
    def last_accepted_at(self) -> float | None:
        return self._last_accepted

    def ready(self) -> bool:
        """True when a navigation would be accepted right now."""
        if self._last_accepted is None:
            return True
        return self._clock() - self._last_accepted >= self.window_seconds

    def stamp(self) -> float:
        """Record an accepted navigation without checking the window."""
        now = self._clock()
        self._last_accepted = now
        self._metrics.record_accept()
        return now

    def try_acquire(self) -> bool:
        """Check the window and stamp on success. Returns False when dropped."""
        if not self.ready():
            self._metrics.record_drop()
            logger.debug(
                "Navigation dropped inside %.0fms cooldown", self.config.cooldown_ms,
            )
            return False
        self.stamp()
        return True

    def reset(self) -> None:
        self._last_accepted = None

    @property
    def metrics(self) -> dict[str, Any]:
        return self._metrics.snapshot()


class _CooldownMetrics:
    """Counters for accepted and dropped navigations."""

    def __init__(self):
        self._accepted = 0
        self._dropped = 0

    def record_accept(self):
        self._accepted += 1

    def record_drop(self):
        self._dropped += 1

    def snapshot(self) -> dict[str, Any]:
        total = self._accepted + self._dropped
        return {
            "accepted": self._accepted,
            "dropped": self._dropped,
            "drop_rate": round(self._dropped / total, 3) if total else 0.0,
        }
