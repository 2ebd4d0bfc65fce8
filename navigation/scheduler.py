"""
Stepgate — Deferred Scheduling

Completing a step is two-phase: the controller records the completion
and flags a pending advance, then the advance itself runs one tick later
against freshly computed statuses. A scheduler decides when "one tick
later" is.

  - SettleQueue:        the host calls settle() once per update cycle
  - EventLoopScheduler: asyncio loop.call_soon, for asyncio hosts
"""

from __future__ import annotations

import abc
import asyncio
import logging
from collections import deque
from typing import Callable

logger = logging.getLogger("stepgate.scheduler")

Deferred = Callable[[], None]


class DeferredScheduler(abc.ABC):
    """Runs callables after the current unit of work has finished."""

    @abc.abstractmethod
    def defer(self, fn: Deferred, label: str = "") -> None:
        ...

    def drain(self) -> int:
        """Run whatever is queued now. Returns the number of callables run."""
        return 0

    @property
    def pending(self) -> int:
        return 0


class SettleQueue(DeferredScheduler):
    """
    FIFO of deferred callables, drained explicitly.

    Callables deferred while draining run in the same drain.
    """

    def __init__(self):
        self._queue: deque[tuple[str, Deferred]] = deque()

    def defer(self, fn: Deferred, label: str = "") -> None:
        self._queue.append((label, fn))

    def drain(self) -> int:
        ran = 0
        while self._queue:
            label, fn = self._queue.popleft()
            logger.debug("Running deferred %s", label or fn)
            fn()
            ran += 1
        return ran

    @property
    def pending(self) -> int:
        return len(self._queue)


class EventLoopScheduler(DeferredScheduler):
    """Defers onto an asyncio event loop with call_soon."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def defer(self, fn: Deferred, label: str = "") -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_soon(fn)
