"""
Stepgate — Structured Logging with Session Trace IDs

Emits JSON log lines for navigation events. Every entry written through
NavigationEventLogger carries the session's trace_id so one user's walk
through a workflow can be followed end to end.

Usage:
    from gating.logging import NavigationEventLogger, configure_logging

    configure_logging(level="INFO")
    events = NavigationEventLogger(workflow="onboarding")
    controller = NavigationController(steps, event_logger=events)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from typing import Any

ROOT_LOGGER = "stepgate"


# ═══════════════════════════════════════════════════════════════════
# JSON Formatter
# ═══════════════════════════════════════════════════════════════════

class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON lines.

    Fields: timestamp, level, logger, message, service.name,
    service.version, plus anything attached as `record.structured`.
    """

    def __init__(self, service_name: str = "stepgate"):
        super().__init__()
        self.service_name = service_name
        self.service_version = os.environ.get("SG_VERSION", "0.1.0")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service.name": self.service_name,
            "service.version": self.service_version,
        }

        if hasattr(record, "structured"):
            entry.update(record.structured)

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception.type"] = record.exc_info[0].__name__
            entry["exception.message"] = str(record.exc_info[1])

        return json.dumps(entry, default=str)


# ═══════════════════════════════════════════════════════════════════
# Log Configuration
# ═══════════════════════════════════════════════════════════════════

def configure_logging(
    level: str = "INFO",
    stream: Any = None,
    fmt: str = "json",
    service_name: str = "stepgate",
) -> logging.Logger:
    """
    Configure the stepgate logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR
        stream: Output stream (default: sys.stderr)
        fmt: "json" for JSON lines, "text" for plain lines
        service_name: Service name in JSON entries

    Returns:
        The configured stepgate root logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    logger.handlers.clear()

    # Children inherit from the root logger
    for name in list(logging.Logger.manager.loggerDict.keys()):
        if name.startswith(f"{ROOT_LOGGER}."):
            child = logging.getLogger(name)
            child.handlers.clear()
            child.setLevel(logging.NOTSET)

    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt == "text":
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = "") -> logging.Logger:
    """Get a child logger under the stepgate namespace."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)


def generate_trace_id() -> str:
    """32 hex chars, one per navigation session."""
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════════
# Navigation Event Logger
# ═══════════════════════════════════════════════════════════════════

class NavigationEventLogger:
    """
    Structured logger for navigation events.

    The controller calls one method per event. Each entry includes the
    session trace_id and workflow name.
    """

    def __init__(self, workflow: str = "", trace_id: str | None = None):
        self.workflow = workflow
        self.trace_id = trace_id or generate_trace_id()
        self._logger = get_logger("navigation")

    def _emit(self, level: int, action: str, **fields):
        if not self._logger.isEnabledFor(level):
            return
        structured = {
            "trace_id": self.trace_id,
            "workflow": self.workflow,
            "action": action,
            **fields,
        }
        record = self._logger.makeRecord(
            name=self._logger.name,
            level=level,
            fn="", lno=0, msg=action,
            args=(), exc_info=None,
        )
        record.structured = structured
        self._logger.handle(record)

    def on_session_start(self, step_count: int, current_step: str | None) -> None:
        self._emit(
            logging.INFO, "session_start",
            step_count=step_count,
            current_step=current_step,
        )

    def on_step_changed(self, from_step: str | None, to_step: str, reason: str) -> None:
        self._emit(
            logging.INFO, "step_changed",
            from_step=from_step,
            to_step=to_step,
            reason=reason,
        )

    def on_navigation_rejected(self, step_id: str, reason: str) -> None:
        self._emit(
            logging.DEBUG, "navigation_rejected",
            step_id=step_id,
            reason=reason,
        )

    def on_step_completed(self, step_id: str, has_data: bool, is_last: bool) -> None:
        self._emit(
            logging.INFO, "step_completed",
            step_id=step_id,
            has_data=has_data,
            is_last=is_last,
        )

    def on_advance_resolved(self, from_step: str | None, to_step: str | None) -> None:
        self._emit(
            logging.INFO, "advance_resolved",
            from_step=from_step,
            to_step=to_step,
            advanced=to_step is not None,
        )

    def on_step_reset(self, step_id: str, cleared: list[str]) -> None:
        self._emit(
            logging.INFO, "step_reset",
            step_id=step_id,
            cleared=cleared,
        )

    def on_callback_error(self, callback: str, error: Exception) -> None:
        self._emit(
            logging.WARNING, "callback_error",
            callback=callback,
            error_type=type(error).__name__,
            error=str(error)[:500],
        )
