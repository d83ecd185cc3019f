"""Structured logging setup and an in-memory view of recent events."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

_RESERVED_KEYS = frozenset({"event", "level", "timestamp"})


class RecentEvents:
    """Bounded structlog processor that remembers the latest log events.

    Install it with ``configure_logging(recent_events=...)``; it records a
    compact copy of each event and passes the original through untouched.
    """

    def __init__(self, maxlen: int = 1000) -> None:
        self._entries: deque[dict[str, Any]] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        entry = {
            "level": event_dict.get("level", method_name),
            "event": str(event_dict.get("event", "")),
            "timestamp": event_dict.get("timestamp"),
            "context": {k: v for k, v in event_dict.items() if k not in _RESERVED_KEYS},
        }
        with self._lock:
            self._entries.append(entry)
        return event_dict

    def tail(self, count: int = 50) -> list[dict[str, Any]]:
        with self._lock:
            if count <= 0:
                return []
            return list(self._entries)[-count:]

    def filter(self, level: str) -> list[dict[str, Any]]:
        with self._lock:
            return [e for e in self._entries if e["level"] == level]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def configure_logging(
    *,
    log_level: str = "INFO",
    json_logs: bool = False,
    recent_events: RecentEvents | None = None,
) -> None:
    """Configure the global structlog pipeline."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if recent_events is not None:
        processors.append(recent_events)
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    level = getattr(logging, log_level.upper(), logging.INFO)
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
