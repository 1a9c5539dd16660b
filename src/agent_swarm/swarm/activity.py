"""Activity log: user-visible swarm events with bounded in-memory retention."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol
from uuid import uuid4

from agent_swarm.storage.common import utc_now
from agent_swarm.swarm.models import ActivityLogEntry, LogLevel

logger = logging.getLogger(__name__)

_LOGGING_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

ActivitySubscriber = Callable[[ActivityLogEntry], None]


class ActivitySink(Protocol):
    """Fire-and-forget destination for activity events."""

    def add_log(
        self,
        level: LogLevel,
        message: str,
        *,
        task_id: str | None = None,
        project_id: str | None = None,
        agent_id: str | None = None,
        run_id: str | None = None,
        source: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLogEntry | None: ...


class ActivityPersistence(Protocol):
    def add_activity(self, entry: ActivityLogEntry) -> None: ...


class ActivityLog:
    """In-memory activity log with subscribers and optional persistence.

    Every entry is mirrored to this module's logger at the matching level.
    Subscriber and persistence failures are logged and never propagate to
    the caller.
    """

    def __init__(
        self,
        *,
        retention: int = 10_000,
        repository: ActivityPersistence | None = None,
    ) -> None:
        if retention <= 0:
            raise ValueError("retention must be a positive integer")
        self._entries: deque[ActivityLogEntry] = deque(maxlen=retention)
        self._subscribers: list[ActivitySubscriber] = []
        self._repository = repository
        self._lock = threading.RLock()

    def add_log(
        self,
        level: LogLevel,
        message: str,
        *,
        task_id: str | None = None,
        project_id: str | None = None,
        agent_id: str | None = None,
        run_id: str | None = None,
        source: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            entry_id=f"log_{uuid4().hex[:12]}",
            timestamp=utc_now(),
            level=level,
            message=message,
            task_id=task_id,
            project_id=project_id,
            agent_id=agent_id,
            run_id=run_id,
            source=source,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._entries.append(entry)
            subscribers = list(self._subscribers)

        logger.log(
            _LOGGING_LEVELS[level],
            "[%s] %s",
            source or "swarm",
            message,
            extra={"task_id": task_id, "agent_id": agent_id},
        )
        if self._repository is not None:
            try:
                self._repository.add_activity(entry)
            except Exception:
                logger.exception("Failed to persist activity entry %s", entry.entry_id)
        for subscriber in subscribers:
            try:
                subscriber(entry)
            except Exception:
                logger.exception("Activity subscriber failed")
        return entry

    def subscribe(self, callback: ActivitySubscriber) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""

        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def entries(
        self,
        *,
        task_id: str | None = None,
        level: LogLevel | None = None,
        limit: int | None = None,
    ) -> list[ActivityLogEntry]:
        """Return retained entries oldest first, optionally filtered."""

        with self._lock:
            items = list(self._entries)
        if task_id is not None:
            items = [item for item in items if item.task_id == task_id]
        if level is not None:
            items = [item for item in items if item.level == level]
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
