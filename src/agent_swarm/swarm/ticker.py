"""Recurring background callback on a daemon thread."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class MonitorTicker:
    """Calls ``callback`` every ``interval_seconds`` until cancelled.

    Exceptions raised by the callback are logged and the ticker keeps going.
    """

    def __init__(
        self,
        interval_seconds: float,
        callback: Callable[[], None],
        *,
        name: str = "swarm-monitor",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.interval_seconds = interval_seconds
        self._callback = callback
        self._name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name=self._name)
        self._thread.start()
        logger.info("Monitor ticker started (interval=%.1fs)", self.interval_seconds)

    def cancel(self, *, join_timeout: float = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        if thread is not threading.current_thread():
            thread.join(timeout=join_timeout)
        self._thread = None
        logger.info("Monitor ticker stopped")

    def _loop(self) -> None:
        while not self._stop.wait(timeout=self.interval_seconds):
            try:
                self._callback()
            except Exception:
                logger.exception("Monitor tick failed")
