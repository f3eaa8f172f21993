from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

AUTOSAVE_INTERVAL = 10.0


class AutoSaver:
    """Periodic save of an editing session, owned by that session.

    ``tick`` is the whole policy: once the interval has elapsed since the
    last check it saves, but only when the session has unsaved changes.
    ``start``/``stop`` drive it from a daemon ``threading.Timer`` chain;
    tests call ``tick`` directly with explicit timestamps.
    """

    def __init__(self, session, interval: float = AUTOSAVE_INTERVAL,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.session = session
        self.interval = interval
        self._clock = clock
        self._last_check = clock()
        self._timer: Optional[threading.Timer] = None
        self._running = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def tick(self, now: Optional[float] = None) -> bool:
        """Save if due and dirty; returns True when a save happened."""
        now = self._clock() if now is None else now
        if now - self._last_check < self.interval:
            return False
        self._last_check = now
        if not self.session.has_unsaved_changes:
            return False
        self.session.save()
        logger.info("Auto-saved note")
        return True

    def _run(self) -> None:
        try:
            self.tick()
        except Exception as e:
            logger.error(f"Auto-save failed: {e}")
        with self._lock:
            if self._running:
                self._schedule()

    def _schedule(self) -> None:
        self._timer = threading.Timer(self.interval, self._run)
        self._timer.daemon = True
        self._timer.start()

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._last_check = self._clock()
            self._schedule()
        logger.debug(f"Auto-save started (every {self.interval:g}s)")

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.debug("Auto-save stopped")
