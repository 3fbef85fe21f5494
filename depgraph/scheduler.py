"""Debounced, non-overlapping re-analysis triggered by file changes."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class AnalysisScheduler:
    """Run ``run`` once changes have been quiet for ``debounce_seconds``.

    Every ``notify_change`` restarts the quiet-period timer.  Runs never
    overlap: a run requested while another is in flight is queued, and any
    number of such requests collapse into a single follow-up run.  Errors
    raised by ``run`` are logged and kept in ``last_error``; they never
    propagate out of the timer thread.
    """

    def __init__(self, run: Callable[[], Any], debounce_seconds: float = 2.0):
        self._run = run
        self.debounce_seconds = debounce_seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._running = False
        self._pending = False
        self._closed = False
        self._idle = threading.Event()
        self._idle.set()
        self.last_error: BaseException | None = None
        self.last_result: Any = None
        self.run_count = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def notify_change(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.debounce_seconds, self._fire)
            timer.args = (timer,)
            timer.daemon = True
            self._timer = timer
            self._idle.clear()
            timer.start()

    def flush(self) -> bool:
        """Run pending work now instead of waiting for the timer.

        Returns False when nothing was pending.
        """
        with self._lock:
            if self._timer is None:
                return False
            self._timer.cancel()
        self._fire()
        return True

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no timer is armed and no run is in flight."""
        return self._idle.wait(timeout)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = False
            if not self._running:
                self._idle.set()

    def _fire(self, timer: threading.Timer | None = None) -> None:
        with self._lock:
            if timer is not None and timer is not self._timer:
                return  # superseded by a later notify_change
            self._timer = None
            if self._closed:
                return
            if self._running:
                self._pending = True
                logger.debug("Analysis in progress; queued a follow-up run")
                return
            self._running = True
        self._run_loop()

    def _run_loop(self) -> None:
        try:
            while True:
                try:
                    self.last_result = self._run()
                    self.last_error = None
                except Exception as exc:
                    logger.exception("Scheduled analysis failed: %s", exc)
                    self.last_error = exc
                finally:
                    self.run_count += 1

                with self._lock:
                    if not self._pending or self._closed:
                        return
                    self._pending = False
        finally:
            with self._lock:
                self._running = False
                if self._timer is None:
                    self._idle.set()
