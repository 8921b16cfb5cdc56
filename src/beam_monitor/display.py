"""
Display Bridge
==============

Hand-off from the peripheral worker to the display thread.

The worker calls notify() after each register refresh. notify() only
puts a token on a queue; it never touches UI objects. The display thread
calls pump() (directly, or every few milliseconds through Tk's after()
once attach() is used), which drains the queue and runs the registered
refresh callbacks in the display thread.

Date: October 2026
License: MIT
"""

import logging
import queue
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class DisplayBridge:
    """Wake-up channel between the worker and the display event loop."""

    def __init__(self):
        self._wakeups: "queue.SimpleQueue[None]" = queue.SimpleQueue()
        self._callbacks: List[Callable[[], None]] = []
        self._root = None
        self._interval_ms = 20
        self._after_id: Optional[str] = None
        self.refresh_count = 0

    def add_refresh_callback(self, callback: Callable[[], None]):
        """Register a callback run in the display thread on each refresh."""
        self._callbacks.append(callback)

    def notify(self):
        """Signal that device state changed (safe from any thread)."""
        self._wakeups.put(None)

    def pending(self) -> bool:
        return not self._wakeups.empty()

    def pump(self) -> bool:
        """
        Drain pending wake-ups and refresh once.

        Must run in the display thread.

        Returns:
            True if a refresh was performed
        """
        drained = 0
        while True:
            try:
                self._wakeups.get_nowait()
            except queue.Empty:
                break
            drained += 1

        if not drained:
            return False

        self.refresh_count += 1
        for callback in self._callbacks:
            callback()
        return True

    def attach(self, root, interval_ms: int = 20):
        """Pump from the Tk event loop every `interval_ms`."""
        self._root = root
        self._interval_ms = interval_ms
        self._schedule()

    def detach(self):
        if self._root is not None and self._after_id is not None:
            self._root.after_cancel(self._after_id)
        self._after_id = None
        self._root = None

    def _schedule(self):
        if self._root is None:
            return
        self._after_id = self._root.after(self._interval_ms, self._on_timer)

    def _on_timer(self):
        try:
            self.pump()
        except Exception:
            logger.exception("Display refresh failed")
        self._schedule()
