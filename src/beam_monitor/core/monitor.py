"""
Channel Monitor
===============

Free-time check run by the peripheral worker between ticks.

For each cup, the FORCED readout is compared with the SWITCH_PRESSED
readout. Agreement clears the cup's limit-switch flag at once.
Disagreement sets it only after the grace period since the cup's last
write request has elapsed (actuation plus feedback latency).

Date: October 2026
License: MIT
"""

import time
from typing import Callable, Optional

from ..modbus.register_map import CoilOffset
from .store import RegisterStore


class ChannelMonitor:
    """Limit-switch inconsistency detector."""

    def __init__(
        self,
        store: RegisterStore,
        grace_sec: float = 0.123,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.grace_sec = grace_sec
        self._clock = clock

    def check(self, now: Optional[float] = None):
        """Update every cup's limit-switch flag."""
        if now is None:
            now = self._clock()

        for channel in range(self.store.layout.channels):
            forced = self.store.channel_coil(channel, CoilOffset.FORCED)
            pressed = self.store.channel_coil(channel, CoilOffset.SWITCH_PRESSED)

            if forced == pressed:
                self.store.set_limit_switch_error(channel, False)
                continue

            settling = now - self.store.last_request_time(channel)
            self.store.set_limit_switch_error(channel, settling > self.grace_sec)
