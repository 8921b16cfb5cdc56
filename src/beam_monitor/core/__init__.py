"""
Core Package
============

Peripheral polling engine for the cup bank.

Components:
- store.py: Register/coil store shared with the display (lock-free reads)
- health.py: Transmission health counter
- monitor.py: Limit-switch inconsistency check
- poller.py: Peripheral worker thread (polling state machine)

Date: October 2026
License: MIT
"""

from .store import ChannelSnapshot, PendingWrite, RegisterStore
from .health import HealthTracker
from .monitor import ChannelMonitor
from .poller import PeripheralWorker, PollerState

__all__ = [
    "ChannelSnapshot",
    "PendingWrite",
    "RegisterStore",
    "HealthTracker",
    "ChannelMonitor",
    "PeripheralWorker",
    "PollerState",
]
