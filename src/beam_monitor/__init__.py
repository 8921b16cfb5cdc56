"""
Beam Monitor
============

Modbus RTU polling engine and operator display for a bank of
instrumented beam-current cups.

Subpackages:
- modbus: RTU master, register layout, decoding
- core: shared store, health tracker, limit-switch monitor, peripheral worker

Date: October 2026
License: MIT
"""

__version__ = "1.0.0"

from .config import ChannelCalibration, PollerConfig, Settings, load_settings
from .errors import (
    FailureCode,
    BeamMonitorError,
    ModbusSessionError,
    ModbusTransportError,
    SettingsError,
)

__all__ = [
    "ChannelCalibration",
    "PollerConfig",
    "Settings",
    "load_settings",
    "FailureCode",
    "BeamMonitorError",
    "ModbusSessionError",
    "ModbusTransportError",
    "SettingsError",
]
