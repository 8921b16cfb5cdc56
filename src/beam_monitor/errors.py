"""
Failure Codes and Exceptions
============================

Startup failure codes (also used as process exit status) and the
exception types raised by the settings loader and the Modbus transport.

Error kinds:
- Settings errors: the configuration could not yield a port name or a
  calibration formula. Fatal at startup.
- Session errors: the Modbus RTU session could not be created or opened.
  Fatal at startup, the peripheral worker is never started.
- Transport errors: timeout, CRC/protocol mismatch, unexpected reply length,
  rejected coil write. Recoverable, consumed by the polling worker.

Date: October 2026
License: MIT
"""

from enum import IntEnum


class FailureCode(IntEnum):
    """Failure codes reported by startup and by the Modbus transport."""

    NO_FAILURE = 0
    ERROR_COMMAND_SYNTAX = 1
    ERROR_SETTINGS_PATH = 2
    ERROR_SETTINGS_OPENING_FILE = 3
    ERROR_SETTINGS_PORT_NAME = 4
    ERROR_SETTINGS_EXCESSIVE_PORT_NAME = 5
    ERROR_SETTINGS_CONVERSION_FORMULA = 6
    ERROR_MODBUS_INITIALIZATION_1 = 7
    ERROR_MODBUS_INITIALIZATION_2 = 8
    ERROR_MODBUS_OPENING = 9
    ERROR_MODBUS_READING = 10
    ERROR_MODBUS_WRITING = 11
    ERROR_MODBUS_FRAME_READ = 12


class BeamMonitorError(Exception):
    """Base class for errors carrying a FailureCode."""

    def __init__(self, message: str, code: FailureCode):
        super().__init__(message)
        self.code = code


class SettingsError(BeamMonitorError, ValueError):
    """Configuration file missing, unreadable or malformed."""


class ModbusSessionError(BeamMonitorError, RuntimeError):
    """Modbus RTU session could not be constructed or opened."""


class ModbusTransportError(BeamMonitorError, IOError):
    """A single Modbus transaction failed (recoverable)."""
