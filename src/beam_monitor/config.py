"""
Configuration
=============

Dataclasses for the serial line, register layout, poller timing and per-cup
calibration, plus the loader for the plain-text settings file.

Settings file grammar (one statement per line):

    # comment
    Serial Port: /dev/ttyUSB0
    Channel 0: 0.125 -12

'Serial Port' must appear exactly once. 'Channel <n>' lines give the linear
formula (scale, integer offset) of cup n; cups without a line keep the
identity formula. Unrecognized lines are ignored.

Date: October 2026
License: MIT
"""

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .errors import FailureCode, SettingsError
from .modbus.master import SerialConfig
from .modbus.protocols import registers_to_physical
from .modbus.register_map import RegisterLayout

logger = logging.getLogger(__name__)

CONFIGURATION_FILE_NAME = "beam_monitor.cfg"

_PORT_PATTERN = re.compile(r"^\s*Serial Port:\s*(\S+)\s*$", re.IGNORECASE)
_CHANNEL_PATTERN = re.compile(r"^\s*Channel\s+(\d+)\s*:(.*)$", re.IGNORECASE)


@dataclass
class PollerConfig:
    """
    Timing of the peripheral worker.

    Attributes:
        loop_period_sec: Normal tick period
        delay_multiplier_on_error: Period multiplier (and health step) while degraded
        continuous_errors_limit: Consecutive failures that switch to degraded cadence
        wait_step_sec: Sleep between limit-switch checks while waiting for a deadline
        limit_switch_grace_sec: Allowed actuation-to-feedback latency
        startup_delay_sec: Pause before the first tick
        shutdown_timeout_sec: Maximum time stop() waits for the worker
        shutdown_poll_sec: Granularity of the stop() wait
    """

    loop_period_sec: float = 0.050
    delay_multiplier_on_error: int = 10
    continuous_errors_limit: int = 20
    wait_step_sec: float = 0.002
    limit_switch_grace_sec: float = 0.123
    startup_delay_sec: float = 0.1
    shutdown_timeout_sec: float = 1.0
    shutdown_poll_sec: float = 0.020

    def validate(self):
        """Validate timing parameters."""
        if self.loop_period_sec <= 0:
            raise ValueError("Loop period must be positive")

        if self.delay_multiplier_on_error < 1:
            raise ValueError("Delay multiplier must be >= 1")

        if self.continuous_errors_limit < 1:
            raise ValueError("Continuous errors limit must be >= 1")

        if not 0 < self.wait_step_sec <= self.loop_period_sec:
            raise ValueError("Wait step must be in (0, loop_period_sec]")

        if self.limit_switch_grace_sec < 0:
            raise ValueError("Grace period must be non-negative")

        if self.shutdown_poll_sec <= 0 or self.shutdown_timeout_sec < 0:
            raise ValueError("Invalid shutdown timing")

    @property
    def health_max(self) -> int:
        """Upper bound of the transmission health counter."""
        return self.continuous_errors_limit * 5


@dataclass
class ChannelCalibration:
    """Linear conversion of a raw register to a current in µA."""

    scale: float = 1.0
    offset: int = 0

    def to_physical(self, registers: Union[Sequence[int], np.ndarray]) -> np.ndarray:
        """Convert raw registers of one cup to physical currents."""
        return registers_to_physical(registers, self.scale, self.offset)


@dataclass
class Settings:
    """Everything the application needs from configuration."""

    serial: SerialConfig = field(default_factory=SerialConfig)
    layout: RegisterLayout = field(default_factory=RegisterLayout)
    poller: PollerConfig = field(default_factory=PollerConfig)
    calibrations: List[ChannelCalibration] = field(default_factory=list)

    def __post_init__(self):
        missing = self.layout.channels - len(self.calibrations)
        if missing > 0:
            self.calibrations.extend(ChannelCalibration() for _ in range(missing))

    def validate(self):
        """Validate all sections."""
        self.serial.validate()
        self.layout.validate()
        self.poller.validate()

        if len(self.calibrations) != self.layout.channels:
            raise ValueError(
                f"{len(self.calibrations)} calibrations for "
                f"{self.layout.channels} channels"
            )


def default_settings_path() -> Path:
    """Settings file next to the launched script, not the working directory."""
    argv0 = sys.argv[0] if sys.argv and sys.argv[0] else __file__
    try:
        directory = Path(os.path.realpath(argv0)).parent
    except OSError as e:
        raise SettingsError(
            f"Cannot determine application directory: {e}",
            FailureCode.ERROR_SETTINGS_PATH,
        ) from e
    return directory / CONFIGURATION_FILE_NAME


def _parse_calibration(line: str, body: str) -> ChannelCalibration:
    parts = body.split()
    if len(parts) != 2:
        raise SettingsError(
            f"Expected '<scale> <offset>' in line: [{line}]",
            FailureCode.ERROR_SETTINGS_CONVERSION_FORMULA,
        )

    try:
        scale = float(parts[0])
        offset = int(parts[1])
    except ValueError as e:
        raise SettingsError(
            f"Invalid conversion formula in line: [{line}]",
            FailureCode.ERROR_SETTINGS_CONVERSION_FORMULA,
        ) from e

    if not np.isfinite(scale):
        raise SettingsError(
            f"Non-finite scale in line: [{line}]",
            FailureCode.ERROR_SETTINGS_CONVERSION_FORMULA,
        )

    return ChannelCalibration(scale=scale, offset=offset)


def parse_settings(
    lines: Sequence[str],
    layout: Optional[RegisterLayout] = None,
    port_override: Optional[str] = None,
) -> Settings:
    """
    Parse settings file lines.

    A non-empty `port_override` replaces the file's serial port and makes
    the 'Serial Port' line optional.

    Raises:
        SettingsError: Missing or repeated port name, bad conversion formula
    """
    layout = layout or RegisterLayout()
    port: Optional[str] = None
    calibrations: Dict[int, ChannelCalibration] = {}

    for number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        match = _PORT_PATTERN.match(line)
        if match:
            if port is not None:
                raise SettingsError(
                    f"Excessive serial port description in line {number}: [{line}]",
                    FailureCode.ERROR_SETTINGS_EXCESSIVE_PORT_NAME,
                )
            port = match.group(1)
            logger.debug(f"Serial port [{port}] in line {number}")
            continue

        match = _CHANNEL_PATTERN.match(line)
        if match:
            channel = int(match.group(1))
            if channel >= layout.channels:
                raise SettingsError(
                    f"Channel {channel} out of range in line {number}",
                    FailureCode.ERROR_SETTINGS_CONVERSION_FORMULA,
                )
            calibrations[channel] = _parse_calibration(line, match.group(2))
            logger.debug(f"Channel {channel} calibration in line {number}")
            continue

        logger.debug(f"Ignoring line {number}: [{line}]")

    if port_override:
        if port is not None:
            logger.info(f"Serial port [{port}] overridden by [{port_override}]")
        port = port_override

    if port is None:
        raise SettingsError(
            "Serial port description not found", FailureCode.ERROR_SETTINGS_PORT_NAME
        )

    return Settings(
        serial=SerialConfig(port=port),
        layout=layout,
        calibrations=[
            calibrations.get(ch, ChannelCalibration()) for ch in range(layout.channels)
        ],
    )


def load_settings(
    path: Optional[Union[str, Path]] = None,
    layout: Optional[RegisterLayout] = None,
    port_override: Optional[str] = None,
) -> Settings:
    """
    Load settings from `path` (default: next to the application).

    Raises:
        SettingsError: File cannot be opened or its content is invalid
    """
    path = Path(path) if path is not None else default_settings_path()

    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except OSError as e:
        raise SettingsError(
            f"Cannot open settings file {path}: {e}",
            FailureCode.ERROR_SETTINGS_OPENING_FILE,
        ) from e

    logger.info(f"Settings file: {path}")
    return parse_settings(lines, layout, port_override)
