"""
Register/Coil Store
===================

Process-wide state shared between the peripheral worker and the display.

Discipline:
- Single writer (the peripheral worker) for registers, coils and
  limit-switch flags; any number of readers.
- Each slot is one element of a numpy array. A single element load or
  store is atomic under the interpreter lock, so readers never see a torn
  value and never block on a lock.
- No cross-slot snapshot guarantee: a reader may see registers from one
  tick next to a coil from the following tick.
- Pending coil writes are the exception: the display creates them and the
  worker consumes them, so take-and-clear is guarded by a private lock.
  The register/coil read path never touches that lock.

Date: October 2026
License: MIT
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from ..modbus.protocols import ModbusEncoder
from ..modbus.register_map import CoilOffset, ModbusRegisterMap


@dataclass(frozen=True)
class PendingWrite:
    """One outstanding operator request for a cup's FORCED coil."""

    channel: int
    value: bool
    requested_at: float


@dataclass(frozen=True)
class ChannelSnapshot:
    """Per-cup view handed to the display (slots read independently)."""

    channel: int
    registers: np.ndarray
    forced: bool
    blocked: bool
    switch_pressed: bool
    limit_switch_error: bool
    write_pending: bool


class RegisterStore:
    """
    Latest register/coil values plus operator write intents.

    Out-of-range indices raise IndexError: they are programming errors,
    not conditions to recover from.
    """

    def __init__(
        self,
        register_map: Optional[ModbusRegisterMap] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.register_map = register_map or ModbusRegisterMap()
        self.layout = self.register_map.layout
        self._clock = clock

        self._registers = np.zeros(self.layout.register_count, dtype=np.uint16)
        self._coils = np.zeros(self.layout.coil_count, dtype=np.bool_)
        self._limit_switch_errors = np.zeros(self.layout.channels, dtype=np.bool_)

        # Last request time per channel outlives the pending record
        created = self._clock()
        self._requested_at = [created] * self.layout.channels
        self._pending: List[Optional[PendingWrite]] = [None] * self.layout.channels
        self._pending_lock = threading.Lock()

    @property
    def register_count(self) -> int:
        return len(self._registers)

    @property
    def coil_count(self) -> int:
        return len(self._coils)

    @staticmethod
    def _check_index(index: int, size: int, what: str):
        if not 0 <= index < size:
            raise IndexError(f"{what} index {index} out of range [0, {size})")

    # ------------------------------------------------------------------
    # Registers / coils
    # ------------------------------------------------------------------

    def read_register(self, index: int) -> int:
        self._check_index(index, len(self._registers), "Register")
        return int(self._registers[index])

    def write_register(self, index: int, value: int):
        self._check_index(index, len(self._registers), "Register")
        self._registers[index] = ModbusEncoder.uint16_to_register(value)

    def read_coil(self, index: int) -> bool:
        self._check_index(index, len(self._coils), "Coil")
        return bool(self._coils[index])

    def write_coil(self, index: int, value: bool):
        self._check_index(index, len(self._coils), "Coil")
        self._coils[index] = bool(value)

    def update_registers(self, values):
        """Store a full input register block, slot by slot."""
        if len(values) != len(self._registers):
            raise ValueError(
                f"Expected {len(self._registers)} registers, got {len(values)}"
            )
        for index, value in enumerate(values):
            self.write_register(index, value)

    def update_coils(self, values):
        """Store a full coil block, slot by slot."""
        if len(values) != len(self._coils):
            raise ValueError(f"Expected {len(self._coils)} coils, got {len(values)}")
        for index, value in enumerate(values):
            self.write_coil(index, value)

    def channel_registers(self, channel: int) -> np.ndarray:
        """Copy of one cup's raw registers."""
        first = self.register_map.register_index(channel, 0)
        count = self.layout.registers_per_channel
        return np.array(
            [self._registers[i] for i in range(first, first + count)], dtype=np.uint16
        )

    def channel_coil(self, channel: int, offset: CoilOffset) -> bool:
        return self.read_coil(self.register_map.coil_index(channel, offset))

    # ------------------------------------------------------------------
    # Limit-switch inconsistency flags
    # ------------------------------------------------------------------

    def set_limit_switch_error(self, channel: int, value: bool):
        self._check_index(channel, len(self._limit_switch_errors), "Channel")
        self._limit_switch_errors[channel] = bool(value)

    def limit_switch_error(self, channel: int) -> bool:
        self._check_index(channel, len(self._limit_switch_errors), "Channel")
        return bool(self._limit_switch_errors[channel])

    # ------------------------------------------------------------------
    # Pending coil writes
    # ------------------------------------------------------------------

    def request_coil_write(
        self, channel: int, value: bool, now: Optional[float] = None
    ) -> PendingWrite:
        """
        Ask the worker to write `value` to the FORCED coil of `channel`.

        A later request for the same channel replaces an unconsumed one.
        """
        self._check_index(channel, self.layout.channels, "Channel")
        request = PendingWrite(
            channel=channel,
            value=bool(value),
            requested_at=self._clock() if now is None else now,
        )
        with self._pending_lock:
            self._pending[channel] = request
            self._requested_at[channel] = request.requested_at
        return request

    def take_pending_write(self) -> Optional[PendingWrite]:
        """Remove and return the pending write of the lowest channel index."""
        with self._pending_lock:
            for channel, request in enumerate(self._pending):
                if request is not None:
                    self._pending[channel] = None
                    return request
        return None

    def has_pending_write(self, channel: Optional[int] = None) -> bool:
        if channel is None:
            return any(request is not None for request in self._pending)
        self._check_index(channel, self.layout.channels, "Channel")
        return self._pending[channel] is not None

    def last_request_time(self, channel: int) -> float:
        """Time of the latest write request (store creation if none yet)."""
        self._check_index(channel, self.layout.channels, "Channel")
        return self._requested_at[channel]

    # ------------------------------------------------------------------
    # Display view
    # ------------------------------------------------------------------

    def snapshot(self) -> List[ChannelSnapshot]:
        """Per-cup view for the display."""
        return [
            ChannelSnapshot(
                channel=channel,
                registers=self.channel_registers(channel),
                forced=self.channel_coil(channel, CoilOffset.FORCED),
                blocked=self.channel_coil(channel, CoilOffset.BLOCKED),
                switch_pressed=self.channel_coil(channel, CoilOffset.SWITCH_PRESSED),
                limit_switch_error=self.limit_switch_error(channel),
                write_pending=self.has_pending_write(channel),
            )
            for channel in range(self.layout.channels)
        ]
