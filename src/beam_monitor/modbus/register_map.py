"""
Modbus Register Map
===================

Defines where each cup's data lives in the slave's address space.

This module contains ONLY the register layout - it does not:
- Talk to the serial port
- Hold the latest values
- Decide when to poll

Layout:
- Input Registers (FC 04): `registers_per_channel` raw 16-bit readings per
  cup, contiguous, starting at `input_register_address`
- Coils (FC 01/05): `coils_per_channel` bits per cup, contiguous, starting at
  `coil_address`, ordered [FORCED, BLOCKED, SWITCH_PRESSED]

Flat slot index of a value = channel * slots_per_channel + slot_offset.
Wire address = base address + flat slot index.

Date: October 2026
License: MIT
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
from enum import IntEnum


class RegisterType(IntEnum):
    """Modbus data tables used by the cups."""

    COIL = 0  # Discrete output (read/write)
    INPUT_REGISTER = 3  # Analog input (read-only)


class CoilOffset(IntEnum):
    """Position of each coil inside a cup's coil slice."""

    FORCED = 0  # Actuation request (written by the operator)
    BLOCKED = 1  # Cup locked out by the device
    SWITCH_PRESSED = 2  # Limit-switch feedback (cup inserted)


@dataclass
class RegisterLayout:
    """
    Geometry of the shared register/coil space.

    Attributes:
        channels: Number of cups multiplexed over the slave
        registers_per_channel: Input registers per cup
        coils_per_channel: Coils per cup (at least len(CoilOffset))
        visible_registers: Leading registers of each cup shown on the display
        input_register_address: Wire address of the first input register
        coil_address: Wire address of the first coil
    """

    channels: int = 3
    registers_per_channel: int = 5
    coils_per_channel: int = 3
    visible_registers: int = 3
    input_register_address: int = 3001
    coil_address: int = 1

    def validate(self):
        """Validate layout geometry."""
        if self.channels < 1:
            raise ValueError(f"At least one channel required, got {self.channels}")

        if self.registers_per_channel < 1:
            raise ValueError("registers_per_channel must be positive")

        if self.coils_per_channel < len(CoilOffset):
            raise ValueError(
                f"coils_per_channel must be >= {len(CoilOffset)}, "
                f"got {self.coils_per_channel}"
            )

        if not 0 <= self.visible_registers <= self.registers_per_channel:
            raise ValueError("visible_registers must be within registers_per_channel")

        # 125 registers / 2000 coils per request (Modbus application protocol)
        if self.register_count > 125:
            raise ValueError(f"{self.register_count} registers exceed one FC04 request")

        if self.coil_count > 2000:
            raise ValueError(f"{self.coil_count} coils exceed one FC01 request")

        if self.input_register_address + self.register_count > 65536:
            raise ValueError("Input register block exceeds address space")

        if self.coil_address + self.coil_count > 65536:
            raise ValueError("Coil block exceeds address space")

    @property
    def register_count(self) -> int:
        """Total input registers read in one request."""
        return self.channels * self.registers_per_channel

    @property
    def coil_count(self) -> int:
        """Total coils read in one request."""
        return self.channels * self.coils_per_channel


@dataclass
class RegisterDefinition:
    """
    Definition of a single cup register or coil.

    Attributes:
        address: Wire address sent to the slave
        index: Flat slot index in the local store
        channel: Cup index
        name: Human-readable identifier
        register_type: Coil or input register
        description: What this point represents
    """

    address: int
    index: int
    channel: int
    name: str
    register_type: RegisterType
    description: str


class ModbusRegisterMap:
    """
    Complete register map for the cup bank.

    It only defines WHERE data goes in the Modbus address space and how
    a (channel, offset) pair maps to a flat store index.
    """

    def __init__(self, layout: Optional[RegisterLayout] = None):
        """Initialize register map for the given layout."""
        self.layout = layout or RegisterLayout()
        self.layout.validate()

        self.input_registers: List[RegisterDefinition] = []
        self.coils: List[RegisterDefinition] = []

        self._define_input_registers()
        self._define_coils()

    def _define_input_registers(self):
        for channel in range(self.layout.channels):
            for slot in range(self.layout.registers_per_channel):
                index = self.register_index(channel, slot)
                self.input_registers.append(
                    RegisterDefinition(
                        address=self.layout.input_register_address + index,
                        index=index,
                        channel=channel,
                        name=f"cup{channel}_value{slot}",
                        register_type=RegisterType.INPUT_REGISTER,
                        description=f"Raw reading {slot} of cup {channel}",
                    )
                )

    def _define_coils(self):
        for channel in range(self.layout.channels):
            for slot in range(self.layout.coils_per_channel):
                index = channel * self.layout.coils_per_channel + slot
                try:
                    label = CoilOffset(slot).name.lower()
                except ValueError:
                    label = f"spare{slot}"
                self.coils.append(
                    RegisterDefinition(
                        address=self.layout.coil_address + index,
                        index=index,
                        channel=channel,
                        name=f"cup{channel}_{label}",
                        register_type=RegisterType.COIL,
                        description=f"Coil '{label}' of cup {channel}",
                    )
                )

    def _check_channel(self, channel: int):
        if not 0 <= channel < self.layout.channels:
            raise IndexError(
                f"Channel {channel} out of range [0, {self.layout.channels})"
            )

    def register_index(self, channel: int, slot: int) -> int:
        """Flat store index of input register `slot` of `channel`."""
        self._check_channel(channel)
        if not 0 <= slot < self.layout.registers_per_channel:
            raise IndexError(f"Register slot {slot} out of range")
        return channel * self.layout.registers_per_channel + slot

    def coil_index(self, channel: int, offset: int) -> int:
        """Flat store index of coil `offset` of `channel`."""
        self._check_channel(channel)
        if not 0 <= offset < self.layout.coils_per_channel:
            raise IndexError(f"Coil offset {offset} out of range")
        return channel * self.layout.coils_per_channel + offset

    def coil_address(self, channel: int, offset: int) -> int:
        """Wire address of coil `offset` of `channel`."""
        return self.layout.coil_address + self.coil_index(channel, offset)

    def input_block(self) -> Tuple[int, int]:
        """(start address, count) of the single input register request."""
        return self.layout.input_register_address, self.layout.register_count

    def coil_block(self) -> Tuple[int, int]:
        """(start address, count) of the single coil request."""
        return self.layout.coil_address, self.layout.coil_count

    def coil(self, channel: int, offset: int) -> RegisterDefinition:
        """Definition of coil `offset` of `channel`."""
        return self.coils[self.coil_index(channel, offset)]
