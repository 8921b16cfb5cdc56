"""
Modbus Protocol Encoding/Decoding
==================================

Data conversion utilities between pymodbus responses and store slots.

This module handles ONLY data format conversion:
- Python bools ↔ Modbus coils
- Python ints ↔ 16-bit register values
- Raw registers → calibrated physical current (linear formula)

No protocol logic, no polling, no validation beyond data type.

Date: October 2026
License: MIT
"""

import numpy as np
from typing import List, Sequence, Union


class ModbusEncoder:
    """Encoder for converting Python values to Modbus wire format."""

    @staticmethod
    def uint16_to_register(value: int) -> int:
        """
        Convert Python unsigned int to 16-bit Modbus register.

        Raises:
            ValueError: If value out of range
        """
        if not 0 <= value <= 65535:
            raise ValueError(f"uint16 value {value} out of range [0, 65535]")

        return value

    @staticmethod
    def bool_to_coil(value: bool) -> bool:
        """
        Convert Python value to the coil state handed to pymodbus.

        pymodbus encodes True as 0xFF00 and False as 0x0000 in FC05.
        """
        return bool(value)


class ModbusDecoder:
    """
    Decoder for converting Modbus responses to Python values.

    Performs the inverse operations of ModbusEncoder.
    """

    @staticmethod
    def register_to_uint16(value: int) -> int:
        """
        Mask a register value to 16 bits.

        Args:
            value: Register value as returned by pymodbus

        Returns:
            Unsigned integer in range [0, 65535]
        """
        return int(value) & 0xFFFF

    @staticmethod
    def coil_to_bool(value: int) -> bool:
        """Convert Modbus coil value (0 or non-zero) to Python bool."""
        return bool(value)

    @staticmethod
    def bits_to_bools(bits: Sequence[int], count: int) -> List[bool]:
        """
        Take the first `count` coil states from a bit response.

        FC01 replies are byte-packed, so pymodbus pads `bits` up to a
        multiple of 8. Padding is dropped here.

        Raises:
            ValueError: If the reply carries fewer than `count` bits
        """
        if len(bits) < count:
            raise ValueError(f"Expected {count} coils, got {len(bits)}")

        return [ModbusDecoder.coil_to_bool(b) for b in bits[:count]]


def registers_to_physical(
    registers: Union[Sequence[int], np.ndarray], scale: float, offset: int
) -> np.ndarray:
    """
    Apply the linear calibration formula to raw register values.

    physical = raw * scale + offset

    Args:
        registers: Raw 16-bit register values
        scale: Linear coefficient [µA per count]
        offset: Additive offset [µA]

    Returns:
        Float array of physical readings
    """
    raw = np.asarray(registers, dtype=np.float64)
    return raw * float(scale) + float(offset)


def format_current(value: float) -> str:
    """Format a calibrated current for the operator display."""
    if not np.isfinite(value):
        return "---"
    return f"{value:.1f}μA"
