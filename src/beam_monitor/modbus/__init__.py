"""
Modbus Interface Package
=========================

Modbus RTU master adapter for the cup controller.

Wire side only:
- Serial Modbus RTU master (FC01, FC04, FC05)
- Register/coil layout of the cups
- Data decoding and calibration formula

Polling cadence and link health live in core/.

Modules:
- master.py: serial session and the three function codes
- register_map.py: cup register and coil addresses
- protocols.py: value conversion and calibration

Example:
>>> from beam_monitor.modbus import ModbusRtuMaster, ModbusRegisterMap, SerialConfig
>>>
>>> reg_map = ModbusRegisterMap()
>>> with ModbusRtuMaster(SerialConfig(port="/dev/ttyUSB0")) as master:
...     start, count = reg_map.input_block()
...     raw = master.read_input_registers(start, count)

Requires pymodbus with pyserial (pymodbus[serial]).

Date: October 2026
License: MIT
"""

from .register_map import (
    CoilOffset,
    ModbusRegisterMap,
    RegisterDefinition,
    RegisterLayout,
    RegisterType,
)

from .protocols import ModbusEncoder, ModbusDecoder, format_current, registers_to_physical

from .master import ModbusRtuMaster, SerialConfig

__all__ = [
    # Register mapping
    "CoilOffset",
    "ModbusRegisterMap",
    "RegisterDefinition",
    "RegisterLayout",
    "RegisterType",
    # Encoding/decoding
    "ModbusEncoder",
    "ModbusDecoder",
    "format_current",
    "registers_to_physical",
    # Master
    "ModbusRtuMaster",
    "SerialConfig",
]
