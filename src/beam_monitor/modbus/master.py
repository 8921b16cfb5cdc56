"""
Modbus RTU Master
=================

Owns the serial Modbus RTU session towards the single cup controller.

Each method is one synchronous request/response. Success returns data,
any failure raises ModbusTransportError. There are no retries here:
whether to keep trying is the polling worker's decision.

Date: October 2026
License: MIT
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from pymodbus import FramerType
from pymodbus.client import ModbusSerialClient
from pymodbus.exceptions import ModbusException

from ..errors import FailureCode, ModbusSessionError, ModbusTransportError
from .protocols import ModbusDecoder, ModbusEncoder

logger = logging.getLogger(__name__)


@dataclass
class SerialConfig:
    """Serial line and Modbus session parameters (19200-8E1, slave 1)."""

    port: str = ""
    baudrate: int = 19200
    parity: str = "E"
    bytesize: int = 8
    stopbits: int = 1
    slave_id: int = 1
    response_timeout_sec: float = 0.040

    def validate(self):
        """Validate serial parameters."""
        if not self.port:
            raise ValueError("Serial port name is empty")

        if self.parity not in ("N", "E", "O"):
            raise ValueError(f"Unknown parity: {self.parity}")

        if self.bytesize not in (7, 8):
            raise ValueError(f"Unsupported byte size: {self.bytesize}")

        if self.stopbits not in (1, 2):
            raise ValueError(f"Unsupported stop bits: {self.stopbits}")

        if self.response_timeout_sec <= 0:
            raise ValueError("Response timeout must be positive")


class ModbusRtuMaster:
    """
    Modbus RTU master bound to one serial port and one slave id.

    Not thread-safe: the peripheral worker is its only user.
    """

    def __init__(self, config: SerialConfig):
        """Initialize master (does not touch the serial port)."""
        self.config = config
        self.encoder = ModbusEncoder()
        self.decoder = ModbusDecoder()
        self._client: Optional[ModbusSerialClient] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def open(self):
        """
        Create the pymodbus client and open the serial line.

        Raises:
            ModbusSessionError: If the client cannot be built, the slave id
                is invalid, or the port cannot be opened
        """
        if self._client is not None:
            return

        cfg = self.config

        try:
            client = ModbusSerialClient(
                port=cfg.port,
                framer=FramerType.RTU,
                baudrate=cfg.baudrate,
                bytesize=cfg.bytesize,
                parity=cfg.parity,
                stopbits=cfg.stopbits,
                timeout=cfg.response_timeout_sec,
                retries=0,
            )
        except Exception as e:
            logger.error(f"Cannot create Modbus RTU client: {e}")
            raise ModbusSessionError(
                f"Cannot create Modbus RTU client for {cfg.port}",
                FailureCode.ERROR_MODBUS_INITIALIZATION_1,
            ) from e

        # Slave ids 1-247 are addressable on a serial line
        if not 1 <= cfg.slave_id <= 247:
            logger.error(f"Invalid slave id: {cfg.slave_id}")
            client.close()
            raise ModbusSessionError(
                f"Invalid slave id {cfg.slave_id}",
                FailureCode.ERROR_MODBUS_INITIALIZATION_2,
            )

        if not client.connect():
            logger.error(f"Modbus connection failed on {cfg.port}")
            client.close()
            raise ModbusSessionError(
                f"Cannot open serial port {cfg.port}",
                FailureCode.ERROR_MODBUS_OPENING,
            )

        self._client = client
        logger.info(
            f"Modbus RTU opened: {cfg.port} {cfg.baudrate}-{cfg.bytesize}"
            f"{cfg.parity}{cfg.stopbits}, slave_id={cfg.slave_id}, "
            f"timeout={cfg.response_timeout_sec * 1000:.0f}ms"
        )

    def close(self):
        """Release the serial handle (idempotent)."""
        client, self._client = self._client, None
        if client is None:
            return

        client.close()
        logger.info("Modbus RTU closed")

    def _require_client(self) -> ModbusSerialClient:
        if self._client is None:
            raise ModbusTransportError(
                "Modbus session is not open", FailureCode.ERROR_MODBUS_READING
            )
        return self._client

    def read_input_registers(self, start: int, count: int) -> List[int]:
        """
        Read `count` input registers (FC 04) starting at `start`.

        Raises:
            ModbusTransportError: timeout, CRC/protocol error, wrong count
        """
        client = self._require_client()

        try:
            response = client.read_input_registers(
                start, count=count, device_id=self.config.slave_id
            )
        except ModbusException as e:
            raise ModbusTransportError(
                f"Input register read failed: {e}", FailureCode.ERROR_MODBUS_READING
            ) from e

        if response.isError():
            raise ModbusTransportError(
                f"Input register read failed: {response}",
                FailureCode.ERROR_MODBUS_READING,
            )

        registers = response.registers
        if len(registers) != count:
            raise ModbusTransportError(
                f"Unexpected register count: got {len(registers)}, expected {count}",
                FailureCode.ERROR_MODBUS_FRAME_READ,
            )

        return [self.decoder.register_to_uint16(r) for r in registers]

    def read_coils(self, start: int, count: int) -> List[bool]:
        """
        Read `count` coils (FC 01) starting at `start`.

        Raises:
            ModbusTransportError: timeout, CRC/protocol error, short reply
        """
        client = self._require_client()

        try:
            response = client.read_coils(
                start, count=count, device_id=self.config.slave_id
            )
        except ModbusException as e:
            raise ModbusTransportError(
                f"Coil read failed: {e}", FailureCode.ERROR_MODBUS_READING
            ) from e

        if response.isError():
            raise ModbusTransportError(
                f"Coil read failed: {response}", FailureCode.ERROR_MODBUS_READING
            )

        try:
            return self.decoder.bits_to_bools(response.bits, count)
        except ValueError as e:
            raise ModbusTransportError(
                f"Unexpected coil count: {e}", FailureCode.ERROR_MODBUS_FRAME_READ
            ) from e

    def write_single_coil(self, address: int, value: bool):
        """
        Write one coil (FC 05).

        Raises:
            ModbusTransportError: no acknowledgement or a mismatching echo
        """
        client = self._require_client()
        state = self.encoder.bool_to_coil(value)

        try:
            response = client.write_coil(
                address, state, device_id=self.config.slave_id
            )
        except ModbusException as e:
            raise ModbusTransportError(
                f"Coil write failed: {e}", FailureCode.ERROR_MODBUS_WRITING
            ) from e

        if response.isError():
            raise ModbusTransportError(
                f"Coil write failed: {response}", FailureCode.ERROR_MODBUS_WRITING
            )

        # FC05 echoes address and value of the single written bit
        echoed = list(response.bits or [])
        if (
            response.address != address
            or not echoed
            or self.decoder.coil_to_bool(echoed[0]) != state
        ):
            raise ModbusTransportError(
                f"Coil write not acknowledged at {address}",
                FailureCode.ERROR_MODBUS_WRITING,
            )
