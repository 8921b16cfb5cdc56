"""Tests for the Modbus RTU master (pymodbus client mocked)."""

from unittest.mock import MagicMock, patch

import pytest
from pymodbus import FramerType
from pymodbus.exceptions import ModbusIOException

from beam_monitor.errors import FailureCode, ModbusSessionError, ModbusTransportError
from beam_monitor.modbus import ModbusRtuMaster, SerialConfig


def ok_response(**fields):
    response = MagicMock()
    response.isError.return_value = False
    for name, value in fields.items():
        setattr(response, name, value)
    return response


def error_response():
    response = MagicMock()
    response.isError.return_value = True
    return response


@pytest.fixture
def client_cls():
    with patch("beam_monitor.modbus.master.ModbusSerialClient") as cls:
        cls.return_value.connect.return_value = True
        yield cls


@pytest.fixture
def master(client_cls):
    master = ModbusRtuMaster(SerialConfig(port="/dev/ttyUSB0"))
    master.open()
    return master


@pytest.fixture
def client(master, client_cls):
    return client_cls.return_value


class TestSession:
    """open() / close()."""

    def test_open_uses_reference_profile(self, master, client_cls):
        client_cls.assert_called_once_with(
            port="/dev/ttyUSB0",
            framer=FramerType.RTU,
            baudrate=19200,
            bytesize=8,
            parity="E",
            stopbits=1,
            timeout=0.040,
            retries=0,
        )
        assert master.is_open

    def test_open_is_idempotent(self, master, client_cls):
        master.open()
        assert client_cls.call_count == 1

    def test_client_construction_failure(self, client_cls):
        client_cls.side_effect = ValueError("bad port")
        master = ModbusRtuMaster(SerialConfig(port="COM99"))

        with pytest.raises(ModbusSessionError) as exc_info:
            master.open()

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_INITIALIZATION_1
        assert not master.is_open

    def test_invalid_slave_id(self, client_cls):
        master = ModbusRtuMaster(SerialConfig(port="/dev/ttyUSB0", slave_id=0))

        with pytest.raises(ModbusSessionError) as exc_info:
            master.open()

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_INITIALIZATION_2

    def test_connect_failure(self, client_cls):
        client_cls.return_value.connect.return_value = False
        master = ModbusRtuMaster(SerialConfig(port="/dev/ttyUSB0"))

        with pytest.raises(ModbusSessionError) as exc_info:
            master.open()

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_OPENING
        client_cls.return_value.close.assert_called_once()

    def test_close_is_idempotent(self, master, client):
        master.close()
        master.close()

        client.close.assert_called_once()
        assert not master.is_open

    def test_context_manager(self, client_cls):
        with ModbusRtuMaster(SerialConfig(port="/dev/ttyUSB0")) as master:
            assert master.is_open
        client_cls.return_value.close.assert_called_once()

    def test_transaction_without_session(self):
        master = ModbusRtuMaster(SerialConfig(port="/dev/ttyUSB0"))
        with pytest.raises(ModbusTransportError):
            master.read_coils(1, 9)


class TestReadInputRegisters:
    """FC04."""

    def test_success(self, master, client):
        client.read_input_registers.return_value = ok_response(registers=[1, 2, 3])

        assert master.read_input_registers(3001, 3) == [1, 2, 3]
        client.read_input_registers.assert_called_once_with(3001, count=3, device_id=1)

    def test_error_response(self, master, client):
        client.read_input_registers.return_value = error_response()

        with pytest.raises(ModbusTransportError) as exc_info:
            master.read_input_registers(3001, 3)

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_READING

    def test_timeout(self, master, client):
        client.read_input_registers.side_effect = ModbusIOException("no response")

        with pytest.raises(ModbusTransportError) as exc_info:
            master.read_input_registers(3001, 3)

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_READING

    def test_wrong_count(self, master, client):
        client.read_input_registers.return_value = ok_response(registers=[1, 2])

        with pytest.raises(ModbusTransportError) as exc_info:
            master.read_input_registers(3001, 3)

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_FRAME_READ


class TestReadCoils:
    """FC01."""

    def test_padding_dropped(self, master, client):
        bits = [True, False, True] + [False] * 5
        client.read_coils.return_value = ok_response(bits=bits)

        assert master.read_coils(1, 3) == [True, False, True]
        client.read_coils.assert_called_once_with(1, count=3, device_id=1)

    def test_short_reply(self, master, client):
        client.read_coils.return_value = ok_response(bits=[True] * 8)

        with pytest.raises(ModbusTransportError) as exc_info:
            master.read_coils(1, 9)

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_FRAME_READ

    def test_error_response(self, master, client):
        client.read_coils.return_value = error_response()

        with pytest.raises(ModbusTransportError):
            master.read_coils(1, 9)


class TestWriteSingleCoil:
    """FC05."""

    def test_acknowledged(self, master, client):
        client.write_coil.return_value = ok_response(address=4, bits=[True])

        master.write_single_coil(4, True)
        client.write_coil.assert_called_once_with(4, True, device_id=1)

    def test_echo_mismatch(self, master, client):
        client.write_coil.return_value = ok_response(address=4, bits=[False])

        with pytest.raises(ModbusTransportError) as exc_info:
            master.write_single_coil(4, True)

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_WRITING

    def test_wrong_address_echo(self, master, client):
        client.write_coil.return_value = ok_response(address=5, bits=[True])

        with pytest.raises(ModbusTransportError):
            master.write_single_coil(4, True)

    def test_exception_response(self, master, client):
        client.write_coil.return_value = error_response()

        with pytest.raises(ModbusTransportError) as exc_info:
            master.write_single_coil(4, False)

        assert exc_info.value.code is FailureCode.ERROR_MODBUS_WRITING
