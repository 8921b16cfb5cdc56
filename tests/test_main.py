"""Tests for startup failure codes."""

from unittest.mock import patch

from beam_monitor.__main__ import main
from beam_monitor.errors import FailureCode, ModbusSessionError


class TestStartup:
    """main() returns a FailureCode value."""

    def test_unknown_argument(self):
        assert main(["--bogus"]) == FailureCode.ERROR_COMMAND_SYNTAX

    def test_missing_settings_file(self, tmp_path):
        result = main(["--config", str(tmp_path / "missing.cfg"), "--no-gui"])
        assert result == FailureCode.ERROR_SETTINGS_OPENING_FILE

    def test_settings_without_port(self, tmp_path):
        path = tmp_path / "beam_monitor.cfg"
        path.write_text("Channel 0: 1 0\n", encoding="utf-8")

        assert main(["--config", str(path), "--no-gui"]) == FailureCode.ERROR_SETTINGS_PORT_NAME

    def test_session_failure_stops_startup(self, tmp_path):
        path = tmp_path / "beam_monitor.cfg"
        path.write_text("Serial Port: /dev/ttyUSB9\n", encoding="utf-8")

        with patch("beam_monitor.__main__.ModbusRtuMaster") as master_cls:
            master_cls.return_value.open.side_effect = ModbusSessionError(
                "cannot open", FailureCode.ERROR_MODBUS_OPENING
            )
            result = main(["--config", str(path), "--no-gui"])

        assert result == FailureCode.ERROR_MODBUS_OPENING
        master_cls.return_value.close.assert_not_called()

    def test_port_override(self, tmp_path):
        path = tmp_path / "beam_monitor.cfg"
        path.write_text("Serial Port: /dev/ttyUSB9\n", encoding="utf-8")

        with patch("beam_monitor.__main__.ModbusRtuMaster") as master_cls:
            master_cls.return_value.open.side_effect = ModbusSessionError(
                "cannot open", FailureCode.ERROR_MODBUS_OPENING
            )
            main(["--config", str(path), "--port", "COM4", "--no-gui"])

        serial_config = master_cls.call_args[0][0]
        assert serial_config.port == "COM4"

    def test_port_override_without_port_line(self, tmp_path):
        path = tmp_path / "beam_monitor.cfg"
        path.write_text("Channel 0: 1 0\n", encoding="utf-8")

        with patch("beam_monitor.__main__.ModbusRtuMaster") as master_cls:
            master_cls.return_value.open.side_effect = ModbusSessionError(
                "cannot open", FailureCode.ERROR_MODBUS_OPENING
            )
            result = main(["--config", str(path), "--port", "COM4", "--no-gui"])

        assert result == FailureCode.ERROR_MODBUS_OPENING
        assert master_cls.call_args[0][0].port == "COM4"
