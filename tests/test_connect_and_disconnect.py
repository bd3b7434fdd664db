"""Tests for connection lifecycle."""

import pytest

from fakes.fake_serial import FakeSerial
from serial_monitor_lib.controller import SerialMonitorController
from serial_monitor_lib.errors import (
    ConfigError,
    InvalidConfigValue,
    NoPortSelected,
    SerialIOError,
    TransportOpenError,
)
from serial_monitor_lib.models import ConnectionConfig, ConnectionState, PortInfo
from serial_monitor_lib.transport import Transport


def test_connect_with_injected_port() -> None:
    """connect() starts the reader and transitions to CONNECTED."""
    fake_serial = FakeSerial()
    controller = SerialMonitorController()

    controller.connect(port="/dev/fake", serial_port=fake_serial)

    assert controller.state == ConnectionState.CONNECTED
    assert controller.is_connected()
    assert controller.port_name == "/dev/fake"
    assert controller.config == ConnectionConfig(baud=115200)
    assert "Connected\n" in controller.log.text

    controller.disconnect()
    assert controller.state == ConnectionState.DISCONNECTED


def test_connect_releases_dtr_and_rts() -> None:
    """DTR and RTS are driven low on connect so the board is not reset."""
    fake_serial = FakeSerial()
    controller = SerialMonitorController()

    controller.connect(serial_port=fake_serial)

    assert fake_serial.dtr is False
    assert fake_serial.rts is False
    assert ("dtr", False) in fake_serial.control_history
    assert ("rts", False) in fake_serial.control_history
    assert ("dtr", True) not in fake_serial.control_history
    assert fake_serial.reset_count == 0

    controller.disconnect()


def test_connect_discards_stale_input() -> None:
    """Bytes buffered before connect never reach the log."""
    fake_serial = FakeSerial()
    fake_serial.feed("stale boot noise\n")
    controller = SerialMonitorController()

    controller.connect(serial_port=fake_serial)

    assert fake_serial.input_resets >= 1
    assert fake_serial.output_resets >= 1
    controller.update()
    assert "stale boot noise" not in controller.log.text

    controller.disconnect()


def test_connect_without_port_fails() -> None:
    """An empty port name is a configuration error and leaves the controller disconnected."""
    controller = SerialMonitorController()

    for port in ("", None):
        with pytest.raises(NoPortSelected):
            controller.connect(port=port)
        assert controller.state == ConnectionState.DISCONNECTED

    assert issubclass(NoPortSelected, ConfigError)
    assert "Select one port." in controller.log.text


def test_connect_open_failure(monkeypatch) -> None:
    """Open failures surface as TransportOpenError with the driver's detail."""
    def failing_open(port, config):
        raise TransportOpenError(f"Failed to open {port} at {config.baud} baud: Permission denied")

    monkeypatch.setattr(Transport, "open", failing_open)
    controller = SerialMonitorController()

    with pytest.raises(TransportOpenError, match="Permission denied"):
        controller.connect(port="/dev/ttyUSB0", baud=9600)

    assert controller.state == ConnectionState.DISCONNECTED
    assert "Failed:" in controller.log.text


def test_connect_accepts_port_info(monkeypatch) -> None:
    """A PortInfo from list_ports() can be passed straight to connect()."""
    fake_serial = FakeSerial()
    opened = []

    def fake_open(port, config):
        opened.append(port)
        return Transport(fake_serial, name=port)

    monkeypatch.setattr(Transport, "open", fake_open)
    controller = SerialMonitorController()

    controller.connect(port=PortInfo("/dev/ttyACM0", "Arduino Uno"))

    assert opened == ["/dev/ttyACM0"]
    assert controller.port_name == "/dev/ttyACM0"
    controller.disconnect()


def test_open_nonexistent_port() -> None:
    """A real open of a missing device is reported, not crashed on."""
    controller = SerialMonitorController()

    with pytest.raises(TransportOpenError):
        controller.connect(port="/dev/serial-monitor-does-not-exist")

    assert controller.state == ConnectionState.DISCONNECTED


def test_injected_port_control_line_failure() -> None:
    fake_serial = FakeSerial()
    fake_serial.fail_control_lines = True
    controller = SerialMonitorController()

    with pytest.raises(TransportOpenError):
        controller.connect(serial_port=fake_serial)

    assert controller.state == ConnectionState.DISCONNECTED


def test_invalid_baud() -> None:
    controller = SerialMonitorController()

    with pytest.raises(InvalidConfigValue):
        controller.connect(serial_port=FakeSerial(), baud=0)

    assert controller.state == ConnectionState.DISCONNECTED


def test_double_connect_raises() -> None:
    fake_serial = FakeSerial()
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)

    with pytest.raises(SerialIOError):
        controller.connect(serial_port=FakeSerial())

    controller.disconnect()


def test_disconnect_closes_port_and_stops_reader() -> None:
    fake_serial = FakeSerial()
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)
    reader = controller._reader

    controller.disconnect()

    assert not fake_serial.is_open
    assert reader is not None and not reader.is_alive()
    assert controller.port_name is None
    assert controller.config is None
    assert controller.log.text.endswith("Disconnected\n")


def test_disconnect_is_idempotent() -> None:
    controller = SerialMonitorController()
    controller.disconnect()  # never connected

    controller.connect(serial_port=FakeSerial())
    controller.disconnect()
    log_after_first = controller.log.text

    controller.disconnect()

    assert controller.state == ConnectionState.DISCONNECTED
    assert controller.log.text == log_after_first


def test_reconnect_uses_fresh_reader() -> None:
    controller = SerialMonitorController()

    controller.connect(serial_port=FakeSerial())
    first_reader = controller._reader
    controller.disconnect()

    controller.connect(serial_port=FakeSerial())
    second_reader = controller._reader

    assert second_reader is not first_reader
    assert first_reader is not None and not first_reader.is_alive()
    assert second_reader is not None and second_reader.is_alive()

    controller.disconnect()


def test_config_is_immutable() -> None:
    config = ConnectionConfig(baud=9600)

    with pytest.raises(Exception):
        config.baud = 115200  # type: ignore[misc]
