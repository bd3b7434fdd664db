"""Tests for error handling and edge cases."""

import time

import pytest

from fakes.fake_serial import FakeSerial
from serial_monitor_lib.controller import SerialMonitorController
from serial_monitor_lib.errors import TransportWriteError, WriteFailed
from serial_monitor_lib.models import ConnectionState


def test_write_failure_keeps_connection() -> None:
    """A failed send is reported for that send only."""
    fake_serial = FakeSerial()
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)

    fake_serial.fail_writes = True
    with pytest.raises(TransportWriteError):
        controller.send("hello")

    assert WriteFailed is TransportWriteError
    assert controller.state == ConnectionState.CONNECTED
    assert "Send:" not in controller.log.text

    fake_serial.fail_writes = False
    controller.send("hello")
    assert bytes(fake_serial.written) == b"hello"

    controller.disconnect()


def test_reset_failure_is_swallowed() -> None:
    fake_serial = FakeSerial()
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)

    fake_serial.fail_control_lines = True
    controller.reset()  # must not raise

    assert "Reset failed" in controller.log.text
    assert controller.state == ConnectionState.CONNECTED

    fake_serial.fail_control_lines = False
    controller.disconnect()


def test_read_error_is_logged_and_not_fatal() -> None:
    fake_serial = FakeSerial()
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)

    fake_serial.read_errors_pending = 1

    deadline = time.time() + 2.0
    while "Error: " not in controller.log.text and time.time() < deadline:
        controller.update()
        time.sleep(0.01)
    assert "Error: " in controller.log.text
    assert controller.state == ConnectionState.CONNECTED

    # Let the error back-off and buffer clear finish before feeding
    time.sleep(0.3)
    fake_serial.feed_frame([1.0, 2.0, 3.0, 4.0])

    deadline = time.time() + 2.0
    while controller.frames_parsed == 0 and time.time() < deadline:
        controller.update()
        time.sleep(0.01)
    assert controller.frames_parsed == 1

    controller.disconnect()


def test_port_closed_underneath_disconnects() -> None:
    """If the port goes away, the next update cycle drops the connection."""
    fake_serial = FakeSerial()
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)

    fake_serial.close()
    controller.update()

    assert controller.state == ConnectionState.DISCONNECTED
    assert controller.log.text.endswith("Disconnected\n")


def test_disconnect_while_streaming() -> None:
    fake_serial = FakeSerial()
    fake_serial.start_streaming(rate_hz=200.0)
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)

    time.sleep(0.2)
    controller.update()

    controller.disconnect()

    assert controller.state == ConnectionState.DISCONNECTED
    assert not fake_serial.is_open
    # Buffers survive disconnect for display
    assert controller.point_counts()["FL"] >= 0


def test_partial_line_without_newline_is_bounded() -> None:
    fake_serial = FakeSerial()
    controller = SerialMonitorController()
    controller.connect(serial_port=fake_serial)

    fake_serial.feed("x" * 5000)
    deadline = time.time() + 2.0
    while len(controller.log) < 5000 and time.time() < deadline:
        controller.update()
        time.sleep(0.01)

    assert len(controller._partial_line) <= 4096

    controller.disconnect()
