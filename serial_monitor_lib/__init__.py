"""
serial_monitor_lib - Serial monitor and live telemetry plotter core.

Streams text from a microcontroller over a serial port and decodes
"Pace: FL: .. FR: .. RL: .. RR: .." lines into four plottable channels.
"""

from serial_monitor_lib.controller import SerialMonitorController
from serial_monitor_lib.errors import (
    ConfigError,
    InvalidConfigValue,
    NoPortSelected,
    NotConnected,
    SerialIOError,
    SerialMonitorError,
    TransportOpenError,
    TransportReadError,
    TransportWriteError,
)
from serial_monitor_lib.models import ConnectionConfig, ConnectionState, PortInfo
from serial_monitor_lib.parsing import parse_line
from serial_monitor_lib.ports import list_ports
from serial_monitor_lib.ring_buffer import SampleBuffer

__version__ = "0.1.0"

__all__ = [
    "SerialMonitorController",
    "ConnectionConfig",
    "ConnectionState",
    "PortInfo",
    "SampleBuffer",
    "list_ports",
    "parse_line",
    "SerialMonitorError",
    "ConfigError",
    "NoPortSelected",
    "InvalidConfigValue",
    "SerialIOError",
    "TransportOpenError",
    "NotConnected",
    "TransportWriteError",
    "TransportReadError",
]
