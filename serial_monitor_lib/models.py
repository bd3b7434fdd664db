"""Data models for the serial monitor library."""

from dataclasses import dataclass
from enum import Enum

from serial_monitor_lib import protocol
from serial_monitor_lib.errors import InvalidConfigValue


class ConnectionState(Enum):
    """Controller connection states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class PortInfo:
    """A serial interface present on the system.

    Attributes:
        device: System path or name used to open the port (e.g. "/dev/ttyUSB0", "COM3").
        description: Human readable description reported by the OS.
        hwid: Hardware id string (USB VID:PID etc.), "n/a" when unknown.
    """

    device: str
    description: str = ""
    hwid: str = ""

    def __str__(self) -> str:
        return self.device


@dataclass(frozen=True)
class ConnectionConfig:
    """Serial line settings for one connection.

    Only the baud rate is selectable. Data bits, parity, stop bits, flow
    control and read timeout are fixed. Frozen: changing the baud rate
    requires disconnect() and connect() again.

    Attributes:
        baud: Baud rate in bits per second.
        bytesize: Data bits per character (8).
        parity: Parity mode ("N").
        stopbits: Stop bits (1).
        timeout_s: Per-read timeout in seconds.
    """

    baud: int = protocol.DEFAULT_BAUD
    bytesize: int = 8
    parity: str = "N"
    stopbits: int = 1
    timeout_s: float = protocol.READ_TIMEOUT_S

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if isinstance(self.baud, bool) or not isinstance(self.baud, int) or self.baud <= 0:
            raise InvalidConfigValue(f"baud must be a positive integer, got {self.baud!r}")
