"""Serial transport layer: the one shared port handle and its lock."""

import logging
import threading
from typing import Optional, Protocol

import serial

from serial_monitor_lib.errors import (
    SerialIOError,
    TransportOpenError,
    TransportReadError,
    TransportWriteError,
)
from serial_monitor_lib.models import ConnectionConfig

logger = logging.getLogger(__name__)


class SerialLike(Protocol):
    """Protocol for serial port interface (allows test doubles)."""

    dtr: bool
    rts: bool

    def write(self, data: bytes) -> Optional[int]:
        """Write bytes to serial port."""
        ...

    def read(self, size: int = 1) -> bytes:
        """Read up to size bytes, returning early on timeout."""
        ...

    def flush(self) -> None:
        """Flush output buffer (force transmission)."""
        ...

    def reset_input_buffer(self) -> None:
        """Discard pending input."""
        ...

    def reset_output_buffer(self) -> None:
        """Discard pending output."""
        ...

    def close(self) -> None:
        """Close serial port."""
        ...

    @property
    def is_open(self) -> bool:
        """Check if port is open."""
        ...


class Transport:
    """Wrapper around pyserial owning one open port.

    The port is shared between the controller and the reader thread;
    every access to it must happen while holding `lock`. The methods here
    do not take the lock themselves so callers can group several calls
    (e.g. the DTR reset pulse) into one critical section.
    """

    def __init__(self, serial_port: SerialLike, name: str = "") -> None:
        """Initialize transport with a serial port instance.

        Args:
            serial_port: Object implementing SerialLike protocol
                        (e.g., serial.Serial or FakeSerial for testing)
            name: Port name for log messages
        """
        self._port = serial_port
        self.name = name or str(getattr(serial_port, "port", "") or "")
        self.lock = threading.Lock()

    @classmethod
    def open(cls, port: str, config: ConnectionConfig) -> "Transport":
        """Open a real serial port with DTR and RTS held low.

        The control lines are set low before the port is opened, so pyserial
        applies them as part of open(). Boards that wire DTR/RTS to their
        reset pin are therefore not reset by the open itself.

        Args:
            port: Serial port device name (e.g., "/dev/ttyUSB0", "COM3")
            config: Line settings

        Returns:
            Transport instance wrapping opened serial port

        Raises:
            TransportOpenError: If port cannot be opened
        """
        ser = serial.Serial()
        ser.port = port
        ser.baudrate = config.baud
        ser.bytesize = config.bytesize
        ser.parity = config.parity
        ser.stopbits = config.stopbits
        ser.timeout = config.timeout_s
        ser.rtscts = False
        ser.dsrdtr = False
        ser.xonxoff = False

        try:
            ser.dtr = False
            ser.rts = False
            ser.open()
        except Exception as e:
            raise TransportOpenError(f"Failed to open {port} at {config.baud} baud: {e}") from e

        logger.info(f"Opened serial port {port} at {config.baud} baud, timeout={config.timeout_s}s")
        return cls(ser, name=port)

    def close(self) -> None:
        """Close the serial port."""
        if self._port.is_open:
            self._port.close()
            logger.info(f"Closed serial port {self.name}")

    @property
    def is_open(self) -> bool:
        """Check if port is currently open."""
        return self._port.is_open

    def read_chunk(self, size: int) -> bytes:
        """Read up to size bytes.

        Returns b"" when the read timeout elapses with nothing received.

        Raises:
            TransportReadError: If the port is closed or the read fails
        """
        if not self._port.is_open:
            raise TransportReadError("Serial port is not open")

        try:
            return self._port.read(size)
        except serial.SerialTimeoutException:
            return b""
        except Exception as e:
            raise TransportReadError(f"Failed to read from port: {e}") from e

    def write_bytes(self, data: bytes) -> int:
        """Write raw bytes to port.

        Args:
            data: Raw bytes to send

        Returns:
            Number of bytes written

        Raises:
            TransportWriteError: If the port is closed or the write fails
        """
        if not self._port.is_open:
            raise TransportWriteError("Serial port is not open")

        try:
            sent = self._port.write(data)
            self._port.flush()
        except Exception as e:
            raise TransportWriteError(f"Failed to write to port: {e}") from e

        sent = len(data) if sent is None else sent
        logger.debug(f"Sent {sent} bytes: {data!r}")
        return sent

    def clear_buffers(self) -> None:
        """Discard pending input and output at the OS level.

        Raises:
            SerialIOError: If the port is closed or the driver call fails
        """
        if not self._port.is_open:
            raise SerialIOError("Serial port is not open")

        try:
            self._port.reset_input_buffer()
            self._port.reset_output_buffer()
            logger.debug("Cleared input and output buffers")
        except Exception as e:
            raise SerialIOError(f"Failed to clear buffers: {e}") from e

    def set_dtr(self, active: bool) -> None:
        """Drive the DTR line."""
        try:
            self._port.dtr = active
        except Exception as e:
            raise SerialIOError(f"Failed to set DTR={active}: {e}") from e

    def set_rts(self, active: bool) -> None:
        """Drive the RTS line."""
        try:
            self._port.rts = active
        except Exception as e:
            raise SerialIOError(f"Failed to set RTS={active}: {e}") from e
