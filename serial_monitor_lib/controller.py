"""High-level controller for a serial monitor session with state management."""

import logging
import queue
import threading
import time
from typing import Callable, Dict, List, Optional, Union

from serial_monitor_lib import parsing, protocol
from serial_monitor_lib.errors import (
    InvalidConfigValue,
    NoPortSelected,
    NotConnected,
    SerialIOError,
    TransportOpenError,
    TransportWriteError,
)
from serial_monitor_lib.models import ConnectionConfig, ConnectionState, PortInfo
from serial_monitor_lib.raw_log import RawLog
from serial_monitor_lib.reader import SerialReader
from serial_monitor_lib.ring_buffer import Point, SampleBuffer
from serial_monitor_lib.transport import SerialLike, Transport

logger = logging.getLogger(__name__)

Channel = Union[str, int]


class SerialMonitorController:
    """Owns the serial connection, its reader thread and the channel buffers.

    Threading model: the reader thread only reads from the port and fills
    the inbox. Everything else (connect/disconnect/send/reset, draining
    the inbox, parsing, buffer pushes) runs on the caller's thread, which
    is expected to call update() once per display cycle.
    """

    def __init__(
        self,
        max_points: int = protocol.DEFAULT_MAX_POINTS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize controller.

        Args:
            max_points: Capacity of each channel buffer (100-10000). Default 1000.
            clock: Time source for sample timestamps. Defaults to time.monotonic.
        """
        self._validate_max_points(max_points)

        self._state = ConnectionState.DISCONNECTED
        self._state_lock = threading.Lock()

        # Per-connection resources
        self._transport: Optional[Transport] = None
        self._reader: Optional[SerialReader] = None
        self._inbox: Optional["queue.Queue[str]"] = None
        self._config: Optional[ConnectionConfig] = None
        self._port_name: Optional[str] = None

        # Display-side state
        self._log = RawLog()
        self._buffers = [SampleBuffer(clock=clock) for _ in protocol.CHANNEL_NAMES]
        self._max_points = max_points
        self._paused = False
        self._hex_display = False
        self._partial_line = ""
        self._frames_parsed = 0

    # ========================================================================
    # Connection Management
    # ========================================================================

    def connect(
        self,
        port: Union[str, PortInfo, None] = None,
        baud: int = protocol.DEFAULT_BAUD,
        serial_port: Optional[SerialLike] = None,
    ) -> None:
        """Open the port and start the background reader.

        Args:
            port: Serial port name (e.g., "/dev/ttyUSB0") or a PortInfo from list_ports().
                  Required if serial_port not given.
            baud: Baud rate. Default 115200.
            serial_port: Pre-configured serial port object (for testing). If provided,
                        it is used instead of opening `port`.

        Raises:
            NoPortSelected: If neither port nor serial_port is given
            InvalidConfigValue: If baud is not a positive integer
            TransportOpenError: If the port cannot be opened
            SerialIOError: If already connected
        """
        with self._state_lock:
            if self._state != ConnectionState.DISCONNECTED:
                raise SerialIOError(f"Already connected (state: {self._state.value})")

            if isinstance(port, PortInfo):
                port = port.device

            if not port and serial_port is None:
                self._log.append(protocol.LOG_NO_PORT)
                raise NoPortSelected("No serial port selected")

            config = ConnectionConfig(baud=baud)
            self._state = ConnectionState.CONNECTING
            logger.info(f"Connecting to {port or 'injected port'} at {baud} baud...")

            transport: Optional[Transport] = None
            try:
                if serial_port is not None:
                    transport = Transport(serial_port, name=port or "")
                else:
                    assert port is not None
                    transport = Transport.open(port, config)
                # Same de-assert for opened and injected ports
                transport.set_dtr(False)
                transport.set_rts(False)
            except SerialIOError as e:
                if transport is not None:
                    try:
                        transport.close()
                    except Exception as close_error:
                        logger.warning(f"Error closing port after failed connect: {close_error}")
                self._state = ConnectionState.DISCONNECTED
                self._log.append(f"Failed: {e}\n")
                logger.error(f"Connect failed: {e}")
                if isinstance(e, TransportOpenError):
                    raise
                raise TransportOpenError(str(e)) from e

            # Drop anything the OS buffered before we were listening
            try:
                with transport.lock:
                    transport.clear_buffers()
            except SerialIOError as e:
                logger.warning(f"Could not clear buffers after open: {e}")

            self._transport = transport
            self._config = config
            self._port_name = transport.name or port
            self._inbox = queue.Queue()
            self._partial_line = ""

            self._reader = SerialReader(transport, self._inbox)
            self._reader.start()

            self._state = ConnectionState.CONNECTED
            self._log.append(protocol.LOG_CONNECTED)
            logger.info(f"Connected to {self._port_name}")

    def disconnect(self) -> None:
        """Stop the reader and close the port.

        No-op if already disconnected.
        """
        with self._state_lock:
            if self._state == ConnectionState.DISCONNECTED:
                return

            logger.info("Disconnecting...")

            if self._reader is not None:
                self._reader.stop()
                self._reader = None

            if self._transport is not None:
                try:
                    with self._transport.lock:
                        self._transport.close()
                except Exception as e:
                    logger.warning(f"Error closing port: {e}")
                self._transport = None

            if self._inbox is not None:
                dropped = self._inbox.qsize()
                if dropped:
                    logger.debug(f"Dropping {dropped} undrained fragments")
                self._inbox = None

            self._config = None
            self._partial_line = ""
            self._state = ConnectionState.DISCONNECTED
            self._log.append(protocol.LOG_DISCONNECTED)
            logger.info("Disconnected")

    def is_connected(self) -> bool:
        """Check if the controller holds an open connection.

        Returns:
            True if transport is open and state is CONNECTED
        """
        return (
            self._state == ConnectionState.CONNECTED
            and self._transport is not None
            and self._transport.is_open
        )

    # ========================================================================
    # Commands
    # ========================================================================

    def send(self, text: str, hex_mode: bool = False) -> bytes:
        """Send user input to the device.

        In hex mode the text is read as hex byte pairs (see
        parsing.hex_to_bytes); otherwise its UTF-8 bytes are sent verbatim.
        A "Send:" record is added to the raw log on success.

        Args:
            text: User input
            hex_mode: Interpret text as hex digits

        Returns:
            The bytes written

        Raises:
            NotConnected: If there is no connection
            TransportWriteError: If the write fails (connection stays up)
        """
        transport = self._transport
        if self._state != ConnectionState.CONNECTED or transport is None:
            raise NotConnected("Not connected")

        data = parsing.hex_to_bytes(text) if hex_mode else text.encode("utf-8")

        try:
            with transport.lock:
                transport.write_bytes(data)
        except TransportWriteError as e:
            logger.error(f"Send failed: {e}")
            raise

        if self._hex_display:
            record = parsing.bytes_to_hex(data)
        else:
            record = text
        self._log.append(f"{protocol.LOG_SEND_PREFIX}{record}\n")
        return data

    def reset(self) -> None:
        """Pulse DTR to reset the attached board.

        Clears the port buffers, asserts DTR for RESET_HOLD_S, then releases
        it and waits RESET_HOLD_S again. Does nothing unless connected.
        Failures are logged and recorded in the raw log, never raised.
        """
        transport = self._transport
        if self._state != ConnectionState.CONNECTED or transport is None:
            logger.debug("Reset ignored: not connected")
            return

        logger.info("Resetting device via DTR...")
        try:
            with transport.lock:
                transport.clear_buffers()
                transport.set_dtr(True)
                time.sleep(protocol.RESET_HOLD_S)
                transport.set_dtr(False)
                time.sleep(protocol.RESET_HOLD_S)
        except SerialIOError as e:
            logger.warning(f"Reset failed: {e}")
            self._log.append(f"Reset failed: {e}\n")

    def clear_log(self) -> None:
        """Clear the raw text transcript."""
        self._log.clear()

    def clear_plot(self) -> None:
        """Empty all channel buffers and restart their clocks."""
        for buffer in self._buffers:
            buffer.clear()

    def set_max_points(self, n: int) -> None:
        """Set the per-channel capacity used from the next push on.

        Raises:
            InvalidConfigValue: If n is outside MAX_POINTS_MIN..MAX_POINTS_MAX
        """
        self._validate_max_points(n)
        self._max_points = n

    def set_paused(self, paused: bool) -> None:
        """Pause or resume plotting. Text keeps flowing to the raw log."""
        self._paused = paused
        logger.info(f"Plotting {'paused' if paused else 'resumed'}")

    def set_hex_display(self, enabled: bool) -> None:
        """Show received and sent data as hex in the raw log."""
        self._hex_display = enabled

    # ========================================================================
    # Update Cycle
    # ========================================================================

    def drain_text(self) -> Optional[str]:
        """Take one received fragment from the inbox, without blocking.

        The fragment is added to the raw log and its complete lines are
        parsed into the channel buffers before it is returned.

        Returns:
            The fragment, or None if nothing is pending
        """
        inbox = self._inbox
        if inbox is None:
            return None

        try:
            fragment = inbox.get_nowait()
        except queue.Empty:
            return None

        self._handle_fragment(fragment)
        return fragment

    def update(self) -> List[str]:
        """Drain every pending fragment. Call once per display cycle.

        Also notices a port that has closed underneath the controller and
        disconnects.

        Returns:
            The fragments drained, in arrival order
        """
        fragments = []
        while True:
            fragment = self.drain_text()
            if fragment is None:
                break
            fragments.append(fragment)

        if (
            self._state == ConnectionState.CONNECTED
            and self._transport is not None
            and not self._transport.is_open
        ):
            logger.error("Serial port closed unexpectedly")
            self.disconnect()

        return fragments

    def _handle_fragment(self, fragment: str) -> None:
        if self._hex_display:
            self._log.append(parsing.bytes_to_hex(fragment.encode("utf-8")) + "\n")
        else:
            self._log.append(fragment)

        pending = self._partial_line + fragment
        *lines, self._partial_line = pending.split("\n")

        if len(self._partial_line) > protocol.MAX_LINE_LENGTH:
            logger.warning(f"Dropping {len(self._partial_line)} chars with no line ending")
            self._partial_line = ""

        for line in lines:
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        if self._paused:
            return

        values = parsing.parse_line(line)
        if values is None:
            return

        for buffer, value in zip(self._buffers, values):
            buffer.push(value, self._max_points)
        self._frames_parsed += 1
        logger.debug(f"Frame {self._frames_parsed}: {values}")

    # ========================================================================
    # Data Access
    # ========================================================================

    def snapshot(self, channel: Channel) -> List[Point]:
        """Get (timestamp, value) pairs for one channel.

        Args:
            channel: Channel name ("FL", "FR", "RL", "RR", case-insensitive) or index 0-3

        Returns:
            List of (timestamp, value) tuples, oldest first

        Raises:
            ValueError: If channel is unknown
        """
        return self._buffers[self._channel_index(channel)].snapshot()

    def point_counts(self) -> Dict[str, int]:
        """Number of buffered points per channel name."""
        return {
            name: len(buffer) for name, buffer in zip(protocol.CHANNEL_NAMES, self._buffers)
        }

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def port_name(self) -> Optional[str]:
        """Name of the connected port, None when disconnected."""
        return self._port_name if self._state != ConnectionState.DISCONNECTED else None

    @property
    def config(self) -> Optional[ConnectionConfig]:
        """Line settings of the current connection."""
        return self._config

    @property
    def log(self) -> RawLog:
        """Raw text transcript."""
        return self._log

    @property
    def max_points(self) -> int:
        return self._max_points

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def hex_display(self) -> bool:
        return self._hex_display

    @property
    def frames_parsed(self) -> int:
        """Telemetry frames accepted since the controller was created."""
        return self._frames_parsed

    # ========================================================================
    # Internal Helpers
    # ========================================================================

    @staticmethod
    def _validate_max_points(n: int) -> None:
        if not (protocol.MAX_POINTS_MIN <= n <= protocol.MAX_POINTS_MAX):
            raise InvalidConfigValue(
                f"max_points must be {protocol.MAX_POINTS_MIN}-{protocol.MAX_POINTS_MAX}, got {n}"
            )

    @staticmethod
    def _channel_index(channel: Channel) -> int:
        if isinstance(channel, int) and not isinstance(channel, bool):
            if 0 <= channel < protocol.CHANNEL_COUNT:
                return channel
        elif isinstance(channel, str):
            name = channel.upper()
            if name in protocol.CHANNEL_NAMES:
                return protocol.CHANNEL_NAMES.index(name)
        raise ValueError(
            f"Unknown channel {channel!r}, expected one of {list(protocol.CHANNEL_NAMES)}"
        )
