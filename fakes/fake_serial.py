"""Fake serial port that simulates a microcontroller streaming wheel telemetry.

The simulated board prints "Pace: FL: .. FR: .. RL: .. RR: .." lines, echoes
nothing, reboots (printing a boot banner) when DTR is pulsed, and can be
told to fail reads or writes to exercise error paths.
"""

import logging
import random
import threading
import time
from typing import Callable, List, Optional, Sequence, Tuple

import serial

logger = logging.getLogger(__name__)

BOOT_BANNER = "rst:0x1 (POWERON_RESET),boot:0x13 (SPI_FAST_FLASH_BOOT)\r\nready\r\n"


def telemetry_line(values: Sequence[float]) -> str:
    """Format one telemetry line the way the board firmware prints it."""
    fl, fr, rl, rr = values
    return f"Pace: FL: {fl:.2f} FR: {fr:.2f} RL: {rl:.2f} RR: {rr:.2f}\r\n"


class FakeSerial:
    """Deterministic stand-in for serial.Serial.

    Implements the subset of the pyserial API the transport uses:
    - read() with a timeout, returning b"" when nothing arrives
    - write()/flush() recording everything the host sends
    - reset_input_buffer()/reset_output_buffer()
    - dtr/rts attributes, with a reboot on a DTR high-to-low edge
    """

    def __init__(self, timeout: float = 0.01, banner_on_reset: bool = True) -> None:
        """Initialize fake board.

        Args:
            timeout: Read timeout in seconds (matches the real port setting)
            banner_on_reset: Print BOOT_BANNER when the board is reset via DTR
        """
        self.timeout = timeout
        self.banner_on_reset = banner_on_reset
        self.port = "/dev/fake"

        # Port state
        self.is_open = True
        self._dtr = True  # OS default on open
        self._rts = True
        self._dtr_pulsed = False

        # Bytes waiting for the host to read
        self._rx = bytearray()
        self._cond = threading.Condition()

        # Everything the host wrote
        self.written = bytearray()

        # Observations for tests
        self.control_history: List[Tuple[str, bool]] = []
        self.reset_count = 0
        self.input_resets = 0
        self.output_resets = 0

        # Fault injection
        self.read_errors_pending = 0
        self.fail_writes = False
        self.fail_control_lines = False

        # Streaming
        self._stream_thread: Optional[threading.Thread] = None
        self._stop_streaming = threading.Event()

    # ========================================================================
    # pyserial API
    # ========================================================================

    @property
    def dtr(self) -> bool:
        return self._dtr

    @dtr.setter
    def dtr(self, value: bool) -> None:
        if self.fail_control_lines:
            raise serial.SerialException("Control line not supported")
        # Only a low-high-low pulse driven by the host reboots the board,
        # not the release of the OS default level on open
        if value and not self._dtr:
            self._dtr_pulsed = True
        elif not value and self._dtr and self._dtr_pulsed:
            self._dtr_pulsed = False
            self._reboot()
        self._dtr = value
        self.control_history.append(("dtr", value))

    @property
    def rts(self) -> bool:
        return self._rts

    @rts.setter
    def rts(self, value: bool) -> None:
        if self.fail_control_lines:
            raise serial.SerialException("Control line not supported")
        self._rts = value
        self.control_history.append(("rts", value))

    def read(self, size: int = 1) -> bytes:
        """Read up to size bytes, waiting at most `timeout` for the first byte."""
        if not self.is_open:
            raise serial.SerialException("Port is closed")

        with self._cond:
            if self.read_errors_pending > 0:
                self.read_errors_pending -= 1
                raise serial.SerialException("device reports readiness to read but returned no data")

            if not self._rx:
                self._cond.wait(timeout=self.timeout)
            if not self._rx:
                return b""

            data = bytes(self._rx[:size])
            del self._rx[:size]
            return data

    def write(self, data: bytes) -> int:
        """Record bytes sent by the host."""
        if not self.is_open:
            raise serial.SerialException("Port is closed")
        if self.fail_writes:
            raise serial.SerialTimeoutException("Write timeout")

        self.written.extend(data)
        logger.debug(f"FakeSerial received: {data!r}")
        return len(data)

    def flush(self) -> None:
        """Flush output buffer (no-op, writes are immediate)."""
        pass

    def reset_input_buffer(self) -> None:
        """Discard bytes the host has not read yet."""
        with self._cond:
            self._rx.clear()
            self.input_resets += 1

    def reset_output_buffer(self) -> None:
        """Discard pending output (nothing is ever pending)."""
        self.output_resets += 1

    def close(self) -> None:
        """Close the fake serial port."""
        self.is_open = False
        self.stop_streaming()
        with self._cond:
            self._cond.notify_all()
        logger.debug("FakeSerial closed")

    # ========================================================================
    # Board simulation
    # ========================================================================

    def feed(self, data) -> None:
        """Queue bytes (or text, UTF-8 encoded) for the host to read."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._cond:
            self._rx.extend(data)
            self._cond.notify_all()

    def feed_frame(self, values: Sequence[float]) -> None:
        """Queue one telemetry line."""
        self.feed(telemetry_line(values))

    def pending(self) -> int:
        """Bytes not yet read by the host."""
        with self._cond:
            return len(self._rx)

    def start_streaming(
        self,
        rate_hz: float = 50.0,
        values: Optional[Callable[[int], Sequence[float]]] = None,
    ) -> None:
        """Start printing telemetry lines from a background thread.

        Args:
            rate_hz: Lines per second
            values: Maps the line number to the four channel values.
                    Defaults to noisy values around 1.0, 2.0, 3.0, 4.0.
        """
        self.stop_streaming()
        self._stop_streaming.clear()
        self._stream_thread = threading.Thread(
            target=self._streaming_loop,
            args=(1.0 / rate_hz, values or _noisy_values),
            name="FakeBoardStream",
            daemon=True,
        )
        self._stream_thread.start()
        logger.debug(f"Started streaming at {rate_hz} Hz")

    def stop_streaming(self) -> None:
        """Stop streaming thread if running."""
        if self._stream_thread and self._stream_thread.is_alive():
            self._stop_streaming.set()
            if threading.current_thread() is not self._stream_thread:
                self._stream_thread.join(timeout=2.0)
            self._stream_thread = None
            logger.debug("Stopped streaming thread")

    def _streaming_loop(self, period: float, values: Callable[[int], Sequence[float]]) -> None:
        n = 0
        while not self._stop_streaming.is_set() and self.is_open:
            self.feed_frame(values(n))
            n += 1
            time.sleep(period)

    def _reboot(self) -> None:
        self.reset_count += 1
        logger.debug(f"Board reset #{self.reset_count}")
        if self.banner_on_reset:
            self.feed(BOOT_BANNER)


def _noisy_values(n: int) -> Sequence[float]:
    return [base + random.uniform(-0.1, 0.1) for base in (1.0, 2.0, 3.0, 4.0)]
