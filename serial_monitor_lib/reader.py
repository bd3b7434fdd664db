"""Background thread that moves received text from the port to the inbox."""

import logging
import queue
import threading

from serial_monitor_lib import parsing, protocol
from serial_monitor_lib.errors import SerialIOError, TransportReadError
from serial_monitor_lib.transport import Transport

logger = logging.getLogger(__name__)


class SerialReader(threading.Thread):
    """Reader thread bound to one connection.

    Each iteration reads up to READ_CHUNK_SIZE bytes under the transport
    lock and puts the decoded text on the inbox. Timeouts produce nothing.
    Read errors produce one "Error: ..." fragment, a short back-off and a
    buffer clear, after which reading resumes. The loop exits when stop()
    is called; a new reader is created for every connection.
    """

    def __init__(self, transport: Transport, inbox: "queue.Queue[str]") -> None:
        """Initialize reader (does not start it).

        Args:
            transport: Open transport shared with the controller
            inbox: Queue receiving decoded text fragments
        """
        super().__init__(name=f"SerialReader[{transport.name}]", daemon=True)
        self._transport = transport
        self._inbox = inbox
        self._stop_event = threading.Event()

    def stop(self, timeout: float = protocol.READER_JOIN_TIMEOUT_S) -> None:
        """Ask the loop to exit and wait for it."""
        self._stop_event.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout=timeout)
            if self.is_alive():
                logger.warning(f"{self.name} did not stop cleanly")

    def run(self) -> None:
        logger.info(f"Reader loop started (thread {threading.get_ident()})")

        while not self._stop_event.is_set():
            try:
                with self._transport.lock:
                    if self._stop_event.is_set():
                        break
                    data = self._transport.read_chunk(protocol.READ_CHUNK_SIZE)

                if data:
                    text = parsing.decode_chunk(data)
                    logger.debug(f"Received {len(data)} bytes")
                    self._inbox.put(text)

            except TransportReadError as e:
                if self._stop_event.is_set():
                    break
                self._recover(e)

            except Exception as e:
                logger.error(f"Unexpected error in reader loop: {e}", exc_info=True)
                if self._stop_event.is_set():
                    break
                self._recover(e)

            # Yield the lock to send/reset and bound CPU use
            if self._stop_event.wait(timeout=protocol.READER_YIELD_S):
                break

        logger.info("Reader loop stopped")

    def _recover(self, error: Exception) -> None:
        """Report a read failure, back off, then clear the port buffers."""
        logger.warning(f"Serial read error: {error}")
        self._inbox.put(f"{protocol.ERROR_FRAGMENT_PREFIX}{error}\n")

        if self._stop_event.wait(timeout=protocol.READER_ERROR_PAUSE_S):
            return

        try:
            with self._transport.lock:
                self._transport.clear_buffers()
        except SerialIOError as e:
            logger.debug(f"Buffer clear after read error failed: {e}")
