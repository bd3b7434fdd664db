"""Append-only transcript of received and sent text."""

import threading
from typing import List


class RawLog:
    """Transcript of everything received, sent, and reported for display.

    Growth is unbounded; clear() is the only way to shrink it. Readers can
    poll with a character offset (see read_since) to fetch only new text.
    """

    def __init__(self) -> None:
        self._parts: List[str] = []
        self._length = 0
        self._generation = 0
        self._lock = threading.Lock()

    def append(self, text: str) -> None:
        """Append text as-is."""
        if not text:
            return
        with self._lock:
            self._parts.append(text)
            self._length += len(text)

    def append_line(self, text: str) -> None:
        """Append text followed by a newline."""
        self.append(text + "\n")

    def clear(self) -> None:
        """Discard the whole transcript."""
        with self._lock:
            self._parts = []
            self._length = 0
            self._generation += 1

    @property
    def text(self) -> str:
        with self._lock:
            joined = "".join(self._parts)
            # Collapse so repeated reads stay cheap
            self._parts = [joined] if joined else []
            return joined

    def read_since(self, offset: int) -> str:
        """Text appended after the first `offset` characters.

        An offset beyond the end (e.g. from before a clear()) returns the
        whole transcript.
        """
        text = self.text
        if offset < 0 or offset > len(text):
            return text
        return text[offset:]

    @property
    def generation(self) -> int:
        """Incremented on every clear(), lets pollers detect a reset."""
        return self._generation

    def __len__(self) -> int:
        return self._length
