"""Pure functions for parsing telemetry lines and converting send/display payloads."""

import logging
import string
from typing import List, Optional

from serial_monitor_lib import protocol

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset(string.hexdigits)


def parse_line(line: str) -> Optional[List[float]]:
    """Parse a telemetry line into one value per channel.

    Expected format: Pace: FL: <fl> FR: <fr> RL: <rl> RR: <rr>
    Example: "Pace: FL: 1.0 FR: 2.0 RL: 3.0 RR: 4.0"

    Every whitespace-delimited token on the line that parses as a float is
    collected, in order. Label tokens ("FL:", "FR:", ...) are skipped. The
    frame is accepted only when exactly four values were found, so truncated
    or noisy lines never shift values into the wrong channel.

    Args:
        line: Raw text line (surrounding whitespace is ignored)

    Returns:
        [FL, FR, RL, RR] values, or None if the line is not a complete frame
    """
    line = line.strip()
    if not line.startswith(protocol.TELEMETRY_MARKER):
        return None

    values: List[float] = []
    for token in line.split():
        value = _parse_float(token)
        if value is not None:
            values.append(value)

    if len(values) != protocol.CHANNEL_COUNT:
        logger.debug(f"Discarding frame with {len(values)} values: {line!r}")
        return None

    return values


def _parse_float(token: str) -> Optional[float]:
    """Parse one token as a float, None if it is not a plain number."""
    # float() also takes digit separators ("1_000") and non-ASCII digits
    if "_" in token or not token.isascii():
        return None
    try:
        return float(token)
    except ValueError:
        return None


def hex_to_bytes(text: str) -> bytes:
    """Convert hex input text (e.g. "DE AD be ef") into bytes.

    Spaces are removed, then the text is read two characters at a time.
    Pairs that are not two hex digits are skipped, as is a trailing odd
    character, so a partly malformed entry still sends what it can.

    Args:
        text: Hex digits, optionally separated by spaces

    Returns:
        Decoded bytes (possibly empty)
    """
    compact = text.replace(" ", "")
    out = bytearray()
    for i in range(0, len(compact) - 1, 2):
        pair = compact[i : i + 2]
        if pair[0] in _HEX_DIGITS and pair[1] in _HEX_DIGITS:
            out.append(int(pair, 16))
        else:
            logger.debug(f"Skipping malformed hex pair {pair!r}")
    return bytes(out)


def bytes_to_hex(data: bytes) -> str:
    """Format bytes for hex display: uppercase pairs, each followed by a space.

    Example: b"\\xde\\xad" -> "DE AD "
    """
    return "".join(f"{b:02X} " for b in data)


def decode_chunk(data: bytes) -> str:
    """Decode received bytes as UTF-8, replacing invalid sequences.

    Never raises; malformed input becomes U+FFFD characters.
    """
    return data.decode("utf-8", errors="replace")
