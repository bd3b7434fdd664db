"""Line parameters, timing constants and telemetry format for the serial monitor.

Values mirror what typical microcontroller boards (ESP32, Arduino) expect
on a USB-serial bridge: 8N1, no flow control, and DTR/RTS wired to reset.
"""

from typing import Final, Tuple

# ============================================================================
# Line Parameters
# ============================================================================

DEFAULT_BAUD: Final[int] = 115200

COMMON_BAUD_RATES: Final[Tuple[int, ...]] = (
    1200,
    2400,
    4800,
    9600,
    19200,
    38400,
    57600,
    115200,
)

# ============================================================================
# Timing (seconds)
# ============================================================================

READ_TIMEOUT_S: Final[float] = 0.01  # Per-read timeout, bounds lock hold time
READER_YIELD_S: Final[float] = 0.01  # Sleep between reader iterations
READER_ERROR_PAUSE_S: Final[float] = 0.1  # Back-off after a non-timeout read error
READER_JOIN_TIMEOUT_S: Final[float] = 2.0

RESET_HOLD_S: Final[float] = 0.1  # DTR asserted, then released, for this long each

# ============================================================================
# Reader
# ============================================================================

READ_CHUNK_SIZE: Final[int] = 1024

# Longest partial line kept while waiting for its newline
MAX_LINE_LENGTH: Final[int] = 4096

# Prefix put on the inbox when a read fails
ERROR_FRAGMENT_PREFIX: Final[str] = "Error: "

# ============================================================================
# Telemetry Line Format
# ============================================================================

# Example: "Pace: FL: 1.0 FR: 2.0 RL: 3.0 RR: 4.0"
TELEMETRY_MARKER: Final[str] = "Pace: FL:"

CHANNEL_NAMES: Final[Tuple[str, ...]] = ("FL", "FR", "RL", "RR")
CHANNEL_COUNT: Final[int] = len(CHANNEL_NAMES)

# ============================================================================
# Plot Buffers
# ============================================================================

MAX_POINTS_MIN: Final[int] = 100
MAX_POINTS_MAX: Final[int] = 10000
DEFAULT_MAX_POINTS: Final[int] = 1000

# ============================================================================
# Raw Log Records
# ============================================================================

LOG_CONNECTED: Final[str] = "Connected\n"
LOG_DISCONNECTED: Final[str] = "Disconnected\n"
LOG_NO_PORT: Final[str] = "Select one port.\n"
LOG_SEND_PREFIX: Final[str] = "Send: "
