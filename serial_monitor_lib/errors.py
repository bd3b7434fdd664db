"""Custom exceptions for the serial monitor library."""


class SerialMonitorError(Exception):
    """Base exception for all serial monitor library errors."""

    pass


class ConfigError(SerialMonitorError):
    """Raised when a connection or display setting is unusable."""

    pass


class NoPortSelected(ConfigError):
    """Raised when connect() is called without a port name."""

    pass


class InvalidConfigValue(ConfigError):
    """Raised when a configuration value is outside its valid range."""

    pass


class SerialIOError(SerialMonitorError):
    """Raised when serial communication fails (port closed, I/O error, etc)."""

    pass


class TransportOpenError(SerialIOError):
    """Raised when the serial port cannot be opened."""

    pass


class NotConnected(SerialIOError):
    """Raised when an operation needs an open connection and there is none."""

    pass


class TransportWriteError(SerialIOError):
    """Raised when writing to the serial port fails."""

    pass


class TransportReadError(SerialIOError):
    """Raised when reading from the serial port fails for a reason other than timeout."""

    pass


OpenFailed = TransportOpenError
WriteFailed = TransportWriteError
