"""
Custom exception classes for the CPSC controller driver.

Each error kind also derives from the Python built-in that matches its
category, so callers can catch ``ValueError``, ``ConnectionError`` or
``OverflowError`` without importing this module.
"""


class CpscError(Exception):
    """Base exception for all CPSC driver errors."""
    pass


class TransportIOError(CpscError, ConnectionError):
    """Underlying channel read/write/open failure."""
    pass


class DeviceNotFoundError(CpscError, ConnectionError):
    """No port or host matching the addressed controller could be opened."""

    def __init__(self, message: str = "Device not found."):
        super().__init__(message)


class InvalidParamsError(CpscError, ValueError):
    """A locally checked precondition failed; nothing was sent."""
    pass


class BoundError(CpscError, ValueError):
    """A numeric argument is outside its physical range; nothing was sent."""
    pass


class InvalidResponseError(CpscError, ValueError):
    """Response could not be framed or had the wrong number of values."""
    pass


class ResponseEncodingError(InvalidResponseError):
    """Response bytes are not valid UTF-8."""
    pass


class ValueParseError(CpscError, ValueError):
    """A response value expected to be numeric failed to parse."""
    pass


class BufOverflowError(CpscError, OverflowError):
    """Accumulated response exceeded the maximum frame size."""

    def __init__(self, max_len: int, idx: int):
        self.max_len = max_len
        self.idx = idx
        super().__init__(f"Buffer overflow, max_len: {max_len}, idx: {idx}")


class DeviceError(CpscError):
    """The controller answered with an ``Error`` frame."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(CpscError):
    """Raised when configuration is invalid or cannot be loaded."""
    pass
