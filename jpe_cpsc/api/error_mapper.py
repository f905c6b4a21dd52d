"""
Map driver exceptions to API error codes and categories.
"""

from typing import Tuple

from jpe_cpsc.utils.exceptions import (
    BoundError,
    BufOverflowError,
    DeviceError,
    DeviceNotFoundError,
    InvalidParamsError,
    InvalidResponseError,
    TransportIOError,
    ValueParseError,
)


# Error codes
ERROR_INVALID_VALUE = 0x402  # 1026
ERROR_NOT_CONNECTED = 0x407  # 1031
ERROR_DEVICE = 0x500  # 1280
ERROR_OVERFLOW = 0x501  # 1281
ERROR_INTERNAL = 0x5FF  # 1535

CATEGORY_TRANSPORT = "transport"
CATEGORY_VALUE = "value"
CATEGORY_DEVICE = "device"
CATEGORY_OVERFLOW = "overflow"
CATEGORY_INTERNAL = "internal"


def map_exception(exception: Exception) -> Tuple[int, str, str]:
    """
    Map exception to error code, category and message.

    Args:
        exception: Python exception.

    Returns:
        Tuple of (error_number, error_category, error_message).
    """
    if isinstance(exception, (TransportIOError, DeviceNotFoundError)):
        return (ERROR_NOT_CONNECTED, CATEGORY_TRANSPORT, str(exception))

    if isinstance(exception, (InvalidParamsError, BoundError, InvalidResponseError, ValueParseError)):
        return (ERROR_INVALID_VALUE, CATEGORY_VALUE, str(exception))

    if isinstance(exception, DeviceError):
        return (ERROR_DEVICE, CATEGORY_DEVICE, exception.message)

    if isinstance(exception, BufOverflowError):
        return (ERROR_OVERFLOW, CATEGORY_OVERFLOW, str(exception))

    # Unknown exception
    return (ERROR_INTERNAL, CATEGORY_INTERNAL, f"Internal error: {type(exception).__name__}: {exception}")
