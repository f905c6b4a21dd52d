"""
Host-side driver for the JPE CPSC1 multi-module motion controller.

Talks to the controller over USB/RS-422 serial or TCP (port 2000),
validates every command against the controller's operating mode and
installed modules before sending it, and exposes the result through a
blocking and an asyncio context plus an optional HTTP API.
"""

__version__ = "1.0.0"

from jpe_cpsc.builder import ContextBuilder
from jpe_cpsc.controller.context import BaseContext
from jpe_cpsc.controller.context_async import BaseContextAsync
from jpe_cpsc.controller.types import (
    Direction,
    IpAddrMode,
    Module,
    ModuleChannel,
    OperatingMode,
    SerialInterface,
    SetpointPosMode,
    Slot,
)
from jpe_cpsc.utils.exceptions import (
    BoundError,
    BufOverflowError,
    CpscError,
    DeviceError,
    DeviceNotFoundError,
    InvalidParamsError,
    InvalidResponseError,
    TransportIOError,
    ValueParseError,
)

__all__ = [
    "__version__",
    "ContextBuilder",
    "BaseContext",
    "BaseContextAsync",
    "Direction",
    "IpAddrMode",
    "Module",
    "ModuleChannel",
    "OperatingMode",
    "SerialInterface",
    "SetpointPosMode",
    "Slot",
    "BoundError",
    "BufOverflowError",
    "CpscError",
    "DeviceError",
    "DeviceNotFoundError",
    "InvalidParamsError",
    "InvalidResponseError",
    "TransportIOError",
    "ValueParseError",
]
