"""
Controller state, command surface and value types.

Only the value types are re-exported here; the protocol codec imports
them, so the contexts are imported from their own modules.
"""

from jpe_cpsc.controller.types import (
    NUM_SLOTS,
    Direction,
    IpAddrMode,
    ModeScope,
    Module,
    ModuleChannel,
    ModuleScope,
    OperatingMode,
    SerialInterface,
    SetpointPosMode,
    Slot,
)

__all__ = [
    "NUM_SLOTS",
    "Direction",
    "IpAddrMode",
    "ModeScope",
    "Module",
    "ModuleChannel",
    "ModuleScope",
    "OperatingMode",
    "SerialInterface",
    "SetpointPosMode",
    "Slot",
]
