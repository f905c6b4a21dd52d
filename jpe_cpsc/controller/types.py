"""
Value types shared by the command layer and the controller state.

Every enum renders to its wire form with ``str()``.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import FrozenSet, Optional, Union

from jpe_cpsc.utils.exceptions import InvalidParamsError, InvalidResponseError


NUM_SLOTS = 6

_WORDS = {"one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6}


class Slot(IntEnum):
    """One of the six module bays of the controller chassis (1-based on the wire)."""
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6

    @property
    def index(self) -> int:
        """0-based position in the module table."""
        return self.value - 1

    @classmethod
    def from_index(cls, index: int) -> "Slot":
        return cls(index + 1)

    @classmethod
    def parse(cls, value: Union["Slot", int, str]) -> "Slot":
        """Accept a Slot, 1-6, "1"-"6" or "one"-"six"."""
        if isinstance(value, Slot):
            return value
        key = str(value).strip().lower()
        number = _WORDS.get(key)
        if number is None and key.isdigit():
            number = int(key)
        if number is None or not 1 <= number <= NUM_SLOTS:
            raise InvalidParamsError(f"Supported slots are 1 - 6 or One - Six, got {value}")
        return cls(number)

    def __str__(self) -> str:
        return str(self.value)


class ModuleChannel(IntEnum):
    """Sensor channel of a module (RSM has three)."""
    ONE = 1
    TWO = 2
    THREE = 3

    @classmethod
    def parse(cls, value: Union["ModuleChannel", int, str]) -> "ModuleChannel":
        if isinstance(value, ModuleChannel):
            return value
        key = str(value).strip().lower()
        number = _WORDS.get(key)
        if number is None and key.isdigit():
            number = int(key)
        if number not in (1, 2, 3):
            raise InvalidParamsError(f"Invalid channel: {value}")
        return cls(number)

    def __str__(self) -> str:
        return str(self.value)


class Module(Enum):
    """Kind of module installed in a slot."""
    CADM = "CADM"
    RSM = "RSM"
    OEM = "OEM"
    PSM = "PSM"
    EDM = "EDM"
    EMPTY = "-"

    @classmethod
    def from_name(cls, name: str) -> "Module":
        """
        Map a controller-reported module name to a Module.

        Matching is a case-insensitive prefix match, so "CADM2" is CADM.
        "-" (or an empty field) means no module is installed.

        Raises:
            InvalidResponseError: If the name matches no known module.
        """
        key = name.strip().upper()
        if key in ("", "-"):
            return cls.EMPTY
        for module in cls:
            if module is not cls.EMPTY and key.startswith(module.value):
                return module
        raise InvalidResponseError(f"Unknown module: {name}")

    def __str__(self) -> str:
        return self.value


class OperatingMode(Enum):
    """Controller-wide drive mode."""
    BASEDRIVE = "Basedrive"
    SERVODRIVE = "Servodrive"
    FLEXDRIVE = "Flexdrive"

    def __str__(self) -> str:
        return self.value


class Direction(Enum):
    """Stage movement direction (1 positive, 0 negative)."""
    POSITIVE = "1"
    NEGATIVE = "0"

    @classmethod
    def parse(cls, value: Union["Direction", int, str]) -> "Direction":
        if isinstance(value, Direction):
            return value
        key = str(value).strip().lower()
        if key in ("1", "one", "positive", "+"):
            return cls.POSITIVE
        if key in ("0", "zero", "negative", "-"):
            return cls.NEGATIVE
        raise InvalidParamsError(f"Invalid Direction: {value}")

    def __str__(self) -> str:
        return self.value


class SetpointPosMode(Enum):
    """How a servodrive setpoint is interpreted."""
    ABSOLUTE = "1"
    RELATIVE = "0"

    @classmethod
    def parse(cls, value: Union["SetpointPosMode", int, str]) -> "SetpointPosMode":
        if isinstance(value, SetpointPosMode):
            return value
        key = str(value).strip().lower()
        if key in ("1", "absolute", "abs"):
            return cls.ABSOLUTE
        if key in ("0", "relative", "rel"):
            return cls.RELATIVE
        raise InvalidParamsError(f"Invalid setpoint mode: {value}")

    def __str__(self) -> str:
        return self.value


class SerialInterface(Enum):
    """Serial interfaces of the controller."""
    RS422 = "RS422"
    USB = "USB"

    @classmethod
    def parse(cls, value: Union["SerialInterface", str]) -> "SerialInterface":
        if isinstance(value, SerialInterface):
            return value
        try:
            return cls(str(value).strip().upper().replace("-", ""))
        except ValueError:
            raise InvalidParamsError("Invalid serial mode, only RS422 or USB supported")

    def __str__(self) -> str:
        return self.value


class IpAddrMode(Enum):
    """LAN address assignment."""
    DHCP = "DHCP"
    STATIC = "STATIC"

    @classmethod
    def parse(cls, value: Union["IpAddrMode", str]) -> "IpAddrMode":
        if isinstance(value, IpAddrMode):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise InvalidParamsError("Invalid addressing mode, only DHCP or Static supported")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ModuleScope:
    """Modules a command applies to. ``allowed`` of None means any module."""

    allowed: Optional[FrozenSet[Module]] = None

    @classmethod
    def any(cls) -> "ModuleScope":
        return cls()

    @classmethod
    def only(cls, *modules: Module) -> "ModuleScope":
        return cls(frozenset(modules))

    @property
    def is_restricted(self) -> bool:
        return self.allowed is not None

    def permits(self, module: Module) -> bool:
        return self.allowed is None or module in self.allowed


@dataclass(frozen=True)
class ModeScope:
    """Operating modes a command applies to. ``allowed`` of None means any mode."""

    allowed: Optional[FrozenSet[OperatingMode]] = None

    @classmethod
    def any(cls) -> "ModeScope":
        return cls()

    @classmethod
    def only(cls, *modes: OperatingMode) -> "ModeScope":
        return cls(frozenset(modes))

    @property
    def is_restricted(self) -> bool:
        return self.allowed is not None

    def permits(self, mode: OperatingMode) -> bool:
        return self.allowed is None or mode in self.allowed
