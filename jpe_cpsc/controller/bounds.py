"""
Closed numeric ranges accepted by the controller for physical-unit arguments.
"""

from dataclasses import dataclass
from numbers import Real
from typing import Union

from jpe_cpsc.utils.exceptions import BoundError


Number = Union[int, float]


@dataclass(frozen=True)
class Bound:
    """Inclusive range ``[low, high]`` for one named argument."""

    name: str
    low: Number
    high: Number
    integer: bool = True

    def __contains__(self, value) -> bool:
        if isinstance(value, bool) or not isinstance(value, Real):
            return False
        if self.integer and not float(value).is_integer():
            return False
        return self.low <= value <= self.high

    def check(self, value):
        """
        Return ``value`` if it is in range.

        Raises:
            BoundError: Naming the argument, the range and the offending value.
        """
        if value not in self:
            raise BoundError(
                f"Out of range for {self.name}: {self.low}-{self.high}, got {value}"
            )
        return value


BAUD = Bound("baud rate", 9600, 1_000_000)
DRIVE_FACTOR = Bound("drive factor", 0.1, 3.0, integer=False)
STEP_FREQUENCY = Bound("step frequency [Hz]", 0, 600)
RELATIVE_STEP_SIZE = Bound("relative step size [%]", 0, 100)
NUM_STEPS = Bound("number of steps", 0, 50_000)
TEMPERATURE = Bound("temperature [K]", 0, 300)
SCANNER_LEVEL = Bound("scanner level", 0, 1023)
DUTY_CYCLE_OFF = Bound("duty cycle [%]", 0, 0)
DUTY_CYCLE = Bound("duty cycle [%]", 10, 100)


def check_duty_cycle(duty) -> int:
    """
    Excitation duty cycle is either 0 (off) or 10-100; nothing in between.

    Raises:
        BoundError: If ``duty`` is outside both ranges.
    """
    if duty in DUTY_CYCLE_OFF or duty in DUTY_CYCLE:
        return duty
    raise BoundError(f"Duty cycle out of range: 0, 10-100. Got {duty}")
