"""
Controller state owned by a Context.

Holds everything the driver knows about the device without asking it:
operating mode, the firmware version once read, the module installed in
each of the six slots, and the supported-stage catalog once read. Both
the sync and async Context share this class; it performs no I/O.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from jpe_cpsc.controller.response import ResponseValues
from jpe_cpsc.controller.types import NUM_SLOTS, Module, OperatingMode, Slot
from jpe_cpsc.protocol.codec import Command, Frame
from jpe_cpsc.utils.exceptions import DeviceError, InvalidParamsError


logger = logging.getLogger(__name__)


class ControllerState:
    """Mode, caches and module table of one controller session."""

    def __init__(self):
        self.mode = OperatingMode.BASEDRIVE
        self.firmware_version: Optional[str] = None
        self.supported_stages: List[str] = []
        self._modules: List[Module] = [Module.EMPTY] * NUM_SLOTS

    @property
    def modules(self) -> Tuple[Module, ...]:
        return tuple(self._modules)

    def module_at(self, slot) -> Module:
        return self._modules[Slot.parse(slot).index]

    def validate(self, command: Command, slot: Optional[Slot] = None) -> None:
        """
        Check that ``command`` is legal right now.

        The mode scope is checked first, then the module scope against the
        module recorded at ``slot``. A module-scoped command given no slot
        passes the module check.

        Raises:
            InvalidParamsError: Naming the current mode or the module found.
        """
        if not command.mode_scope.permits(self.mode):
            raise InvalidParamsError(
                f"Unsupported command: '{command.mnemonic}', in mode: '{self.mode}'"
            )

        if command.module_scope.is_restricted and slot is not None:
            module = self._modules[slot.index]
            if not command.module_scope.permits(module):
                raise InvalidParamsError(
                    f"Unsupported command: '{command.mnemonic}', for module: '{module}'"
                )

    def check_stages(self, stages: Iterable[str]) -> None:
        """
        Raises:
            DeviceError: For the first stage name missing from the catalog.
        """
        catalog = self.supported_stages
        for stage in stages:
            if stage not in catalog:
                raise DeviceError(f"Stage {stage} unsupported")

    @staticmethod
    def interpret(frame: Frame, expected: Optional[int]) -> ResponseValues:
        """
        Turn a frame into count-checked values.

        Raises:
            DeviceError: If the controller answered with an Error frame.
            InvalidResponseError: If the value count is not ``expected``.
        """
        if frame.is_error:
            raise DeviceError(frame.message)
        return ResponseValues.checked(frame.values, expected)

    def update_modules(self, values: Sequence[str]) -> None:
        """
        Replace the module table from a /MODLIST reply.

        All names are parsed before anything is assigned, so a reply with
        an unknown module leaves the table untouched.
        """
        parsed = [Module.from_name(name) for name in values[:NUM_SLOTS]]
        parsed += [Module.EMPTY] * (NUM_SLOTS - len(parsed))
        self._modules = parsed
        logger.info(
            "Module table: " + ", ".join(f"{i + 1}={m}" for i, m in enumerate(parsed))
        )

    def set_mode(self, mode: OperatingMode) -> None:
        if mode is not self.mode:
            logger.info(f"Operating mode: {self.mode} -> {mode}")
        self.mode = mode
