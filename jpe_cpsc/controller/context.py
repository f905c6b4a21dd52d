"""
Synchronous controller context.

A BaseContext owns one Connection and the ControllerState of the device
behind it. Every public method builds an Operation, validates it against
the state, and only then touches the wire.
"""

import logging
from typing import Any, List, Optional, Tuple

from jpe_cpsc.controller import commands
from jpe_cpsc.controller.commands import Operation, ServodriveStatus
from jpe_cpsc.controller.response import ResponseValues
from jpe_cpsc.controller.state import ControllerState
from jpe_cpsc.controller.types import Module, OperatingMode, Slot
from jpe_cpsc.protocol.codec import Command
from jpe_cpsc.protocol.connection import Connection


logger = logging.getLogger(__name__)


class BaseContext:
    """
    Blocking command surface for one CPSC controller.

    Not thread-safe. Share it between threads only behind a lock, as the
    HTTP surface does.
    """

    def __init__(self, connection: Connection):
        self._conn = connection
        self._state = ControllerState()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _dispatch(self, command: Command, expected: Optional[int], slot: Optional[Slot] = None) -> ResponseValues:
        """
        Validate, transact and count-check one command.

        Raises:
            InvalidParamsError: Scope violation; nothing was sent.
            DeviceError: The controller answered with an Error frame.
            InvalidResponseError: Framing failure or wrong value count.
            BufOverflowError: Response exceeded the frame size limit.
            TransportIOError: Channel failure.
        """
        self._state.validate(command, slot)
        frame = self._conn.transact(command)
        return self._state.interpret(frame, expected)

    def _execute(self, op: Operation) -> Any:
        self._state.validate(op.command, op.slot)
        if op.stages:
            self._ensure_stages()
            self._state.check_stages(op.stages)
        values = self._dispatch(op.command, op.n_values, op.slot)
        result = op.result(values)
        if op.next_mode is not None:
            self._state.set_mode(op.next_mode)
        return result

    def _ensure_stages(self) -> List[str]:
        # An empty catalog is re-read on every use until the controller reports one.
        if not self._state.supported_stages:
            self.refresh_supported_stages()
        return self._state.supported_stages

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> OperatingMode:
        return self._state.mode

    @property
    def modules(self) -> Tuple[Module, ...]:
        return self._state.modules

    def module_at(self, slot) -> Module:
        """Module installed in ``slot`` according to the last /MODLIST."""
        return self._state.module_at(slot)

    @property
    def firmware_version(self) -> Optional[str]:
        """Cached firmware version, or None if it was never read."""
        return self._state.firmware_version

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def __enter__(self) -> "BaseContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # General controller commands
    # ------------------------------------------------------------------

    def get_fw_version(self) -> str:
        """
        Firmware version of the controller.

        Read from the device once per session and cached afterwards.
        """
        if self._state.firmware_version is None:
            self._state.firmware_version = self._execute(commands.get_fw_version())
        return self._state.firmware_version

    def get_mod_fw_version(self, slot) -> str:
        """Firmware version of the module in ``slot`` (FIV)."""
        return self._execute(commands.get_mod_fw_version(slot))

    def get_module_list(self) -> List[str]:
        """Query the installed modules and refresh the module table."""
        names = self._execute(commands.get_module_list())
        self._state.update_modules(names)
        return names

    def get_supported_stages(self) -> List[str]:
        """
        Stage types the controller supports.

        The catalog is cached once the controller reports at least one
        stage; use :meth:`refresh_supported_stages` to re-read it.
        """
        return list(self._ensure_stages())

    def refresh_supported_stages(self) -> List[str]:
        """Re-read the stage catalog (/STAGES) and replace the cached copy."""
        stages = self._execute(commands.get_supported_stages())
        self._state.supported_stages = stages
        logger.debug(f"Supported stages: {stages}")
        return list(stages)

    def get_ip_config(self) -> List[str]:
        """LAN settings (/IPR) as five strings: mode, IP address, subnet mask, gateway, MAC."""
        return self._execute(commands.get_ip_config())

    def set_ip_config(self, addr_mode, ip_addr, mask, gateway) -> str:
        """Configure LAN addressing (/IPS). For DHCP the address arguments are ignored."""
        return self._execute(commands.set_ip_config(addr_mode, ip_addr, mask, gateway))

    def get_baud_rate(self, interface) -> int:
        """Baud rate of the USB or RS-422 ``interface`` (/GBR)."""
        return self._execute(commands.get_baud_rate(interface))

    def set_baud_rate(self, interface, baud) -> str:
        """Change the device's own baud rate; the host port is left as is."""
        return self._execute(commands.set_baud_rate(interface, baud))

    def start_mod_fw_update(self, filename: str, slot) -> None:
        """Start a firmware update of the module in ``slot`` from ``filename`` (FU)."""
        self._execute(commands.start_mod_fw_update(filename, slot))

    # ------------------------------------------------------------------
    # CADM2
    # ------------------------------------------------------------------

    def get_fail_safe_state(self, slot) -> str:
        """Fail-safe state of the CADM2 in ``slot`` (GFS), as reported by the module."""
        return self._execute(commands.get_fail_safe_state(slot))

    def move_stage_open(self, slot, direction, step_freq, r_step_size, n_steps, temp, stage, drive_factor) -> str:
        """
        Open-loop move of the stage on a CADM2 module.

        Args:
            slot: Module slot, 1-6.
            direction: Direction.POSITIVE or Direction.NEGATIVE.
            step_freq: Step frequency in Hz, 0-600.
            r_step_size: Relative step size in percent, 0-100.
            n_steps: Number of steps, 0-50000 (0 moves continuously).
            temp: Stage temperature in Kelvin, 0-300.
            stage: Stage type, must be in the supported-stage catalog.
            drive_factor: 0.1-3.0.
        """
        return self._execute(
            commands.move_stage_open(slot, direction, step_freq, r_step_size, n_steps, temp, stage, drive_factor)
        )

    def stop_stage(self, slot) -> str:
        """Stop the stage on ``slot`` (STP) and return to basic mode."""
        return self._execute(commands.stop_stage(slot))

    def enable_scan_mode(self, slot, level) -> str:
        """Hold a DC output level of 0-1023, about 0-150 V (SDC)."""
        return self._execute(commands.enable_scan_mode(slot, level))

    def enable_ext_input_mode(self, slot, direction, step_freq, r_step_size, temp, stage, drive_factor) -> str:
        """Enter flexdrive (EXT); ``step_freq`` in Hz is reached at maximum input signal."""
        return self._execute(
            commands.enable_ext_input_mode(slot, direction, step_freq, r_step_size, temp, stage, drive_factor)
        )

    # ------------------------------------------------------------------
    # RSM
    # ------------------------------------------------------------------

    def get_current_position(self, slot, channel, stage) -> float:
        """Position of one RSM ``channel`` (PGV), in meters or radians depending on ``stage``."""
        return self._execute(commands.get_current_position(slot, channel, stage))

    def get_current_position_all(self, slot, stage_ch1, stage_ch2, stage_ch3) -> Tuple[float, float, float]:
        """Positions of all three RSM channels (PGVA) as ``(ch1, ch2, ch3)``."""
        return self._execute(commands.get_current_position_all(slot, stage_ch1, stage_ch2, stage_ch3))

    def set_neg_end_stop(self, slot, channel) -> str:
        """Store the current position as negative end-stop (MIS)."""
        return self._execute(commands.set_neg_end_stop(slot, channel))

    def set_pos_end_stop(self, slot, channel) -> str:
        """Store the current position as positive end-stop (MAS)."""
        return self._execute(commands.set_pos_end_stop(slot, channel))

    def read_neg_end_stop(self, slot, channel, stage) -> float:
        """Negative end-stop of ``channel`` (MIR), in stage units."""
        return self._execute(commands.read_neg_end_stop(slot, channel, stage))

    def read_pos_end_stop(self, slot, channel, stage) -> float:
        """Positive end-stop of ``channel`` (MAR), in stage units."""
        return self._execute(commands.read_pos_end_stop(slot, channel, stage))

    def reset_end_stops(self, slot, channel) -> str:
        """Clear both end-stops of ``channel`` (MMR)."""
        return self._execute(commands.reset_end_stops(slot, channel))

    def set_excitation_ds(self, slot, duty) -> str:
        """Sensor excitation duty cycle in percent, 0 or 10-100 (EXS)."""
        return self._execute(commands.set_excitation_ds(slot, duty))

    def read_excitation_ds(self, slot) -> int:
        """Sensor excitation duty cycle in percent (EXR)."""
        return self._execute(commands.read_excitation_ds(slot))

    def save_rsm_nvram(self, slot) -> str:
        """Persist duty cycle and end-stops of the RSM in ``slot`` to NV-RAM (RSS)."""
        return self._execute(commands.save_rsm_nvram(slot))

    # ------------------------------------------------------------------
    # Servodrive
    # ------------------------------------------------------------------

    def enable_servodrive(
        self,
        stage_1, init_step_freq_1,
        stage_2, init_step_freq_2,
        stage_3, init_step_freq_3,
        temp, drive_factor,
    ) -> str:
        """Start closed-loop control of three stages (FBEN); temperature in Kelvin."""
        return self._execute(commands.enable_servodrive(
            stage_1, init_step_freq_1,
            stage_2, init_step_freq_2,
            stage_3, init_step_freq_3,
            temp, drive_factor,
        ))

    def disable_servodrive(self) -> str:
        """Leave servodrive mode (FBXT)."""
        return self._execute(commands.disable_servodrive())

    def servodrive_em_stop(self) -> str:
        """Emergency stop of the control loop (FBES); the stages stop where they are."""
        return self._execute(commands.servodrive_em_stop())

    def go_to_setpoint(self, set_point1, pos_mode_1, set_point2, pos_mode_2, set_point3, pos_mode_3) -> str:
        """Send three setpoints (FBCS), meters for linear and radians for rotational stages."""
        return self._execute(commands.go_to_setpoint(
            set_point1, pos_mode_1, set_point2, pos_mode_2, set_point3, pos_mode_3
        ))

    def get_servodrive_status(self) -> ServodriveStatus:
        """Control loop status (FBST) as a :class:`ServodriveStatus`."""
        return self._execute(commands.get_servodrive_status())
