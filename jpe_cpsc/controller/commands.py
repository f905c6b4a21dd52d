"""
Per-operation command factories.

Each factory validates and bounds-checks its arguments, then returns an
:class:`Operation` describing everything a Context needs to run it: the
scoped command, how many values the reply must have, the addressed slot,
the stage names to verify, how to map the reply, and the mode to record
once the exchange succeeded. Factories never touch the wire, so a bad
argument is rejected before any transaction.
"""

import ipaddress
import math
from dataclasses import dataclass
from decimal import Decimal
from numbers import Real
from typing import Any, Callable, NamedTuple, Optional, Tuple

from jpe_cpsc.controller import bounds
from jpe_cpsc.controller.response import ResponseValues
from jpe_cpsc.controller.types import (
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
from jpe_cpsc.protocol.codec import Command
from jpe_cpsc.utils.exceptions import InvalidParamsError


BASE = OperatingMode.BASEDRIVE
SERVO = OperatingMode.SERVODRIVE
FLEX = OperatingMode.FLEXDRIVE

ANY_MODULE = ModuleScope.any()
ANY_MODE = ModeScope.any()
CADM_ONLY = ModuleScope.only(Module.CADM)
RSM_ONLY = ModuleScope.only(Module.RSM)


class ServodriveStatus(NamedTuple):
    """Reply of FBST. Position errors are dimensionless."""
    enabled: int
    finished: int
    invalid_sp1: int
    invalid_sp2: int
    invalid_sp3: int
    pos_error1: int
    pos_error2: int
    pos_error3: int


def first_text(values: ResponseValues) -> str:
    return values.as_text(0)


def first_int(values: ResponseValues) -> int:
    return values.as_int(0)


def first_float(values: ResponseValues) -> float:
    return values.as_float(0)


def as_list(values: ResponseValues) -> list:
    return values.to_list()


def non_blank(values: ResponseValues) -> list:
    return [v.strip() for v in values if v.strip()]


def ignore(values: ResponseValues) -> None:
    return None


@dataclass(frozen=True)
class Operation:
    """A validated, ready-to-dispatch controller operation."""

    command: Command
    n_values: Optional[int]
    slot: Optional[Slot] = None
    stages: Tuple[str, ...] = ()
    result: Callable[[ResponseValues], Any] = first_text
    next_mode: Optional[OperatingMode] = None


def format_float(value: float) -> str:
    """Plain decimal text without exponent or trailing zeros (1.0 -> "1", 1e-05 -> "0.00001")."""
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _real(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise InvalidParamsError(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _stage(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidParamsError(f"Stage name must be a non-empty string, got {value!r}")
    return value.strip()


def _ipv4(name: str, value) -> ipaddress.IPv4Address:
    try:
        return ipaddress.IPv4Address(str(value).strip())
    except ValueError as e:
        raise InvalidParamsError(f"Invalid {name}: {value}") from e


# ======= General controller commands =======

def get_fw_version() -> Operation:
    return Operation(Command.new(ANY_MODULE, ANY_MODE, "/VER"), 1)


def get_mod_fw_version(slot) -> Operation:
    slot = Slot.parse(slot)
    return Operation(Command.new(ANY_MODULE, ANY_MODE, f"FIV {slot}"), 1, slot)


def get_module_list() -> Operation:
    return Operation(Command.new(ANY_MODULE, ANY_MODE, "/MODLIST"), 6, result=as_list)


def get_supported_stages() -> Operation:
    return Operation(Command.new(ANY_MODULE, ANY_MODE, "/STAGES"), None, result=non_blank)


def get_ip_config() -> Operation:
    """Reply: [MODE],[IP address],[Subnet Mask],[Gateway],[MAC Address]."""
    return Operation(Command.new(ANY_MODULE, ANY_MODE, "/IPR"), 5, result=as_list)


def set_ip_config(addr_mode, ip_addr, mask, gateway) -> Operation:
    addr_mode = IpAddrMode.parse(addr_mode)
    ip_addr = _ipv4("IP address", ip_addr)
    mask = _ipv4("subnet mask", mask)
    gateway = _ipv4("gateway", gateway)

    if addr_mode is IpAddrMode.DHCP:
        payload = "/IPS DHCP 0.0.0.0 0.0.0.0 0.0.0.0"
    else:
        payload = f"/IPS STATIC {ip_addr} {mask} {gateway}"
    return Operation(Command.new(ANY_MODULE, ANY_MODE, payload), 1)


def get_baud_rate(interface) -> Operation:
    interface = SerialInterface.parse(interface)
    return Operation(Command.new(ANY_MODULE, ANY_MODE, f"/GBR {interface}"), 1, result=first_int)


def set_baud_rate(interface, baud) -> Operation:
    interface = SerialInterface.parse(interface)
    bounds.BAUD.check(baud)
    return Operation(Command.new(ANY_MODULE, ANY_MODE, f"/SBR {interface} {int(baud)}"), 1)


def start_mod_fw_update(filename: str, slot) -> Operation:
    """The reply varies by module and is not interpreted."""
    slot = Slot.parse(slot)
    if not isinstance(filename, str) or not filename.strip():
        raise InvalidParamsError(f"Firmware file name must be a non-empty string, got {filename!r}")
    return Operation(
        Command.new(ANY_MODULE, ANY_MODE, f"FU {slot} {filename.strip()}"),
        None,
        slot,
        result=ignore,
    )


# ======= CADM2 (open-loop drive) =======

def get_fail_safe_state(slot) -> Operation:
    slot = Slot.parse(slot)
    return Operation(Command.new(CADM_ONLY, ANY_MODE, f"GFS {slot}"), 1, slot)


def move_stage_open(slot, direction, step_freq, r_step_size, n_steps, temp, stage, drive_factor) -> Operation:
    slot = Slot.parse(slot)
    direction = Direction.parse(direction)
    bounds.STEP_FREQUENCY.check(step_freq)
    bounds.RELATIVE_STEP_SIZE.check(r_step_size)
    bounds.NUM_STEPS.check(n_steps)
    bounds.TEMPERATURE.check(temp)
    bounds.DRIVE_FACTOR.check(drive_factor)
    stage = _stage(stage)

    payload = (
        f"MOV {slot} {direction} {int(step_freq)} {int(r_step_size)} {int(n_steps)} "
        f"{int(temp)} {stage} {format_float(drive_factor)}"
    )
    return Operation(
        Command.new(CADM_ONLY, ModeScope.only(BASE), payload),
        1,
        slot,
        stages=(stage,),
    )


def stop_stage(slot) -> Operation:
    """Stops MOV, leaves external input mode (EXT) or scan mode (SDC)."""
    slot = Slot.parse(slot)
    return Operation(
        Command.new(CADM_ONLY, ModeScope.only(BASE, FLEX), f"STP {slot}"),
        1,
        slot,
        next_mode=BASE,
    )


def enable_scan_mode(slot, level) -> Operation:
    """
    Output a DC level instead of the drive signal. ``level`` 0 is ~0 V
    (-30 V relative to REF), 1023 is ~150 V (+120 V relative to REF).
    """
    slot = Slot.parse(slot)
    bounds.SCANNER_LEVEL.check(level)
    return Operation(
        Command.new(CADM_ONLY, ModeScope.only(BASE), f"SDC {slot} {int(level)}"),
        1,
        slot,
    )


def enable_ext_input_mode(slot, direction, step_freq, r_step_size, temp, stage, drive_factor) -> Operation:
    """
    Flexdrive: ``step_freq`` is the frequency at maximum absolute input
    signal, ``direction`` maps input polarity to stage direction.
    """
    slot = Slot.parse(slot)
    direction = Direction.parse(direction)
    bounds.STEP_FREQUENCY.check(step_freq)
    bounds.RELATIVE_STEP_SIZE.check(r_step_size)
    bounds.TEMPERATURE.check(temp)
    bounds.DRIVE_FACTOR.check(drive_factor)
    stage = _stage(stage)

    payload = (
        f"EXT {slot} {direction} {int(step_freq)} {int(r_step_size)} "
        f"{int(temp)} {stage} {format_float(drive_factor)}"
    )
    return Operation(
        Command.new(CADM_ONLY, ModeScope.only(BASE, FLEX), payload),
        1,
        slot,
        stages=(stage,),
        next_mode=FLEX,
    )


# ======= RSM (resistive sensor module) =======

def get_current_position(slot, channel, stage) -> Operation:
    slot = Slot.parse(slot)
    channel = ModuleChannel.parse(channel)
    stage = _stage(stage)
    return Operation(
        Command.new(RSM_ONLY, ModeScope.only(BASE), f"PGV {slot} {channel} {stage}"),
        1,
        slot,
        stages=(stage,),
        result=first_float,
    )


def _three_floats(values: ResponseValues) -> Tuple[float, float, float]:
    return (values.as_float(0), values.as_float(1), values.as_float(2))


def get_current_position_all(slot, stage_ch1, stage_ch2, stage_ch3) -> Operation:
    slot = Slot.parse(slot)
    stages = (_stage(stage_ch1), _stage(stage_ch2), _stage(stage_ch3))
    return Operation(
        Command.new(RSM_ONLY, ModeScope.only(BASE), f"PGVA {slot} {' '.join(stages)}"),
        3,
        slot,
        stages=stages,
        result=_three_floats,
    )


def _rsm_channel_command(mnemonic: str, slot, channel) -> Operation:
    slot = Slot.parse(slot)
    channel = ModuleChannel.parse(channel)
    return Operation(
        Command.new(RSM_ONLY, ModeScope.only(BASE), f"{mnemonic} {slot} {channel}"),
        1,
        slot,
    )


def set_neg_end_stop(slot, channel) -> Operation:
    return _rsm_channel_command("MIS", slot, channel)


def set_pos_end_stop(slot, channel) -> Operation:
    return _rsm_channel_command("MAS", slot, channel)


def reset_end_stops(slot, channel) -> Operation:
    """Restore both end-stops of ``channel`` from controller NV-RAM."""
    return _rsm_channel_command("MMR", slot, channel)


def _read_end_stop(mnemonic: str, slot, channel, stage) -> Operation:
    slot = Slot.parse(slot)
    channel = ModuleChannel.parse(channel)
    stage = _stage(stage)
    return Operation(
        Command.new(RSM_ONLY, ModeScope.only(BASE), f"{mnemonic} {slot} {channel} {stage}"),
        1,
        slot,
        stages=(stage,),
        result=first_float,
    )


def read_neg_end_stop(slot, channel, stage) -> Operation:
    return _read_end_stop("MIR", slot, channel, stage)


def read_pos_end_stop(slot, channel, stage) -> Operation:
    return _read_end_stop("MAR", slot, channel, stage)


def set_excitation_ds(slot, duty) -> Operation:
    slot = Slot.parse(slot)
    bounds.check_duty_cycle(duty)
    return Operation(
        Command.new(RSM_ONLY, ModeScope.only(BASE), f"EXS {slot} {int(duty)}"),
        1,
        slot,
    )


def read_excitation_ds(slot) -> Operation:
    slot = Slot.parse(slot)
    return Operation(
        Command.new(RSM_ONLY, ModeScope.only(BASE), f"EXR {slot}"),
        1,
        slot,
        result=first_int,
    )


def save_rsm_nvram(slot) -> Operation:
    """Persist excitation duty cycle and both end-stops to NV-RAM."""
    slot = Slot.parse(slot)
    return Operation(Command.new(RSM_ONLY, ModeScope.only(BASE), f"RSS {slot}"), 1, slot)


# ======= Servodrive (closed loop) =======

def enable_servodrive(
    stage_1, init_step_freq_1,
    stage_2, init_step_freq_2,
    stage_3, init_step_freq_3,
    temp, drive_factor,
) -> Operation:
    bounds.DRIVE_FACTOR.check(drive_factor)
    bounds.STEP_FREQUENCY.check(init_step_freq_1)
    bounds.STEP_FREQUENCY.check(init_step_freq_2)
    bounds.STEP_FREQUENCY.check(init_step_freq_3)
    bounds.TEMPERATURE.check(temp)
    stages = (_stage(stage_1), _stage(stage_2), _stage(stage_3))

    payload = (
        f"FBEN {stages[0]} {int(init_step_freq_1)} {stages[1]} {int(init_step_freq_2)} "
        f"{stages[2]} {int(init_step_freq_3)} {format_float(drive_factor)} {int(temp)}"
    )
    return Operation(
        Command.new(ANY_MODULE, ModeScope.only(BASE, SERVO), payload),
        1,
        stages=stages,
        next_mode=SERVO,
    )


def disable_servodrive() -> Operation:
    return Operation(Command.new(ANY_MODULE, ModeScope.only(SERVO), "FBXT"), 1, next_mode=BASE)


def servodrive_em_stop() -> Operation:
    """Abort the control loop; actuators stop where they are."""
    return Operation(Command.new(ANY_MODULE, ModeScope.only(SERVO), "FBES"), 1, next_mode=BASE)


def go_to_setpoint(set_point1, pos_mode_1, set_point2, pos_mode_2, set_point3, pos_mode_3) -> Operation:
    """
    Setpoints are meters for linear stages and radians for rotational
    ones. Use 0 for an output with nothing connected.
    """
    points = (
        (_real("set_point1", set_point1), SetpointPosMode.parse(pos_mode_1)),
        (_real("set_point2", set_point2), SetpointPosMode.parse(pos_mode_2)),
        (_real("set_point3", set_point3), SetpointPosMode.parse(pos_mode_3)),
    )
    payload = "FBCS " + " ".join(f"{format_float(sp)} {mode}" for sp, mode in points)
    return Operation(Command.new(ANY_MODULE, ModeScope.only(SERVO), payload), 1)


def _servodrive_status(values: ResponseValues) -> ServodriveStatus:
    return ServodriveStatus(*(values.as_int(i) for i in range(8)))


def get_servodrive_status() -> Operation:
    return Operation(
        Command.new(ANY_MODULE, ModeScope.only(SERVO), "FBST"),
        8,
        result=_servodrive_status,
    )
