import math

import pytest

from jpe_cpsc.controller import bounds
from jpe_cpsc.controller.commands import format_float
from jpe_cpsc.controller.response import ResponseValues
from jpe_cpsc.controller.types import (
    Direction,
    IpAddrMode,
    Module,
    ModeScope,
    ModuleChannel,
    ModuleScope,
    OperatingMode,
    SerialInterface,
    SetpointPosMode,
    Slot,
)
from jpe_cpsc.utils.exceptions import (
    BoundError,
    InvalidParamsError,
    InvalidResponseError,
    ValueParseError,
)


@pytest.mark.parametrize("value, expected", [
    (1, Slot.ONE), ("6", Slot.SIX), (" three ", Slot.THREE), ("Four", Slot.FOUR), (Slot.TWO, Slot.TWO),
])
def test_slot_parse(value, expected):
    assert Slot.parse(value) is expected


@pytest.mark.parametrize("value", [0, 7, "seven", "", "1.5", -1])
def test_slot_parse_rejects(value):
    with pytest.raises(InvalidParamsError):
        Slot.parse(value)


def test_slot_index_and_wire_form():
    assert Slot.THREE.index == 2
    assert Slot.from_index(5) is Slot.SIX
    assert str(Slot.FOUR) == "4"


def test_channel_parse():
    assert ModuleChannel.parse("two") is ModuleChannel.TWO
    assert str(ModuleChannel.parse(3)) == "3"
    with pytest.raises(InvalidParamsError):
        ModuleChannel.parse(4)


@pytest.mark.parametrize("name, expected", [
    ("CADM2", Module.CADM), ("rsm", Module.RSM), ("OEM2", Module.OEM), ("PSM1", Module.PSM),
    ("EDM", Module.EDM), ("-", Module.EMPTY), ("", Module.EMPTY),
])
def test_module_from_name(name, expected):
    assert Module.from_name(name) is expected


def test_module_from_unknown_name():
    with pytest.raises(InvalidResponseError):
        Module.from_name("XYZ9")


def test_enum_parsing_and_wire_forms():
    assert str(Direction.parse("positive")) == "1"
    assert str(Direction.parse(0)) == "0"
    assert str(SetpointPosMode.parse("Absolute")) == "1"
    assert str(SetpointPosMode.parse("rel")) == "0"
    assert str(SerialInterface.parse("rs-422")) == "RS422"
    assert str(IpAddrMode.parse("static")) == "STATIC"
    assert str(OperatingMode.SERVODRIVE) == "Servodrive"

    for parser, bad in [
        (Direction.parse, "up"),
        (SetpointPosMode.parse, "2"),
        (SerialInterface.parse, "ethernet"),
        (IpAddrMode.parse, "auto"),
    ]:
        with pytest.raises(InvalidParamsError):
            parser(bad)


def test_scopes():
    assert ModuleScope.any().permits(Module.EMPTY)
    assert not ModuleScope.any().is_restricted
    cadm = ModuleScope.only(Module.CADM)
    assert cadm.is_restricted
    assert cadm.permits(Module.CADM)
    assert not cadm.permits(Module.RSM)

    servo = ModeScope.only(OperatingMode.SERVODRIVE)
    assert servo.permits(OperatingMode.SERVODRIVE)
    assert not servo.permits(OperatingMode.BASEDRIVE)
    assert ModeScope.any().permits(OperatingMode.FLEXDRIVE)


@pytest.mark.parametrize("bound, value", [
    (bounds.TEMPERATURE, 0), (bounds.TEMPERATURE, 300), (bounds.TEMPERATURE, 77.0),
    (bounds.DRIVE_FACTOR, 0.1), (bounds.DRIVE_FACTOR, 2.5), (bounds.DRIVE_FACTOR, 3),
    (bounds.NUM_STEPS, 50_000), (bounds.SCANNER_LEVEL, 1023),
])
def test_bound_accepts(bound, value):
    assert bound.check(value) == value


@pytest.mark.parametrize("bound, value", [
    (bounds.TEMPERATURE, 301), (bounds.TEMPERATURE, -1), (bounds.TEMPERATURE, 1.5),
    (bounds.TEMPERATURE, True), (bounds.TEMPERATURE, "5"), (bounds.TEMPERATURE, None),
    (bounds.TEMPERATURE, math.nan), (bounds.TEMPERATURE, math.inf),
    (bounds.DRIVE_FACTOR, 0.05), (bounds.STEP_FREQUENCY, 601),
])
def test_bound_rejects(bound, value):
    with pytest.raises(BoundError):
        bound.check(value)


def test_bound_message():
    with pytest.raises(BoundError, match=r"temperature \[K\]: 0-300, got 301"):
        bounds.TEMPERATURE.check(301)


@pytest.mark.parametrize("duty", [0, 10, 55, 100])
def test_duty_cycle_accepts(duty):
    assert bounds.check_duty_cycle(duty) == duty


@pytest.mark.parametrize("duty", [5, 9, 101, -1])
def test_duty_cycle_rejects(duty):
    with pytest.raises(BoundError):
        bounds.check_duty_cycle(duty)


def test_response_values():
    values = ResponseValues.checked(["7", " 2.5 ", "x"], 3)
    assert len(values) == 3
    assert values.as_int(0) == 7
    assert values.as_float(1) == 2.5
    assert values.as_text(2) == "x"
    assert values.to_list() == ["7", " 2.5 ", "x"]
    assert list(values) == ["7", " 2.5 ", "x"]

    with pytest.raises(InvalidResponseError):
        values.as_text(3)
    with pytest.raises(ValueParseError):
        values.as_int(2)
    with pytest.raises(ValueParseError):
        values.as_float(2)


def test_response_values_count_check():
    assert len(ResponseValues.checked(["a", "b"], None)) == 2
    with pytest.raises(InvalidResponseError, match="Expected 1 values, got 2"):
        ResponseValues.checked(["a", "b"], 1)


@pytest.mark.parametrize("value, text", [
    (1.0, "1"), (1, "1"), (0, "0"), (0.5, "0.5"), (-0.125, "-0.125"),
    (1e-05, "0.00001"), (1e20, "100000000000000000000"), (0.1, "0.1"),
])
def test_format_float(value, text):
    assert format_float(value) == text
