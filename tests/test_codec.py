import pytest

from jpe_cpsc.controller.types import ModeScope, ModuleScope
from jpe_cpsc.protocol.codec import (
    MAX_FRAME_SIZE,
    Command,
    FrameKind,
    decode_frame,
)
from jpe_cpsc.utils.exceptions import (
    BufOverflowError,
    InvalidResponseError,
    ResponseEncodingError,
)


def test_command_appends_terminator():
    cmd = Command.new(ModuleScope.any(), ModeScope.any(), "FIV 3")
    assert cmd.payload == "FIV 3\r\n"
    assert cmd.encode() == b"FIV 3\r\n"
    assert cmd.mnemonic == "FIV"
    assert str(cmd) == "FIV"


def test_comma_delimited():
    frame = decode_frame(b"v1,v2,v3\r\n")
    assert frame.kind is FrameKind.COMMA_DELIMITED
    assert frame.values == ("v1", "v2", "v3")


def test_single_value_is_comma_delimited():
    frame = decode_frame(b"v8.0.20220221\r\n")
    assert frame.kind is FrameKind.COMMA_DELIMITED
    assert frame.values == ("v8.0.20220221",)


def test_cr_delimited():
    frame = decode_frame(b"v1\rv2\rv3\r\n")
    assert frame.kind is FrameKind.CR_DELIMITED
    assert frame.values == ("v1", "v2", "v3")


@pytest.mark.parametrize("n", [2, 3, 10])
def test_any_interior_cr_selects_cr_delimited(n):
    values = [f"v{i}" for i in range(n)]
    frame = decode_frame(("\r".join(values) + "\r\n").encode())
    assert frame.kind is FrameKind.CR_DELIMITED
    assert list(frame.values) == values


def test_cr_form_keeps_commas_inside_values():
    frame = decode_frame(b"a,b\rc\r\n")
    assert frame.values == ("a,b", "c")


@pytest.mark.parametrize("raw", [
    b"Error something failed\r\n",
    b"Error a,b,c\r\n",
    b"Error line1\rline2\r\n",
])
def test_error_takes_precedence(raw):
    frame = decode_frame(raw)
    assert frame.kind is FrameKind.ERROR
    assert frame.is_error
    assert frame.message == raw.decode()[:-2]


def test_error_without_terminator_is_still_error():
    frame = decode_frame(b"Error timeout")
    assert frame.is_error
    assert frame.message == "Error timeout"


def test_missing_terminator():
    with pytest.raises(InvalidResponseError):
        decode_frame(b"v8.0.20220221/")


def test_lone_line_feed_is_not_a_terminator():
    with pytest.raises(InvalidResponseError):
        decode_frame(b"v1,v2\n")


def test_empty_buffer():
    with pytest.raises(InvalidResponseError):
        decode_frame(b"")


def test_invalid_utf8():
    with pytest.raises(ResponseEncodingError) as exc_info:
        decode_frame(b"\xff\xfe\r\n")
    assert isinstance(exc_info.value, InvalidResponseError)
    assert isinstance(exc_info.value, ValueError)


def test_length_limits_decoded_bytes():
    frame = decode_frame(b"a,b\r\ngarbage", length=5)
    assert frame.values == ("a", "b")


def test_length_beyond_capacity():
    with pytest.raises(BufOverflowError) as exc_info:
        decode_frame(b"x" * 10, length=10, capacity=8)
    assert exc_info.value.max_len == 8
    assert exc_info.value.idx == 10


def test_frame_at_capacity_is_accepted():
    body = b"x" * (MAX_FRAME_SIZE - 2)
    frame = decode_frame(body + b"\r\n")
    assert frame.values == (body.decode(),)


def test_encoded_list_decodes_to_its_arguments():
    cmd = Command.new(ModuleScope.any(), ModeScope.any(), "CADM2,RSM,-")
    assert decode_frame(cmd.encode()).values == ("CADM2", "RSM", "-")
