"""
Command encoding and response framing for the CPSC text protocol.

Requests are ``<mnemonic> <args...>`` followed by CR LF. Every response
ends with the same terminator and is one of:

- an error, whose text starts with ``Error``;
- a comma-delimited value list;
- a CR-delimited value list. The controller firmware emits this form for
  some list queries; it is decoded for compatibility and never produced.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from jpe_cpsc.controller.types import ModeScope, ModuleScope
from jpe_cpsc.utils.exceptions import (
    BufOverflowError,
    InvalidResponseError,
    ResponseEncodingError,
)


TERMINATOR = "\r\n"
TERMINATOR_BYTES = TERMINATOR.encode("ascii")
READ_CHUNK_SIZE = 64
MAX_FRAME_SIZE = 4096
ERROR_PREFIX = "Error"


@dataclass(frozen=True)
class Command:
    """
    A single request together with the scopes it is legal in.

    ``payload`` already carries the terminator. Argument values must not
    contain the terminator, commas or carriage returns; nothing is escaped.
    """

    module_scope: ModuleScope
    mode_scope: ModeScope
    payload: str

    @classmethod
    def new(cls, module_scope: ModuleScope, mode_scope: ModeScope, payload: str) -> "Command":
        """Build a command from an unterminated ``mnemonic args...`` string."""
        return cls(module_scope, mode_scope, f"{payload}{TERMINATOR}")

    @property
    def mnemonic(self) -> str:
        """First word of the payload, used in log and error messages."""
        words = self.payload.split()
        return words[0] if words else "Unknown"

    def encode(self) -> bytes:
        """Wire bytes for this command."""
        return self.payload.encode("ascii")

    def __str__(self) -> str:
        return self.mnemonic


class FrameKind(Enum):
    """Classification of a framed response."""
    ERROR = "error"
    COMMA_DELIMITED = "comma"
    CR_DELIMITED = "cr"


@dataclass(frozen=True)
class Frame:
    """One complete response from the controller."""

    kind: FrameKind
    message: str = ""
    values: tuple = ()

    @classmethod
    def error(cls, message: str) -> "Frame":
        return cls(FrameKind.ERROR, message=message)

    @classmethod
    def comma_delimited(cls, values: List[str]) -> "Frame":
        return cls(FrameKind.COMMA_DELIMITED, values=tuple(values))

    @classmethod
    def cr_delimited(cls, values: List[str]) -> "Frame":
        return cls(FrameKind.CR_DELIMITED, values=tuple(values))

    @property
    def is_error(self) -> bool:
        return self.kind is FrameKind.ERROR


def decode_frame(
    buffer: bytes,
    length: Optional[int] = None,
    capacity: int = MAX_FRAME_SIZE,
) -> Frame:
    """
    Classify the first ``length`` bytes of ``buffer`` as a Frame.

    Args:
        buffer: Accumulated response bytes.
        length: Number of valid bytes in ``buffer`` (defaults to all of it).
        capacity: Largest frame accepted.

    Returns:
        The decoded Frame.

    Raises:
        BufOverflowError: If ``length`` exceeds ``capacity``.
        ResponseEncodingError: If the bytes are not UTF-8.
        InvalidResponseError: If the terminator is missing or the frame
            has no carriage return at all.

    Example:
        >>> decode_frame(b"v1,v2,v3\\r\\n").values
        ('v1', 'v2', 'v3')
    """
    if length is None:
        length = len(buffer)
    if length > capacity:
        raise BufOverflowError(max_len=capacity, idx=length)

    try:
        text = bytes(buffer[:length]).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ResponseEncodingError(f"Response is not valid UTF-8: {e}") from e

    # Error frames win over any delimiter logic.
    if text.startswith(ERROR_PREFIX):
        return Frame.error(text.removesuffix(TERMINATOR))

    if not text.endswith(TERMINATOR):
        raise InvalidResponseError(f"Terminator not found: {text!r}")
    body = text[: -len(TERMINATOR)]

    # The terminator contributes one CR; any more means CR-delimited values.
    cr_count = text.count("\r")
    if cr_count == 1:
        return Frame.comma_delimited(body.split(","))
    if cr_count >= 2:
        return Frame.cr_delimited(body.split("\r"))
    raise InvalidResponseError(f"Malformed response: {text!r}")
