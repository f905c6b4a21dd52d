"""
Synchronous request/response engine.

One transaction is: clear output, clear input, write and flush the
command, then read 64-byte chunks until the buffer ends with the
terminator, the frame size limit is exceeded, the stream closes or the
500 ms deadline passes. Whatever was accumulated is handed to the codec.

No transaction is retried. Only ``BlockingIOError``/``TimeoutError``
raised by a chunk read are retried, inside the same deadline.
"""

import logging
import time

from jpe_cpsc.protocol.codec import (
    MAX_FRAME_SIZE,
    READ_CHUNK_SIZE,
    TERMINATOR_BYTES,
    Command,
    Frame,
    decode_frame,
)
from jpe_cpsc.protocol.interface import ByteChannel
from jpe_cpsc.protocol.logger import get_protocol_logger
from jpe_cpsc.utils.exceptions import BufOverflowError, CpscError, TransportIOError


logger = logging.getLogger(__name__)

READ_TIMEOUT = 0.5


class Connection:
    """
    Owns a byte channel and the read buffer used to frame its responses.

    Not thread-safe: a Connection belongs to exactly one Context.
    """

    def __init__(self, channel: ByteChannel, read_timeout: float = READ_TIMEOUT):
        """
        Args:
            channel: Serial, TCP or simulated byte channel.
            read_timeout: Deadline in seconds for reading one response.
        """
        self._channel = channel
        self._read_timeout = read_timeout
        self._read_buf = bytearray()

    @property
    def channel(self) -> ByteChannel:
        return self._channel

    def transact(self, cmd: Command) -> Frame:
        """
        Send ``cmd`` and return the framed response.

        Raises:
            TransportIOError: On channel failure.
            BufOverflowError: If the response exceeds MAX_FRAME_SIZE.
            InvalidResponseError: If the response cannot be framed.
        """
        protocol_logger = get_protocol_logger()
        payload = cmd.encode()

        try:
            self._channel.clear_output_buffer()
            self._channel.clear_input_buffer()
            logger.debug(f"TX: {payload!r}")
            protocol_logger.log_tx(payload)
            self._channel.write(payload)
        except CpscError:
            raise
        except OSError as e:
            raise TransportIOError(f"Failed to send {cmd}: {e}") from e

        self._read_chunks(cmd)
        data = bytes(self._read_buf)

        try:
            frame = decode_frame(data)
        except CpscError as e:
            protocol_logger.log_error(str(e), data)
            raise

        logger.debug(f"RX: {data!r}")
        protocol_logger.log_rx(data, frame)
        return frame

    def _read_chunks(self, cmd: Command) -> None:
        """Fill the read buffer with one response (see module docstring)."""
        self._read_buf.clear()
        deadline = time.monotonic() + self._read_timeout

        while time.monotonic() < deadline and not self._read_buf.endswith(TERMINATOR_BYTES):
            try:
                chunk = self._channel.read(READ_CHUNK_SIZE)
            except (BlockingIOError, TimeoutError):
                continue
            except CpscError:
                raise
            except OSError as e:
                raise TransportIOError(f"Failed reading response to {cmd}: {e}") from e

            if not chunk:
                logger.debug(f"Stream closed while reading response to {cmd}")
                break

            total = len(self._read_buf) + len(chunk)
            if total > MAX_FRAME_SIZE:
                get_protocol_logger().log_error("Buffer overflow", bytes(self._read_buf))
                self._read_buf.clear()
                try:
                    self._channel.clear_input_buffer()
                except (CpscError, OSError) as e:
                    logger.warning(f"Failed to clear input after overflow: {e}")
                raise BufOverflowError(max_len=MAX_FRAME_SIZE, idx=total)

            self._read_buf.extend(chunk)

        if not self._read_buf.endswith(TERMINATOR_BYTES):
            logger.debug(f"No terminator for {cmd} after {len(self._read_buf)} bytes")

    def close(self) -> None:
        self._channel.close()
