"""
Asynchronous request/response engine.

Same transaction shape as :mod:`jpe_cpsc.protocol.connection`. The only
suspension point inside a transaction is the awaited chunk read, bounded
by whatever remains of the read deadline. The input buffer is always
cleared before writing, so a reply left unread by a cancelled
transaction cannot be framed as the answer to the next one.
"""

import asyncio
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
from jpe_cpsc.protocol.connection import READ_TIMEOUT
from jpe_cpsc.protocol.interface import AsyncByteChannel
from jpe_cpsc.protocol.logger import get_protocol_logger
from jpe_cpsc.utils.exceptions import BufOverflowError, CpscError, TransportIOError


logger = logging.getLogger(__name__)


class AsyncConnection:
    """Owns an async byte channel and the read buffer used to frame its responses."""

    def __init__(self, channel: AsyncByteChannel, read_timeout: float = READ_TIMEOUT):
        self._channel = channel
        self._read_timeout = read_timeout
        self._read_buf = bytearray()

    @property
    def channel(self) -> AsyncByteChannel:
        return self._channel

    async def transact(self, cmd: Command) -> Frame:
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
            await self._channel.clear_output_buffer()
            await self._channel.clear_input_buffer()
            logger.debug(f"TX: {payload!r}")
            protocol_logger.log_tx(payload)
            await self._channel.write(payload)
        except CpscError:
            raise
        except OSError as e:
            raise TransportIOError(f"Failed to send {cmd}: {e}") from e

        await self._read_chunks(cmd)
        data = bytes(self._read_buf)

        try:
            frame = decode_frame(data)
        except CpscError as e:
            protocol_logger.log_error(str(e), data)
            raise

        logger.debug(f"RX: {data!r}")
        protocol_logger.log_rx(data, frame)
        return frame

    async def _read_chunks(self, cmd: Command) -> None:
        self._read_buf.clear()
        deadline = time.monotonic() + self._read_timeout

        while not self._read_buf.endswith(TERMINATOR_BYTES):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                chunk = await asyncio.wait_for(self._channel.read(READ_CHUNK_SIZE), remaining)
            except (BlockingIOError, TimeoutError, asyncio.TimeoutError):
                # Either a polling artifact or the deadline; the loop condition decides.
                continue
            except CpscError:
                self._read_buf.clear()
                raise
            except OSError as e:
                self._read_buf.clear()
                raise TransportIOError(f"Failed reading response to {cmd}: {e}") from e

            if not chunk:
                logger.debug(f"Stream closed while reading response to {cmd}")
                break

            total = len(self._read_buf) + len(chunk)
            if total > MAX_FRAME_SIZE:
                get_protocol_logger().log_error("Buffer overflow", bytes(self._read_buf))
                self._read_buf.clear()
                try:
                    await self._channel.clear_input_buffer()
                except (CpscError, OSError) as e:
                    logger.warning(f"Failed to clear input after overflow: {e}")
                raise BufOverflowError(max_len=MAX_FRAME_SIZE, idx=total)

            self._read_buf.extend(chunk)

    async def close(self) -> None:
        await self._channel.close()
