"""
Byte channel interfaces the transaction engines are written against.

A channel is a duplex byte stream (serial port, TCP socket or simulator)
that can also discard pending input and output, so a stale reply from an
earlier, possibly aborted exchange never ends up in the next frame.

Read contract shared by both interfaces:
- return the bytes available, at most ``size``;
- return ``b""`` only when the remote end has closed the stream;
- raise ``BlockingIOError`` or ``TimeoutError`` when nothing has arrived
  yet. The engines treat these as polling artifacts, not failures.
"""

from abc import ABC, abstractmethod


class ByteChannel(ABC):
    """Blocking (or timeout-bounded) byte channel."""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes."""
        pass

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of ``data`` and flush it to the medium."""
        pass

    @abstractmethod
    def clear_input_buffer(self) -> None:
        """Discard everything received but not yet read."""
        pass

    @abstractmethod
    def clear_output_buffer(self) -> None:
        """Discard everything written but not yet sent."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying port or socket."""
        pass


class AsyncByteChannel(ABC):
    """Byte channel for use inside an asyncio event loop."""

    @abstractmethod
    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes."""
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write all of ``data`` and flush it to the medium."""
        pass

    @abstractmethod
    async def clear_input_buffer(self) -> None:
        """Discard everything received but not yet read."""
        pass

    @abstractmethod
    async def clear_output_buffer(self) -> None:
        """Discard everything written but not yet sent."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying port or socket."""
        pass
