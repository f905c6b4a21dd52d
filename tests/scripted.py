"""
In-memory channels that replay canned controller replies.

Each write pops the next scripted reply into the pending input, which is
then handed out ``chunk_size`` bytes per read. Reading with nothing
pending raises BlockingIOError, or returns b"" once ``eof`` is set.
"""

from jpe_cpsc.protocol.codec import READ_CHUNK_SIZE
from jpe_cpsc.protocol.interface import AsyncByteChannel, ByteChannel


MODLIST_REPLY = b"CADM2,CADM2,RSM,OEM2,-,EDM\r\n"
MODLIST_CR_REPLY = b"CADM2\rCADM2\rRSM\rOEM2\r-\rEDM\r\n"
STAGES_REPLY = b"CLA2201,CLA2601,CBS5,CBS10,CRM1\r\n"


class ScriptedChannel(ByteChannel):

    def __init__(self, *replies: bytes, chunk_size: int = READ_CHUNK_SIZE):
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.pending = bytearray()
        self.events = []
        self.eof = False
        self.stalls = 0
        self.closed = False

    @property
    def writes(self):
        return [e[1] for e in self.events if e[0] == "write"]

    def queue(self, *replies: bytes) -> None:
        self.replies.extend(replies)

    def reset_log(self) -> None:
        self.events.clear()

    def read(self, size: int) -> bytes:
        if self.stalls:
            self.stalls -= 1
            raise TimeoutError("stalled")
        if self.pending:
            n = min(size, self.chunk_size, len(self.pending))
            chunk = bytes(self.pending[:n])
            del self.pending[:n]
            return chunk
        if self.eof:
            return b""
        raise BlockingIOError("nothing pending")

    def write(self, data: bytes) -> None:
        self.events.append(("write", bytes(data)))
        if self.replies:
            self.pending.extend(self.replies.pop(0))

    def clear_input_buffer(self) -> None:
        self.events.append(("clear_input",))
        self.pending.clear()

    def clear_output_buffer(self) -> None:
        self.events.append(("clear_output",))

    def close(self) -> None:
        self.closed = True


class AsyncScriptedChannel(AsyncByteChannel):
    """Async face of a ScriptedChannel."""

    def __init__(self, *replies: bytes, chunk_size: int = READ_CHUNK_SIZE):
        self.sync = ScriptedChannel(*replies, chunk_size=chunk_size)

    @property
    def writes(self):
        return self.sync.writes

    def queue(self, *replies: bytes) -> None:
        self.sync.queue(*replies)

    async def read(self, size: int) -> bytes:
        return self.sync.read(size)

    async def write(self, data: bytes) -> None:
        self.sync.write(data)

    async def clear_input_buffer(self) -> None:
        self.sync.clear_input_buffer()

    async def clear_output_buffer(self) -> None:
        self.sync.clear_output_buffer()

    async def close(self) -> None:
        self.sync.close()
