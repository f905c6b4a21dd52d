import asyncio
import unittest

from jpe_cpsc.controller.types import ModeScope, ModuleScope
from jpe_cpsc.protocol.channels import AsyncTcpChannel
from jpe_cpsc.protocol.codec import MAX_FRAME_SIZE, Command, FrameKind
from jpe_cpsc.protocol.connection_async import AsyncConnection
from jpe_cpsc.utils.exceptions import BufOverflowError, InvalidResponseError, TransportIOError
from tests.scripted import AsyncScriptedChannel


MODLIST = Command.new(ModuleScope.any(), ModeScope.any(), "/MODLIST")


class SlowChannel(AsyncScriptedChannel):
    """Every read waits longer than the whole transaction deadline."""

    async def read(self, size: int) -> bytes:
        await asyncio.sleep(10)
        return b""


class TestAsyncConnection(unittest.IsolatedAsyncioTestCase):
    """ Transaction engine driven by an asyncio channel. """

    async def test_transaction_order(self):
        channel = AsyncScriptedChannel(b"CADM2,CADM2,RSM,OEM2,-,EDM\r\n", chunk_size=5)
        frame = await AsyncConnection(channel).transact(MODLIST)

        self.assertEqual(frame.kind, FrameKind.COMMA_DELIMITED)
        self.assertEqual(len(frame.values), 6)
        self.assertEqual(channel.sync.events[:3],
                         [("clear_output",), ("clear_input",), ("write", b"/MODLIST\r\n")])

    async def test_cr_delimited(self):
        channel = AsyncScriptedChannel(b"CADM2\rCADM2\rRSM\rOEM2\r-\rEDM\r\n")
        frame = await AsyncConnection(channel).transact(MODLIST)
        self.assertEqual(frame.kind, FrameKind.CR_DELIMITED)
        self.assertEqual(frame.values[4], "-")

    async def test_poll_artifacts_are_retried(self):
        channel = AsyncScriptedChannel(b"ok\r\n")
        channel.sync.stalls = 3
        frame = await AsyncConnection(channel).transact(MODLIST)
        self.assertEqual(frame.values, ("ok",))

    async def test_deadline_bounds_a_hanging_read(self):
        conn = AsyncConnection(SlowChannel(), read_timeout=0.05)
        with self.assertRaises(InvalidResponseError):
            await asyncio.wait_for(conn.transact(MODLIST), timeout=2.0)

    async def test_overflow(self):
        channel = AsyncScriptedChannel(b"y" * (MAX_FRAME_SIZE + 1), b"ok\r\n")
        conn = AsyncConnection(channel)

        with self.assertRaises(BufOverflowError) as ctx:
            await conn.transact(MODLIST)
        self.assertEqual(ctx.exception.max_len, MAX_FRAME_SIZE)
        self.assertEqual(ctx.exception.idx, MAX_FRAME_SIZE + 1)

        frame = await conn.transact(MODLIST)
        self.assertEqual(frame.values, ("ok",))

    async def test_end_of_stream(self):
        channel = AsyncScriptedChannel(b"par")
        channel.sync.eof = True
        with self.assertRaises(InvalidResponseError):
            await AsyncConnection(channel, read_timeout=5.0).transact(MODLIST)

    async def test_read_failure_is_transport_error(self):
        class BrokenChannel(AsyncScriptedChannel):
            async def read(self, size):
                raise ConnectionResetError("reset by peer")

        with self.assertRaises(TransportIOError):
            await AsyncConnection(BrokenChannel()).transact(MODLIST)

    async def test_close(self):
        channel = AsyncScriptedChannel()
        await AsyncConnection(channel).close()
        self.assertTrue(channel.sync.closed)


class TestAsyncTcpChannel(unittest.IsolatedAsyncioTestCase):
    """ AsyncTcpChannel against a local asyncio server. """

    async def asyncSetUp(self):
        self.commands = []
        self.replies = []
        self.connected = asyncio.Event()
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        port = self.server.sockets[0].getsockname()[1]
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        self.channel = AsyncTcpChannel(reader, writer)
        await asyncio.wait_for(self.connected.wait(), timeout=1.0)

    async def asyncTearDown(self):
        await self.channel.close()
        self.server.close()
        await self.server.wait_closed()

    async def _handle(self, reader, writer):
        self.server_writer = writer
        self.connected.set()
        try:
            while True:
                line = await reader.readuntil(b"\r\n")
                self.commands.append(line)
                for i, part in enumerate(self.replies.pop(0) if self.replies else ()):
                    if i:
                        await asyncio.sleep(0.03)
                    writer.write(part)
                    await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            writer.close()

    async def _send_unsolicited(self, data: bytes):
        self.server_writer.write(data)
        await self.server_writer.drain()
        await asyncio.sleep(0.05)

    async def test_stale_input_drained_and_split_reply_reassembled(self):
        await self._send_unsolicited(b"stale,stale\r\n")
        self.replies.append((b"a,b", b",c\r\n"))

        frame = await AsyncConnection(self.channel, read_timeout=1.0).transact(MODLIST)

        self.assertEqual(frame.values, ("a", "b", "c"))
        self.assertEqual(self.commands, [b"/MODLIST\r\n"])

    async def test_clear_input_returns_when_idle(self):
        await self._send_unsolicited(b"leftover")
        await asyncio.wait_for(self.channel.clear_input_buffer(), timeout=1.0)
        await self.channel.clear_output_buffer()

        self.replies.append((b"ok\r\n",))
        frame = await AsyncConnection(self.channel, read_timeout=1.0).transact(MODLIST)
        self.assertEqual(frame.values, ("ok",))
