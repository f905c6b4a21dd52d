import socket
import threading
import time

import pytest

from jpe_cpsc.controller.types import ModeScope, ModuleScope
from jpe_cpsc.protocol.channels import TcpChannel
from jpe_cpsc.protocol.codec import MAX_FRAME_SIZE, Command, FrameKind
from jpe_cpsc.protocol.connection import Connection
from jpe_cpsc.protocol.logger import get_protocol_logger
from jpe_cpsc.utils.exceptions import (
    BufOverflowError,
    InvalidResponseError,
    TransportIOError,
)
from tests.scripted import ScriptedChannel


VER = Command.new(ModuleScope.any(), ModeScope.any(), "/VER")


def test_transaction_order():
    channel = ScriptedChannel(b"v8.0.20220221\r\n")
    frame = Connection(channel).transact(VER)

    assert frame.values == ("v8.0.20220221",)
    assert channel.events == [("clear_output",), ("clear_input",), ("write", b"/VER\r\n")]


def test_reassembles_small_chunks():
    channel = ScriptedChannel(b"CADM2,CADM2,RSM,OEM2,-,EDM\r\n", chunk_size=3)
    frame = Connection(channel).transact(VER)
    assert frame.kind is FrameKind.COMMA_DELIMITED
    assert len(frame.values) == 6


def test_terminator_split_across_chunks():
    channel = ScriptedChannel(b"abc\r\n", chunk_size=4)
    assert Connection(channel).transact(VER).values == ("abc",)


def test_stale_input_is_discarded():
    channel = ScriptedChannel(b"fresh\r\n")
    channel.pending.extend(b"stale\r\n")
    assert Connection(channel).transact(VER).values == ("fresh",)


def test_poll_artifacts_are_retried():
    channel = ScriptedChannel(b"ok\r\n")
    channel.stalls = 5
    assert Connection(channel).transact(VER).values == ("ok",)


def test_deadline_without_terminator():
    channel = ScriptedChannel(b"partial")
    conn = Connection(channel, read_timeout=0.05)

    start = time.monotonic()
    with pytest.raises(InvalidResponseError):
        conn.transact(VER)
    assert time.monotonic() - start < 1.0


def test_no_reply_at_all():
    channel = ScriptedChannel()
    with pytest.raises(InvalidResponseError):
        Connection(channel, read_timeout=0.02).transact(VER)


def test_end_of_stream_stops_reading():
    channel = ScriptedChannel(b"half")
    channel.eof = True
    with pytest.raises(InvalidResponseError):
        Connection(channel, read_timeout=5.0).transact(VER)


def test_overflow_then_clean_transaction():
    channel = ScriptedChannel(b"x" * (MAX_FRAME_SIZE + 500), b"next\r\n")
    conn = Connection(channel)

    with pytest.raises(BufOverflowError) as exc_info:
        conn.transact(VER)
    assert exc_info.value.max_len == MAX_FRAME_SIZE
    assert exc_info.value.idx == MAX_FRAME_SIZE + 64
    assert isinstance(exc_info.value, OverflowError)
    assert not channel.pending

    assert conn.transact(VER).values == ("next",)


def test_read_failure_is_transport_error():
    class BrokenChannel(ScriptedChannel):
        def read(self, size):
            raise OSError("device unplugged")

    with pytest.raises(TransportIOError) as exc_info:
        Connection(BrokenChannel()).transact(VER)
    assert isinstance(exc_info.value, ConnectionError)


def test_write_failure_is_transport_error():
    class BrokenChannel(ScriptedChannel):
        def write(self, data):
            raise OSError("broken pipe")

    with pytest.raises(TransportIOError):
        Connection(BrokenChannel()).transact(VER)


def test_protocol_log_records_exchange():
    channel = ScriptedChannel(b"Error busy\r\n")
    Connection(channel).transact(VER)

    messages = get_protocol_logger().get_messages()
    assert [m["direction"] for m in messages] == ["TX", "RX"]
    assert messages[0]["text"] == "/VER\\r\\n"
    assert messages[1]["frame"] == "error"
    assert messages[1]["error"] == "Error busy"
    assert get_protocol_logger().get_stats()["error_count"] == 1


def test_close_closes_channel():
    channel = ScriptedChannel()
    Connection(channel).close()
    assert channel.closed


# ======= TCP channel over a local socket pair =======

@pytest.fixture
def tcp_pair():
    ours, theirs = socket.socketpair()
    ours.setblocking(False)
    channel = TcpChannel(ours)
    yield channel, theirs
    channel.close()
    theirs.close()


def answer(peer, *parts, gap=0.05):
    """Read one command on ``peer``, then send ``parts`` with a pause between them."""
    received = bytearray()

    def run():
        while not received.endswith(b"\r\n"):
            received.extend(peer.recv(64))
        for i, part in enumerate(parts):
            if i:
                time.sleep(gap)
            peer.sendall(part)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, received


def test_tcp_stale_input_drained_and_split_reply_reassembled(tcp_pair):
    channel, peer = tcp_pair
    peer.sendall(b"stale,stale\r\n")
    thread, received = answer(peer, b"v8.0", b".20220221\r\n")

    frame = Connection(channel, read_timeout=1.0).transact(VER)
    thread.join(1.0)

    assert bytes(received) == b"/VER\r\n"
    assert frame.values == ("v8.0.20220221",)


def test_tcp_clear_input_returns_when_idle(tcp_pair):
    channel, peer = tcp_pair
    peer.sendall(b"leftover")
    channel.clear_input_buffer()
    channel.clear_output_buffer()
    with pytest.raises(BlockingIOError):
        channel.read(64)


def test_tcp_read_returns_partial_chunks(tcp_pair):
    channel, peer = tcp_pair
    peer.sendall(b"abc")
    assert channel.read(64) == b"abc"


def test_tcp_peer_close_ends_transaction(tcp_pair):
    channel, peer = tcp_pair
    peer.shutdown(socket.SHUT_WR)

    start = time.monotonic()
    with pytest.raises(InvalidResponseError):
        Connection(channel, read_timeout=5.0).transact(VER)
    assert time.monotonic() - start < 1.0
