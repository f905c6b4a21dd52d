import asyncio
import socket
import threading
import unittest
from types import SimpleNamespace
from unittest import mock

import pytest
import serial

from jpe_cpsc.builder import ContextBuilder
from jpe_cpsc.controller.context import BaseContext
from jpe_cpsc.controller.context_async import BaseContextAsync
from jpe_cpsc.controller.types import Module
from jpe_cpsc.simulator.mock_device import SimulatedController
from jpe_cpsc.utils.exceptions import (
    BoundError,
    DeviceNotFoundError,
    InvalidParamsError,
    TransportIOError,
)
from tests.scripted import MODLIST_REPLY


class FakeSerial:
    """Stands in for serial.Serial and answers the first write with MODLIST_REPLY."""

    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.port = kwargs.get("port")
        self.is_open = True
        self.written = []
        self._replies = [MODLIST_REPLY]
        self._pending = bytearray()
        self.thread = threading.current_thread()
        FakeSerial.instances.append(self)

    @property
    def in_waiting(self):
        return len(self._pending)

    def read(self, size):
        chunk = bytes(self._pending[:size])
        del self._pending[:size]
        return chunk

    def write(self, data):
        self.written.append(bytes(data))
        if self._replies:
            self._pending.extend(self._replies.pop(0))
        return len(data)

    def flush(self):
        pass

    def reset_input_buffer(self):
        self._pending.clear()

    def reset_output_buffer(self):
        pass

    def close(self):
        self.is_open = False


@pytest.fixture
def fake_serial():
    FakeSerial.instances.clear()
    with mock.patch("serial.Serial", FakeSerial):
        yield FakeSerial.instances


CONTROLLER_PORT = SimpleNamespace(
    device="/dev/ttyUSB3", description="CPSC", hwid="", vid=0x0403, pid=0x6001, serial_number="C1",
)


def test_serial_build_with_explicit_port(fake_serial):
    context = ContextBuilder().with_serial(port="/dev/ttyUSB0").baud(57600).build()

    assert isinstance(context, BaseContext)
    port = fake_serial[0]
    assert port.kwargs["port"] == "/dev/ttyUSB0"
    assert port.kwargs["baudrate"] == 57600
    assert port.kwargs["bytesize"] == serial.EIGHTBITS
    assert port.kwargs["parity"] == serial.PARITY_NONE
    assert port.kwargs["stopbits"] == serial.STOPBITS_ONE
    assert port.kwargs["rtscts"] is False
    assert port.written == [b"/MODLIST\r\n"]
    assert context.module_at(3) is Module.RSM

    context.close()
    assert not port.is_open


def test_serial_build_discovers_port(fake_serial):
    with mock.patch("serial.tools.list_ports.comports", return_value=[CONTROLLER_PORT]):
        context = ContextBuilder().with_serial(serial_number="C1").build()
    assert fake_serial[0].kwargs["port"] == "/dev/ttyUSB3"
    context.close()


def test_serial_discovery_finds_nothing(fake_serial):
    with mock.patch("serial.tools.list_ports.comports", return_value=[CONTROLLER_PORT]):
        with pytest.raises(DeviceNotFoundError):
            ContextBuilder().with_serial(serial_number="OTHER").build()
    assert fake_serial == []


def test_serial_port_missing():
    error = serial.SerialException("[Errno 2] could not open port /dev/nope: [Errno 2] No such file or directory")
    with mock.patch("serial.Serial", side_effect=error):
        with pytest.raises(DeviceNotFoundError):
            ContextBuilder().with_serial(port="/dev/nope").build()


def test_serial_port_busy():
    error = serial.SerialException("[Errno 13] could not open port /dev/ttyUSB0: [Errno 13] Permission denied")
    with mock.patch("serial.Serial", side_effect=error):
        with pytest.raises(TransportIOError):
            ContextBuilder().with_serial(port="/dev/ttyUSB0").build()


def test_baud_out_of_range():
    with pytest.raises(BoundError):
        ContextBuilder().with_serial(port="/dev/ttyUSB0").baud(1200)


def test_stages_are_single_use(fake_serial):
    builder = ContextBuilder()
    stage = builder.with_serial(port="/dev/ttyUSB0")
    with pytest.raises(InvalidParamsError):
        builder.with_network("10.0.0.2")

    stage.build().close()
    with pytest.raises(InvalidParamsError):
        stage.build()
    with pytest.raises(InvalidParamsError):
        stage.baud(9600)


def test_network_requires_ipv4():
    with pytest.raises(InvalidParamsError):
        ContextBuilder().with_network("controller.local")
    with pytest.raises(InvalidParamsError):
        ContextBuilder().with_network("::1")


def test_network_connect_failure():
    with mock.patch("socket.create_connection", side_effect=ConnectionRefusedError("refused")) as connect:
        with pytest.raises(DeviceNotFoundError):
            ContextBuilder().with_network("169.254.10.10").timeouts(connect_timeout=1.5).build()
    connect.assert_called_once_with(("169.254.10.10", 2000), timeout=1.5)


def test_network_build_survives_silent_controller():
    ours, theirs = socket.socketpair()
    try:
        with mock.patch("socket.create_connection", return_value=ours):
            context = ContextBuilder().with_network("169.254.10.10").timeouts(read_timeout=0.05).build()
        assert ours.getblocking() is False
        assert theirs.recv(64) == b"/MODLIST\r\n"
        assert context.modules == (Module.EMPTY,) * 6
        context.close()
    finally:
        theirs.close()


def test_channel_build_loads_modules():
    context = ContextBuilder().with_channel(SimulatedController()).build()
    assert context.module_at(1) is Module.CADM
    assert context.module_at(5) is Module.EMPTY


class TestAsyncBuilder(unittest.IsolatedAsyncioTestCase):

    async def test_serial_async_build(self):
        FakeSerial.instances.clear()
        with mock.patch("serial.Serial", FakeSerial):
            context = await ContextBuilder().with_serial_async(port="/dev/ttyUSB0").build()
        self.assertIsInstance(context, BaseContextAsync)
        self.assertEqual(context.module_at(3), Module.RSM)
        await context.close()
        self.assertFalse(FakeSerial.instances[0].is_open)

    async def test_serial_async_discovery_and_open_off_the_loop(self):
        FakeSerial.instances.clear()
        scan_threads = []

        def comports():
            scan_threads.append(threading.current_thread())
            return [CONTROLLER_PORT]

        with mock.patch("serial.Serial", FakeSerial), \
                mock.patch("serial.tools.list_ports.comports", comports):
            context = await ContextBuilder().with_serial_async().build()

        loop_thread = threading.current_thread()
        self.assertEqual(FakeSerial.instances[0].kwargs["port"], "/dev/ttyUSB3")
        self.assertNotEqual(scan_threads, [])
        self.assertNotIn(loop_thread, scan_threads)
        self.assertIsNot(FakeSerial.instances[0].thread, loop_thread)
        await context.close()

    async def test_network_async_connect_failure(self):
        with mock.patch("asyncio.open_connection", side_effect=OSError("unreachable")):
            with self.assertRaises(DeviceNotFoundError):
                await ContextBuilder().with_network_async("169.254.10.10").build()

    async def test_network_async_connect_timeout(self):
        async def never(*args, **kwargs):
            await asyncio.sleep(10)

        with mock.patch("asyncio.open_connection", never):
            with self.assertRaises(DeviceNotFoundError):
                await ContextBuilder().with_network_async("169.254.10.10").timeouts(connect_timeout=0.05).build()
