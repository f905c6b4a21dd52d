"""
Staged construction of controller contexts.

    ctx = ContextBuilder().with_serial(port="/dev/ttyUSB0").baud(115200).build()
    ctx = ContextBuilder().with_network("169.254.10.10").build()
    ctx = await ContextBuilder().with_network_async("169.254.10.10").build()

``ContextBuilder`` only hands out a transport stage, and only a transport
stage can build. Every stage is single use: once it has produced the next
stage or a context, calling it again raises InvalidParamsError.

After opening the transport, ``build`` asks the controller for its module
list once. A failure there is logged and ignored; the context is still
returned, with every slot recorded as empty.
"""

import asyncio
import ipaddress
import logging
from typing import Optional

from jpe_cpsc.controller.context import BaseContext
from jpe_cpsc.controller.context_async import BaseContextAsync
from jpe_cpsc.controller.bounds import BAUD
from jpe_cpsc.protocol.channels import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_SERIAL_POLL_TIMEOUT,
    AsyncSerialChannel,
    AsyncTcpChannel,
    SerialChannel,
    TcpChannel,
)
from jpe_cpsc.protocol.connection import READ_TIMEOUT, Connection
from jpe_cpsc.protocol.connection_async import AsyncConnection
from jpe_cpsc.protocol.interface import ByteChannel
from jpe_cpsc.protocol.port_scanner import DEFAULT_USB_PID, DEFAULT_USB_VID, find_controller_port
from jpe_cpsc.utils.exceptions import CpscError, InvalidParamsError


logger = logging.getLogger(__name__)

DEFAULT_BAUD = 115_200


class _Stage:
    """Single-use builder stage."""

    def __init__(self):
        self._consumed = False

    def _ensure_unused(self) -> None:
        if self._consumed:
            raise InvalidParamsError(f"{type(self).__name__} has already been used")

    def _consume(self) -> None:
        self._ensure_unused()
        self._consumed = True


class ContextBuilder(_Stage):
    """Initial stage: pick a transport."""

    def with_serial(
        self,
        port: Optional[str] = None,
        serial_number: Optional[str] = None,
        vid: int = DEFAULT_USB_VID,
        pid: int = DEFAULT_USB_PID,
    ) -> "SerialBuilder":
        """
        Args:
            port: Port name. If omitted the port is discovered by USB id.
            serial_number: Discovery filter for several attached controllers.
            vid: USB vendor id used for discovery.
            pid: USB product id used for discovery.
        """
        self._consume()
        return SerialBuilder(port, serial_number, vid, pid)

    def with_network(self, host: str) -> "NetworkBuilder":
        self._consume()
        return NetworkBuilder(host)

    def with_serial_async(
        self,
        port: Optional[str] = None,
        serial_number: Optional[str] = None,
        vid: int = DEFAULT_USB_VID,
        pid: int = DEFAULT_USB_PID,
    ) -> "SerialAsyncBuilder":
        self._consume()
        return SerialAsyncBuilder(port, serial_number, vid, pid)

    def with_network_async(self, host: str) -> "NetworkAsyncBuilder":
        self._consume()
        return NetworkAsyncBuilder(host)

    def with_channel(self, channel: ByteChannel) -> "ChannelBuilder":
        """Use an already open channel, such as the simulator."""
        self._consume()
        return ChannelBuilder(channel)


class _SerialStage(_Stage):

    def __init__(self, port, serial_number, vid, pid):
        super().__init__()
        self._port = port
        self._serial_number = serial_number
        self._vid = vid
        self._pid = pid
        self._baud = DEFAULT_BAUD
        self._poll_timeout = DEFAULT_SERIAL_POLL_TIMEOUT
        self._read_timeout = READ_TIMEOUT

    def baud(self, baud: int):
        """Host-side baud rate, 9600-1000000."""
        self._ensure_unused()
        self._baud = int(BAUD.check(baud))
        return self

    def timeouts(self, read_timeout: float = READ_TIMEOUT, poll_timeout: float = DEFAULT_SERIAL_POLL_TIMEOUT):
        self._ensure_unused()
        self._read_timeout = read_timeout
        self._poll_timeout = poll_timeout
        return self

    def _resolve_port(self) -> str:
        if self._port:
            return self._port
        return find_controller_port(self._vid, self._pid, self._serial_number)


class SerialBuilder(_SerialStage):
    """Serial stage of the blocking builder."""

    def build(self) -> BaseContext:
        """
        Raises:
            DeviceNotFoundError: If no port was given and none matches.
            TransportIOError: If the port cannot be opened.
        """
        self._consume()
        channel = SerialChannel.open(self._resolve_port(), self._baud, self._poll_timeout)
        return _finish(BaseContext(Connection(channel, self._read_timeout)))


class SerialAsyncBuilder(_SerialStage):
    """Serial stage of the asyncio builder."""

    async def build(self) -> BaseContextAsync:
        """Port discovery and opening block, so both run on the default executor."""
        self._consume()
        loop = asyncio.get_running_loop()
        port = await loop.run_in_executor(None, self._resolve_port)
        channel = await loop.run_in_executor(
            None, AsyncSerialChannel.open, port, self._baud, self._poll_timeout
        )
        return await _finish_async(BaseContextAsync(AsyncConnection(channel, self._read_timeout)))


class _NetworkStage(_Stage):

    def __init__(self, host: str):
        super().__init__()
        try:
            self._host = str(ipaddress.IPv4Address(str(host).strip()))
        except ValueError as e:
            raise InvalidParamsError(f"Controller host must be an IPv4 address, got {host!r}") from e
        self._connect_timeout = DEFAULT_CONNECT_TIMEOUT
        self._read_timeout = READ_TIMEOUT

    def timeouts(self, read_timeout: float = READ_TIMEOUT, connect_timeout: float = DEFAULT_CONNECT_TIMEOUT):
        self._ensure_unused()
        self._read_timeout = read_timeout
        self._connect_timeout = connect_timeout
        return self


class NetworkBuilder(_NetworkStage):
    """Network stage of the blocking builder."""

    def build(self) -> BaseContext:
        """
        Raises:
            DeviceNotFoundError: If nothing answers on port 2000 of the host.
        """
        self._consume()
        channel = TcpChannel.connect(self._host, self._connect_timeout)
        return _finish(BaseContext(Connection(channel, self._read_timeout)))


class NetworkAsyncBuilder(_NetworkStage):
    """Network stage of the asyncio builder."""

    async def build(self) -> BaseContextAsync:
        self._consume()
        channel = await AsyncTcpChannel.connect(self._host, self._connect_timeout)
        return await _finish_async(BaseContextAsync(AsyncConnection(channel, self._read_timeout)))


class ChannelBuilder(_Stage):
    """Stage wrapping a caller-supplied blocking channel."""

    def __init__(self, channel: ByteChannel):
        super().__init__()
        self._channel = channel
        self._read_timeout = READ_TIMEOUT

    def timeouts(self, read_timeout: float = READ_TIMEOUT):
        self._ensure_unused()
        self._read_timeout = read_timeout
        return self

    def build(self) -> BaseContext:
        self._consume()
        return _finish(BaseContext(Connection(self._channel, self._read_timeout)))

def _finish(context: BaseContext) -> BaseContext:
    try:
        context.get_module_list()
    except CpscError as e:
        logger.warning(f"Initial module list query failed, all slots marked empty: {e}")
    return context


async def _finish_async(context: BaseContextAsync) -> BaseContextAsync:
    try:
        await context.get_module_list()
    except CpscError as e:
        logger.warning(f"Initial module list query failed, all slots marked empty: {e}")
    return context
