"""
Concrete byte channels over pyserial and TCP sockets.

Serial port settings are fixed by the controller: 8 data bits, no parity,
1 stop bit, no flow control. Only the baud rate is chosen by the caller.
"""

import asyncio
import logging
import select
import socket
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import serial

from jpe_cpsc.protocol.codec import READ_CHUNK_SIZE
from jpe_cpsc.protocol.interface import AsyncByteChannel, ByteChannel
from jpe_cpsc.utils.exceptions import DeviceNotFoundError, TransportIOError


logger = logging.getLogger(__name__)

TCP_PORT = 2000
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_SERIAL_POLL_TIMEOUT = 0.05
TCP_POLL_INTERVAL = 0.01


class SerialChannel(ByteChannel):
    """ByteChannel over a pyserial port (USB or RS-422)."""

    DATA_BITS = serial.EIGHTBITS
    PARITY = serial.PARITY_NONE
    STOP_BITS = serial.STOPBITS_ONE

    def __init__(self, port: serial.Serial):
        self._port = port

    @classmethod
    def open(
        cls,
        port_name: str,
        baudrate: int,
        poll_timeout: float = DEFAULT_SERIAL_POLL_TIMEOUT,
    ) -> "SerialChannel":
        """
        Open ``port_name`` with the controller's fixed framing.

        Raises:
            DeviceNotFoundError: If the port does not exist.
            TransportIOError: If the port exists but cannot be opened.
        """
        logger.info(f"Opening serial port {port_name} at {baudrate} baud")
        try:
            port = serial.Serial(
                port=port_name,
                baudrate=baudrate,
                bytesize=cls.DATA_BITS,
                parity=cls.PARITY,
                stopbits=cls.STOP_BITS,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
                timeout=poll_timeout,
                write_timeout=poll_timeout * 20,
            )
        except serial.SerialException as e:
            error_msg = str(e).lower()
            if "filenotfounderror" in error_msg or "no such file" in error_msg:
                raise DeviceNotFoundError(f"Failed to open {port_name}: Port not found") from e
            raise TransportIOError(f"Failed to open {port_name}: {e}") from e
        return cls(port)

    @property
    def port_name(self) -> str:
        return self._port.port

    def read(self, size: int) -> bytes:
        # Take what is waiting; otherwise block up to the poll timeout for one byte.
        try:
            waiting = self._port.in_waiting
            data = self._port.read(max(1, min(size, waiting)))
        except serial.SerialException as e:
            raise TransportIOError(f"Serial read failed: {e}") from e
        if not data:
            raise TimeoutError("No data within serial poll timeout")
        return data

    def write(self, data: bytes) -> None:
        try:
            self._port.write(data)
            self._port.flush()
        except serial.SerialTimeoutException as e:
            raise TransportIOError(f"Serial write timed out: {e}") from e
        except serial.SerialException as e:
            raise TransportIOError(f"Serial write failed: {e}") from e

    def clear_input_buffer(self) -> None:
        try:
            self._port.reset_input_buffer()
        except serial.SerialException as e:
            raise TransportIOError(f"Failed to clear serial input: {e}") from e

    def clear_output_buffer(self) -> None:
        try:
            self._port.reset_output_buffer()
        except serial.SerialException as e:
            raise TransportIOError(f"Failed to clear serial output: {e}") from e

    def close(self) -> None:
        if self._port.is_open:
            self._port.close()
            logger.info("Serial port closed")


class TcpChannel(ByteChannel):
    """ByteChannel over a non-blocking TCP socket."""

    def __init__(self, sock: socket.socket):
        self._sock = sock

    @classmethod
    def connect(cls, host: str, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> "TcpChannel":
        """
        Connect to ``host`` on the controller's fixed TCP port.

        The socket is switched to non-blocking mode right after connecting.

        Raises:
            DeviceNotFoundError: If nothing answers at ``host:2000``.
        """
        logger.info(f"Connecting to {host}:{TCP_PORT}")
        try:
            sock = socket.create_connection((host, TCP_PORT), timeout=timeout)
        except OSError as e:
            raise DeviceNotFoundError(f"Failed to connect to {host}:{TCP_PORT}: {e}") from e
        sock.setblocking(False)
        return cls(sock)

    def read(self, size: int) -> bytes:
        ready, _, _ = select.select([self._sock], [], [], TCP_POLL_INTERVAL)
        if not ready:
            raise BlockingIOError("No data available")
        return self._sock.recv(size)

    def write(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            try:
                sent = self._sock.send(view)
            except BlockingIOError:
                select.select([], [self._sock], [], TCP_POLL_INTERVAL)
                continue
            view = view[sent:]

    def clear_input_buffer(self) -> None:
        # Drain whatever the OS already holds without waiting for more.
        while True:
            try:
                chunk = self._sock.recv(READ_CHUNK_SIZE)
            except BlockingIOError:
                return
            if not chunk:
                return

    def clear_output_buffer(self) -> None:
        # TCP keeps no separate unsent application buffer to discard.
        pass

    def close(self) -> None:
        try:
            self._sock.close()
        finally:
            logger.info("TCP connection closed")


class AsyncSerialChannel(AsyncByteChannel):
    """
    AsyncByteChannel that runs a SerialChannel on a single worker thread.

    pyserial has no native asyncio support; one worker keeps all port
    access serialized.
    """

    def __init__(self, channel: SerialChannel):
        self._channel = channel
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(max_workers=1)

    @classmethod
    def open(
        cls,
        port_name: str,
        baudrate: int,
        poll_timeout: float = DEFAULT_SERIAL_POLL_TIMEOUT,
    ) -> "AsyncSerialChannel":
        return cls(SerialChannel.open(port_name, baudrate, poll_timeout))

    async def _run(self, func, *args):
        if self._executor is None:
            raise TransportIOError("Serial channel is closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def read(self, size: int) -> bytes:
        return await self._run(self._channel.read, size)

    async def write(self, data: bytes) -> None:
        await self._run(self._channel.write, data)

    async def clear_input_buffer(self) -> None:
        await self._run(self._channel.clear_input_buffer)

    async def clear_output_buffer(self) -> None:
        await self._run(self._channel.clear_output_buffer)

    async def close(self) -> None:
        if self._executor is None:
            return
        await self._run(self._channel.close)
        self._executor.shutdown(wait=True)
        self._executor = None


class AsyncTcpChannel(AsyncByteChannel):
    """AsyncByteChannel over asyncio streams."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer

    @classmethod
    async def connect(cls, host: str, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> "AsyncTcpChannel":
        """
        Raises:
            DeviceNotFoundError: If nothing answers at ``host:2000`` within ``timeout``.
        """
        logger.info(f"Connecting to {host}:{TCP_PORT}")
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, TCP_PORT), timeout=timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise DeviceNotFoundError(f"Failed to connect to {host}:{TCP_PORT}: {e}") from e
        return cls(reader, writer)

    async def read(self, size: int) -> bytes:
        return await self._reader.read(size)

    async def write(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def clear_input_buffer(self) -> None:
        while True:
            try:
                chunk = await asyncio.wait_for(self._reader.read(READ_CHUNK_SIZE), TCP_POLL_INTERVAL)
            except asyncio.TimeoutError:
                return
            if not chunk:
                return

    async def clear_output_buffer(self) -> None:
        pass

    async def close(self) -> None:
        self._writer.close()
        await self._writer.wait_closed()
        logger.info("TCP connection closed")
