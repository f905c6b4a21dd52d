"""
Protocol package for CPSC controller communication.
"""

from jpe_cpsc.protocol.codec import Command, Frame, FrameKind, decode_frame
from jpe_cpsc.protocol.interface import AsyncByteChannel, ByteChannel
from jpe_cpsc.protocol.channels import (
    AsyncSerialChannel,
    AsyncTcpChannel,
    SerialChannel,
    TcpChannel,
)
from jpe_cpsc.protocol.connection import Connection
from jpe_cpsc.protocol.connection_async import AsyncConnection
from jpe_cpsc.protocol.port_scanner import PortInfo, find_controller_port, list_available_ports
from jpe_cpsc.protocol.logger import ProtocolLogger, configure_protocol_logger, get_protocol_logger

__all__ = [
    "Command",
    "Frame",
    "FrameKind",
    "decode_frame",
    "ByteChannel",
    "AsyncByteChannel",
    "SerialChannel",
    "TcpChannel",
    "AsyncSerialChannel",
    "AsyncTcpChannel",
    "Connection",
    "AsyncConnection",
    "PortInfo",
    "find_controller_port",
    "list_available_ports",
    "ProtocolLogger",
    "configure_protocol_logger",
    "get_protocol_logger",
]
