"""
Protocol message logger for debugging controller communication.

Captures TX/RX messages with timestamps for debugging purposes.
"""

import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import List, Optional

from jpe_cpsc.protocol.codec import Frame


@dataclass
class ProtocolMessage:
    """A single protocol message (TX, RX or ERR)."""
    timestamp: str
    direction: str
    raw_hex: str
    text: str
    frame: Optional[str] = None
    values: Optional[List[str]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def _now() -> str:
    return datetime.now().isoformat(timespec="milliseconds")


def _printable(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").replace("\r", "\\r").replace("\n", "\\n")


class ProtocolLogger:
    """
    Thread-safe logger for protocol messages.

    Maintains a circular buffer of messages with configurable max size.
    """

    DEFAULT_MAX_MESSAGES = 500

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        self._messages: deque = deque(maxlen=max_messages)
        self._lock = threading.Lock()
        self._enabled = True
        self._tx_count = 0
        self._rx_count = 0
        self._error_count = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    def log_tx(self, data: bytes) -> None:
        """Log a transmitted command."""
        if not self._enabled:
            return

        with self._lock:
            self._tx_count += 1
            self._messages.append(ProtocolMessage(
                timestamp=_now(),
                direction="TX",
                raw_hex=data.hex().upper(),
                text=_printable(data),
            ))

    def log_rx(self, data: bytes, frame: Frame) -> None:
        """Log a received, successfully framed response."""
        if not self._enabled:
            return

        with self._lock:
            self._rx_count += 1
            if frame.is_error:
                self._error_count += 1
            self._messages.append(ProtocolMessage(
                timestamp=_now(),
                direction="RX",
                raw_hex=data.hex().upper(),
                text=_printable(data),
                frame=frame.kind.value,
                values=list(frame.values) if not frame.is_error else None,
                error=frame.message if frame.is_error else None,
            ))

    def log_error(self, error_msg: str, data: bytes = b"") -> None:
        """Log a transport or framing failure with the bytes received so far."""
        if not self._enabled:
            return

        with self._lock:
            self._error_count += 1
            self._messages.append(ProtocolMessage(
                timestamp=_now(),
                direction="ERR",
                raw_hex=data.hex().upper(),
                text=_printable(data),
                error=error_msg,
            ))

    def get_messages(self, limit: int = 100) -> List[dict]:
        """
        Get the most recent ``limit`` messages, oldest first.
        """
        with self._lock:
            messages = list(self._messages)
            if len(messages) > limit:
                messages = messages[-limit:]
            return [m.to_dict() for m in messages]

    def get_stats(self) -> dict:
        """Get logging statistics."""
        with self._lock:
            return {
                "total_messages": len(self._messages),
                "tx_count": self._tx_count,
                "rx_count": self._rx_count,
                "error_count": self._error_count,
                "max_messages": self._messages.maxlen,
                "enabled": self._enabled,
            }

    def clear(self) -> None:
        """Clear all logged messages."""
        with self._lock:
            self._messages.clear()
            self._tx_count = 0
            self._rx_count = 0
            self._error_count = 0


# Global instance
_logger: Optional[ProtocolLogger] = None


def get_protocol_logger() -> ProtocolLogger:
    """Get or create the global protocol logger."""
    global _logger
    if _logger is None:
        _logger = ProtocolLogger()
    return _logger


def configure_protocol_logger(max_messages: int = ProtocolLogger.DEFAULT_MAX_MESSAGES, enabled: bool = True) -> ProtocolLogger:
    """
    Replace the global protocol logger with one of the given capacity.

    Messages already captured are dropped.
    """
    global _logger
    _logger = ProtocolLogger(max_messages)
    _logger.enabled = enabled
    return _logger
