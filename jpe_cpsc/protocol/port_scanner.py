"""
Serial port enumeration and CPSC controller discovery.

The controller's USB interface is an FTDI bridge, so it is located by USB
vendor/product id and, when several controllers are attached, by the
bridge's serial number. Nothing is written to a port while scanning.
"""

import logging
from dataclasses import asdict, dataclass
from typing import List, Optional

import serial.tools.list_ports

from jpe_cpsc.utils.exceptions import DeviceNotFoundError


logger = logging.getLogger(__name__)

DEFAULT_USB_VID = 0x0403
DEFAULT_USB_PID = 0x6001


@dataclass
class PortInfo:
    """Information about an available serial port."""

    name: str
    description: str
    hardware_id: str
    vid: Optional[int] = None
    pid: Optional[int] = None
    serial_number: Optional[str] = None

    def matches(self, vid: int, pid: int, serial_number: Optional[str] = None) -> bool:
        if self.vid != vid or self.pid != pid:
            return False
        return serial_number is None or self.serial_number == serial_number

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def list_available_ports() -> List[PortInfo]:
    """
    List all serial ports on the system, sorted by name.

    Returns:
        List of PortInfo objects with port metadata.
    """
    ports = [
        PortInfo(
            name=port.device,
            description=port.description or "Unknown",
            hardware_id=port.hwid or "",
            vid=port.vid,
            pid=port.pid,
            serial_number=port.serial_number,
        )
        for port in serial.tools.list_ports.comports()
    ]
    ports.sort(key=lambda p: p.name)

    logger.debug(f"Found {len(ports)} serial ports")
    return ports


def find_controller_port(
    vid: int = DEFAULT_USB_VID,
    pid: int = DEFAULT_USB_PID,
    serial_number: Optional[str] = None,
) -> str:
    """
    Find the port of an attached controller.

    Args:
        vid: USB vendor id of the controller's serial bridge.
        pid: USB product id of the controller's serial bridge.
        serial_number: Optional serial number to pick one of several.

    Returns:
        Device name of the first matching port.

    Raises:
        DeviceNotFoundError: If no port matches.
    """
    matches = [p for p in list_available_ports() if p.matches(vid, pid, serial_number)]

    if not matches:
        wanted = f"{vid:04X}:{pid:04X}" + (f" serial {serial_number}" if serial_number else "")
        logger.warning(f"No controller found on any serial port ({wanted})")
        raise DeviceNotFoundError()

    if len(matches) > 1:
        logger.warning(f"Multiple controllers found, using first one: {matches[0].name}")

    logger.info(f"Found controller on {matches[0].name} ({matches[0].description})")
    return matches[0].name
