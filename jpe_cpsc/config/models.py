"""
Configuration models using Pydantic for validation.

Only host-side choices live here (which transport, which port, logging,
HTTP server). Wire-protocol constants are fixed by the controller and are
defined next to the code that uses them.
"""

import ipaddress
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SerialConfig(BaseModel):
    """Serial (USB or RS-422) connection configuration."""

    port: str = Field(default="", description="Serial port name (e.g. /dev/ttyUSB0, COM5). Empty to discover.")
    baud: int = Field(default=115_200, ge=9600, le=1_000_000, description="Host-side baud rate")
    serial_number: Optional[str] = Field(
        default=None, description="Only accept a discovered adapter with this USB serial number"
    )
    usb_vid: int = Field(default=0x0403, ge=0, le=0xFFFF, description="USB vendor ID used for discovery")
    usb_pid: int = Field(default=0x6001, ge=0, le=0xFFFF, description="USB product ID used for discovery")
    poll_timeout_seconds: float = Field(
        default=0.05, gt=0, le=1.0, description="Timeout of a single serial read inside a transaction"
    )


class NetworkConfig(BaseModel):
    """TCP connection configuration. The controller always listens on port 2000."""

    host: str = Field(default="169.254.10.10", description="Controller IPv4 address")
    connect_timeout_seconds: float = Field(default=5.0, gt=0, le=60, description="TCP connect timeout")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        """Only bare IPv4 addresses are accepted."""
        try:
            ipaddress.IPv4Address(v)
        except ValueError:
            raise ValueError(f"host must be an IPv4 address, got {v!r}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    file: Optional[str] = Field(
        default=None,
        description="Log file path (None for console only)"
    )
    protocol_level: Optional[str] = Field(
        default=None,
        description="Level for the jpe_cpsc.protocol loggers (TX/RX lines are DEBUG). None follows 'level'."
    )
    protocol_trace: bool = Field(
        default=True,
        description="Keep recent TX/RX frames in memory for /api/v1/management/protocol-log"
    )
    trace_size: int = Field(
        default=500, ge=10, le=100_000,
        description="Number of frames kept by the protocol trace"
    )

    @field_validator("level", "protocol_level")
    @classmethod
    def validate_level(cls, v):
        """Validate logging level."""
        if v is None:
            return v
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    ip: str = Field(default="127.0.0.1", description="IP address to bind to")
    port: int = Field(default=5000, ge=1, le=65535, description="HTTP port")


class SimulatorConfig(BaseModel):
    """In-memory controller simulator configuration."""

    firmware_version: str = Field(default="v8.0.20220221", description="Reported controller firmware")
    modules: List[str] = Field(
        default_factory=lambda: ["CADM2", "CADM2", "RSM", "OEM2", "-", "EDM"],
        description="Module name reported for each of the six slots ('-' for empty)",
    )
    stages: List[str] = Field(
        default_factory=lambda: ["CLA2201", "CLA2601", "CBS5", "CBS10", "CRM1"],
        description="Supported stage names reported by /STAGES",
    )
    cr_delimited_lists: bool = Field(
        default=False, description="Reply to list queries with CR-delimited values (firmware quirk)"
    )
    chunk_size: int = Field(default=64, ge=1, le=4096, description="Maximum bytes returned per read")
    baud_rs422: int = Field(default=115_200, description="Reported RS-422 baud rate")
    baud_usb: int = Field(default=115_200, description="Reported USB baud rate")
    ip_mode: str = Field(default="STATIC", description="Reported LAN addressing mode (DHCP or STATIC)")
    ip_address: str = Field(default="169.254.10.10", description="Reported controller IP address")
    subnet_mask: str = Field(default="255.255.0.0", description="Reported subnet mask")
    gateway: str = Field(default="0.0.0.0", description="Reported gateway")
    mac_address: str = Field(default="00:50:C2:FA:3C:01", description="Reported MAC address")

    @field_validator("modules")
    @classmethod
    def validate_modules(cls, v):
        """The controller chassis always has six slots."""
        if len(v) != 6:
            raise ValueError(f"Exactly 6 module entries required, got {len(v)}")
        return v


class AppConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    transport: Literal["serial", "network", "simulator"] = Field(
        default="simulator", description="How to reach the controller"
    )
    serial: SerialConfig = Field(default_factory=SerialConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
