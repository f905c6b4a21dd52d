"""
Configuration models and JSON loader.
"""

from jpe_cpsc.config.models import (
    AppConfig,
    LoggingConfig,
    NetworkConfig,
    SerialConfig,
    ServerConfig,
    SimulatorConfig,
)
from jpe_cpsc.config.loader import describe_transport, load_config, save_config

__all__ = [
    "AppConfig",
    "LoggingConfig",
    "NetworkConfig",
    "SerialConfig",
    "ServerConfig",
    "SimulatorConfig",
    "describe_transport",
    "load_config",
    "save_config",
]
