"""
Load and save the driver configuration (config.json).

The file location is, in order: the explicit path, the CPSC_CONFIG
environment variable, ``config.json`` in the working directory.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from jpe_cpsc.config.models import AppConfig
from jpe_cpsc.protocol.channels import TCP_PORT
from jpe_cpsc.utils.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"
CONFIG_ENV_VAR = "CPSC_CONFIG"


def resolve_config_path(path: Optional[str] = None) -> Path:
    return Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def _write(config: AppConfig, config_path: Path) -> None:
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config.model_dump(), f, indent=2)


def _format_errors(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        field = " -> ".join(str(x) for x in item["loc"])
        lines.append(f"  - {field}: {item['msg']} (got {item.get('input')!r})")
    return "\n".join(lines)


def load_config(path: Optional[str] = None, create_missing: bool = True) -> AppConfig:
    """
    Load configuration from a JSON file.

    A missing file yields the defaults (simulator transport). Unless
    ``create_missing`` is False the defaults are also written to that
    path, so the user has something to edit; failing to write them is
    only logged.

    Args:
        path: Path to the JSON file (see module docstring for the fallback).
        create_missing: Write a default file when none exists.

    Returns:
        Validated AppConfig instance.

    Raises:
        ConfigurationError: If the file is unreadable, not JSON, or fails
            validation. The message lists every failing field.
    """
    config_path = resolve_config_path(path)

    if not config_path.exists():
        logger.info(f"Config file not found: {config_path}. Using defaults.")
        config = AppConfig()
        if create_missing:
            try:
                _write(config, config_path)
                logger.info(f"Created default config file: {config_path}")
            except OSError as e:
                logger.warning(f"Failed to create default config file: {e}")
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a JSON object, got {type(data).__name__}")

    try:
        config = AppConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{_format_errors(e)}") from e

    logger.info(f"Configuration loaded from {config_path}: {describe_transport(config)}")
    return config


def save_config(config: AppConfig, path: Optional[str] = None) -> None:
    """
    Raises:
        ConfigurationError: If the file cannot be written.
    """
    config_path = resolve_config_path(path)
    try:
        _write(config, config_path)
    except OSError as e:
        raise ConfigurationError(f"Failed to write {config_path}: {e}") from e
    logger.info(f"Configuration saved to {config_path}")


def describe_transport(config: AppConfig) -> str:
    """One-line summary of how the controller will be reached."""
    if config.transport == "network":
        return f"network {config.network.host}:{TCP_PORT}"
    if config.transport == "serial":
        if config.serial.port:
            port = config.serial.port
        else:
            port = f"auto ({config.serial.usb_vid:04X}:{config.serial.usb_pid:04X}"
            if config.serial.serial_number:
                port += f", serial {config.serial.serial_number}"
            port += ")"
        return f"serial {port} at {config.serial.baud} baud"
    return "simulator"
