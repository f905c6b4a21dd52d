"""
Main entry point for the CPSC controller HTTP server.

Usage:
    python -m jpe_cpsc [--config CONFIG_PATH] [--list-ports]
"""

import argparse
import logging
import signal
import sys

import uvicorn

from jpe_cpsc import __version__
from jpe_cpsc.api.app import create_app
from jpe_cpsc.builder import ContextBuilder
from jpe_cpsc.config.loader import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, describe_transport, load_config
from jpe_cpsc.config.models import AppConfig
from jpe_cpsc.controller.context import BaseContext
from jpe_cpsc.protocol.port_scanner import list_available_ports
from jpe_cpsc.simulator.mock_device import SimulatedController
from jpe_cpsc.utils.exceptions import ConfigurationError, CpscError
from jpe_cpsc.utils.logging_setup import setup_logging


logger = logging.getLogger(__name__)


# Global resources for cleanup
context = None


def signal_handler(signum, frame):
    """Handle shutdown signals (SIGINT, SIGTERM)."""
    logger.info(f"Received signal {signum}, shutting down...")

    if context:
        context.close()

    sys.exit(0)


def build_context(config: AppConfig) -> BaseContext:
    """
    Open the transport selected by ``config.transport``.

    Raises:
        DeviceNotFoundError: If the controller cannot be located.
        TransportIOError: If the port cannot be opened.
    """
    if config.transport == "simulator":
        logger.info("Using SIMULATOR transport")
        return ContextBuilder().with_channel(SimulatedController(config.simulator)).build()

    if config.transport == "network":
        logger.info(f"Using NETWORK transport ({config.network.host})")
        return (
            ContextBuilder()
            .with_network(config.network.host)
            .timeouts(connect_timeout=config.network.connect_timeout_seconds)
            .build()
        )

    logger.info("Using SERIAL transport")
    if not config.serial.port:
        available = list_available_ports()
        if available:
            logger.info(f"Available serial ports: {', '.join(p.name for p in available)}")
        else:
            logger.warning("No serial ports found on system")

    return (
        ContextBuilder()
        .with_serial(
            port=config.serial.port or None,
            serial_number=config.serial.serial_number,
            vid=config.serial.usb_vid,
            pid=config.serial.usb_pid,
        )
        .baud(config.serial.baud)
        .timeouts(poll_timeout=config.serial.poll_timeout_seconds)
        .build()
    )


def print_ports() -> None:
    ports = list_available_ports()
    if not ports:
        print("No serial ports found")
        return
    for p in ports:
        ids = f"{p.vid:04X}:{p.pid:04X}" if p.vid is not None and p.pid is not None else "----:----"
        print(f"{p.name}\t{ids}\t{p.serial_number or '-'}\t{p.description}")


def main():
    """Main application entry point."""
    global context

    parser = argparse.ArgumentParser(description="JPE CPSC controller HTTP server")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"Path to configuration file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument(
        "--list-ports",
        action="store_true",
        help="List serial ports with USB ids and exit"
    )
    args = parser.parse_args()

    if args.list_ports:
        print_ports()
        return

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.logging)

    logger.info("=" * 60)
    logger.info(f"JPE CPSC controller driver v{__version__}")
    logger.info(f"Transport: {describe_transport(config)}")
    logger.info("=" * 60)

    try:
        context = build_context(config)
    except CpscError as e:
        logger.error(f"Failed to connect to controller: {e}")
        sys.exit(1)

    logger.info(f"Modules: {', '.join(str(m) for m in context.modules)}")

    app = create_app(context, config)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Starting API server on {config.server.ip}:{config.server.port}")
    logger.info("Press Ctrl+C to stop")

    try:
        uvicorn.run(
            app,
            host=config.server.ip,
            port=config.server.port,
            log_level=config.logging.level.lower(),
            access_log=False
        )
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        if context:
            context.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
