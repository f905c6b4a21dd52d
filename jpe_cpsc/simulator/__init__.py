"""
In-memory controller simulator for running without hardware.
"""

from jpe_cpsc.simulator.mock_device import SimulatedController

__all__ = ["SimulatedController"]
