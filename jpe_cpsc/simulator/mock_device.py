"""
Simulated CPSC controller.

Simulates the controller's command interpreter behind the ByteChannel
interface, so the real transaction engine and Context can run without
hardware.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from jpe_cpsc.config.models import SimulatorConfig
from jpe_cpsc.controller.types import NUM_SLOTS
from jpe_cpsc.protocol.codec import TERMINATOR, TERMINATOR_BYTES
from jpe_cpsc.protocol.interface import ByteChannel
from jpe_cpsc.utils.exceptions import TransportIOError


logger = logging.getLogger(__name__)

OK = "OK"


class SimulatedController(ByteChannel):
    """
    In-memory controller answering the CPSC command set.

    Written bytes are buffered until a terminator arrives; the reply is
    then queued and handed out at most ``chunk_size`` bytes per read.
    Reading with nothing queued raises BlockingIOError, like a
    non-blocking socket.
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        """
        Initialize simulator.

        Args:
            config: Simulator configuration (defaults if omitted).
        """
        self.config = config or SimulatorConfig()
        self._lock = threading.Lock()
        self._closed = False

        self._rx = bytearray()
        self._tx = bytearray()

        # Virtual hardware state
        self._modules = list(self.config.modules)
        self._stages = list(self.config.stages)
        self._baud = {"RS422": self.config.baud_rs422, "USB": self.config.baud_usb}
        self._ip = [
            self.config.ip_mode,
            self.config.ip_address,
            self.config.subnet_mask,
            self.config.gateway,
            self.config.mac_address,
        ]
        self._servo_enabled = False
        self._setpoints = [0.0, 0.0, 0.0]
        self._positions: Dict[Tuple[int, int], float] = {}
        self._neg_end_stops: Dict[Tuple[int, int], float] = {}
        self._pos_end_stops: Dict[Tuple[int, int], float] = {}
        self._duty: Dict[int, int] = {}

        self._handlers: Dict[str, Tuple[int, Callable[[List[str]], object]]] = {
            "/VER": (0, self._handle_ver),
            "FIV": (1, self._handle_fiv),
            "/MODLIST": (0, self._handle_modlist),
            "/STAGES": (0, self._handle_stages),
            "/IPR": (0, self._handle_ipr),
            "/IPS": (4, self._handle_ips),
            "/GBR": (1, self._handle_gbr),
            "/SBR": (2, self._handle_sbr),
            "FU": (2, self._handle_fu),
            "GFS": (1, self._handle_gfs),
            "MOV": (8, self._handle_mov),
            "STP": (1, self._handle_cadm_ok),
            "SDC": (2, self._handle_cadm_ok),
            "EXT": (7, self._handle_ext),
            "PGV": (3, self._handle_pgv),
            "PGVA": (4, self._handle_pgva),
            "MIS": (2, self._handle_mis),
            "MAS": (2, self._handle_mas),
            "MIR": (3, self._handle_mir),
            "MAR": (3, self._handle_mar),
            "MMR": (2, self._handle_mmr),
            "EXS": (2, self._handle_exs),
            "EXR": (1, self._handle_exr),
            "RSS": (1, self._handle_rsm_ok),
            "FBEN": (8, self._handle_fben),
            "FBXT": (0, self._handle_fbxt),
            "FBES": (0, self._handle_fbxt),
            "FBCS": (6, self._handle_fbcs),
            "FBST": (0, self._handle_fbst),
        }

        logger.info("SimulatedController initialized")

    # ------------------------------------------------------------------
    # ByteChannel
    # ------------------------------------------------------------------

    def read(self, size: int) -> bytes:
        with self._lock:
            if self._closed:
                return b""
            if not self._tx:
                raise BlockingIOError("No reply queued")
            n = min(size, self.config.chunk_size, len(self._tx))
            chunk = bytes(self._tx[:n])
            del self._tx[:n]
            return chunk

    def write(self, data: bytes) -> None:
        with self._lock:
            if self._closed:
                raise TransportIOError("Simulator connection closed")
            self._rx.extend(data)
            while True:
                end = self._rx.find(TERMINATOR_BYTES)
                if end < 0:
                    break
                line = bytes(self._rx[:end]).decode("ascii", errors="replace")
                del self._rx[: end + len(TERMINATOR_BYTES)]
                self._tx.extend(self._respond(line).encode("ascii"))

    def clear_input_buffer(self) -> None:
        with self._lock:
            self._tx.clear()

    def clear_output_buffer(self) -> None:
        with self._lock:
            self._rx.clear()

    def close(self) -> None:
        with self._lock:
            self._closed = True
        logger.info("Simulator disconnected")

    # ------------------------------------------------------------------
    # Command interpreter
    # ------------------------------------------------------------------

    def _respond(self, line: str) -> str:
        words = line.split()
        if not words:
            return f"Error: empty command{TERMINATOR}"

        mnemonic, args = words[0], words[1:]
        entry = self._handlers.get(mnemonic)
        if entry is None:
            logger.debug(f"[SIMULATOR] Unknown command: {line!r}")
            return f"Error: unknown command {mnemonic}{TERMINATOR}"

        n_args, handler = entry
        if len(args) != n_args:
            return f"Error: {mnemonic} expects {n_args} arguments, got {len(args)}{TERMINATOR}"

        try:
            reply = handler(args)
        except (_DeviceFault, ValueError) as e:
            return f"Error: {e}{TERMINATOR}"

        logger.debug(f"[SIMULATOR] {line!r} -> {reply!r}")
        if isinstance(reply, list):
            return self._format_list(reply)
        return f"{reply}{TERMINATOR}"

    def _format_list(self, values: List[str]) -> str:
        if self.config.cr_delimited_lists and len(values) > 1:
            return "\r".join(values) + TERMINATOR
        return ",".join(values) + TERMINATOR

    def _slot(self, arg: str, *kinds: str) -> int:
        try:
            slot = int(arg)
        except ValueError:
            raise _DeviceFault(f"invalid slot {arg}")
        if not 1 <= slot <= NUM_SLOTS:
            raise _DeviceFault(f"invalid slot {arg}")
        name = self._modules[slot - 1]
        if kinds and not any(name.upper().startswith(k) for k in kinds):
            raise _DeviceFault(f"command not supported by module in slot {slot}")
        return slot

    def _channel(self, arg: str) -> int:
        if arg not in ("1", "2", "3"):
            raise _DeviceFault(f"invalid channel {arg}")
        return int(arg)

    def _stage(self, name: str) -> str:
        if name not in self._stages:
            raise _DeviceFault(f"stage {name} unsupported")
        return name

    # General

    def _handle_ver(self, args):
        return self.config.firmware_version

    def _handle_fiv(self, args):
        slot = self._slot(args[0])
        if self._modules[slot - 1] == "-":
            raise _DeviceFault(f"no module in slot {slot}")
        return f"{self._modules[slot - 1]} v1.0.{slot}"

    def _handle_modlist(self, args):
        return list(self._modules)

    def _handle_stages(self, args):
        return list(self._stages)

    def _handle_ipr(self, args):
        return list(self._ip)

    def _handle_ips(self, args):
        mode = args[0].upper()
        if mode not in ("DHCP", "STATIC"):
            raise _DeviceFault(f"invalid addressing mode {args[0]}")
        self._ip[:4] = [mode, args[1], args[2], args[3]]
        return OK

    def _handle_gbr(self, args):
        ifc = args[0].upper()
        if ifc not in self._baud:
            raise _DeviceFault(f"invalid interface {args[0]}")
        return str(self._baud[ifc])

    def _handle_sbr(self, args):
        ifc = args[0].upper()
        if ifc not in self._baud:
            raise _DeviceFault(f"invalid interface {args[0]}")
        self._baud[ifc] = int(args[1])
        return OK

    def _handle_fu(self, args):
        self._slot(args[0])
        logger.info(f"[SIMULATOR] Firmware update of slot {args[0]} from {args[1]}")
        return OK

    # CADM2

    def _handle_gfs(self, args):
        self._slot(args[0], "CADM")
        return "0"

    def _handle_mov(self, args):
        self._slot(args[0], "CADM")
        self._stage(args[6])
        return OK

    def _handle_ext(self, args):
        self._slot(args[0], "CADM")
        self._stage(args[5])
        return OK

    def _handle_cadm_ok(self, args):
        self._slot(args[0], "CADM")
        return OK

    # RSM

    def _handle_pgv(self, args):
        slot = self._slot(args[0], "RSM")
        ch = self._channel(args[1])
        self._stage(args[2])
        return _fmt(self._positions.get((slot, ch), 0.0))

    def _handle_pgva(self, args):
        slot = self._slot(args[0], "RSM")
        for stage in args[1:]:
            self._stage(stage)
        return [_fmt(self._positions.get((slot, ch), 0.0)) for ch in (1, 2, 3)]

    def _handle_mis(self, args):
        key = (self._slot(args[0], "RSM"), self._channel(args[1]))
        self._neg_end_stops[key] = self._positions.get(key, 0.0)
        return OK

    def _handle_mas(self, args):
        key = (self._slot(args[0], "RSM"), self._channel(args[1]))
        self._pos_end_stops[key] = self._positions.get(key, 0.0)
        return OK

    def _handle_mir(self, args):
        key = (self._slot(args[0], "RSM"), self._channel(args[1]))
        self._stage(args[2])
        return _fmt(self._neg_end_stops.get(key, 0.0))

    def _handle_mar(self, args):
        key = (self._slot(args[0], "RSM"), self._channel(args[1]))
        self._stage(args[2])
        return _fmt(self._pos_end_stops.get(key, 0.0))

    def _handle_mmr(self, args):
        key = (self._slot(args[0], "RSM"), self._channel(args[1]))
        self._neg_end_stops.pop(key, None)
        self._pos_end_stops.pop(key, None)
        return OK

    def _handle_exs(self, args):
        slot = self._slot(args[0], "RSM")
        self._duty[slot] = int(args[1])
        return OK

    def _handle_exr(self, args):
        slot = self._slot(args[0], "RSM")
        return str(self._duty.get(slot, 0))

    def _handle_rsm_ok(self, args):
        self._slot(args[0], "RSM")
        return OK

    # Servodrive

    def _rsm_slot(self) -> Optional[int]:
        for idx, name in enumerate(self._modules):
            if name.upper().startswith("RSM"):
                return idx + 1
        return None

    def _handle_fben(self, args):
        for stage in args[0:6:2]:
            self._stage(stage)
        if self._rsm_slot() is None:
            raise _DeviceFault("servodrive requires an RSM module")
        self._servo_enabled = True
        return OK

    def _handle_fbxt(self, args):
        self._servo_enabled = False
        return OK

    def _handle_fbcs(self, args):
        if not self._servo_enabled:
            raise _DeviceFault("servodrive not enabled")
        slot = self._rsm_slot()
        for i in range(3):
            try:
                value = float(args[2 * i])
            except ValueError:
                raise _DeviceFault(f"invalid setpoint {args[2 * i]}")
            absolute = args[2 * i + 1] == "1"
            self._setpoints[i] = value if absolute else self._setpoints[i] + value
            # The simulated loop settles instantly.
            self._positions[(slot, i + 1)] = self._setpoints[i]
        return OK

    def _handle_fbst(self, args):
        enabled = "1" if self._servo_enabled else "0"
        return [enabled, "1", "0", "0", "0", "0", "0", "0"]


class _DeviceFault(Exception):
    """Turns into an ``Error ...`` reply."""


def _fmt(value: float) -> str:
    return f"{value:.9f}"
