"""
Controller and management API endpoints.

Endpoints are plain ``def`` functions, so FastAPI runs them on its worker
threads; the context lock keeps their transactions from interleaving.
"""

import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, Query, Request

from jpe_cpsc.api.app import get_next_transaction_id
from jpe_cpsc.api.models import (
    ApiResponse,
    BaudRateRequest,
    ExcitationRequest,
    ExternalInputRequest,
    IpConfigRequest,
    MoveRequest,
    ScanRequest,
    ServodriveEnableRequest,
    SetpointRequest,
    make_response,
)
from jpe_cpsc.config.loader import describe_transport
from jpe_cpsc.controller.context import BaseContext
from jpe_cpsc.protocol.logger import get_protocol_logger
from jpe_cpsc.protocol.port_scanner import list_available_ports
from jpe_cpsc.utils.exceptions import CpscError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/controller", tags=["controller"])
management_router = APIRouter(prefix="/api/v1/management", tags=["management"])


class ContextCall:
    """Dependency giving a route locked access to the context."""

    def __init__(self, request: Request):
        self._context: BaseContext = request.app.state.context
        self._lock = request.app.state.context_lock
        self._path = request.url.path

    def __call__(self, func: Callable[[BaseContext], Any]) -> ApiResponse:
        try:
            with self._lock:
                value = func(self._context)
        except CpscError as e:
            logger.error(f"Error in {self._path}: {e}")
            return make_response(None, get_next_transaction_id(), e)
        logger.debug(f"{self._path} -> {value}")
        return make_response(value, get_next_transaction_id())


@router.get("/health")
def health_check():
    """Simple health check endpoint (no dependencies)."""
    return {"status": "ok", "message": "Server is running"}


# General

@router.get("/firmware", response_model=ApiResponse)
def get_firmware(call: ContextCall = Depends()):
    """Controller firmware version (cached after the first read)."""
    return call(lambda ctx: ctx.get_fw_version())


@router.get("/mode", response_model=ApiResponse)
def get_mode(call: ContextCall = Depends()):
    return call(lambda ctx: str(ctx.mode))


@router.get("/modules", response_model=ApiResponse)
def get_modules(call: ContextCall = Depends()):
    """Module table as last read from the controller, slot 1 first."""
    return call(lambda ctx: [str(m) for m in ctx.modules])


@router.put("/modules/refresh", response_model=ApiResponse)
def refresh_modules(call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_module_list())


@router.get("/modules/{slot}/firmware", response_model=ApiResponse)
def get_module_firmware(slot: str, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_mod_fw_version(slot))


@router.get("/stages", response_model=ApiResponse)
def get_stages(call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_supported_stages())


@router.put("/stages/refresh", response_model=ApiResponse)
def refresh_stages(call: ContextCall = Depends()):
    return call(lambda ctx: ctx.refresh_supported_stages())


@router.get("/ipconfig", response_model=ApiResponse)
def get_ip_config(call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_ip_config())


@router.put("/ipconfig", response_model=ApiResponse)
def put_ip_config(body: IpConfigRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.set_ip_config(body.mode, body.ip_address, body.subnet_mask, body.gateway))


@router.get("/baudrate/{interface}", response_model=ApiResponse)
def get_baud_rate(interface: str, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_baud_rate(interface))


@router.put("/baudrate", response_model=ApiResponse)
def put_baud_rate(body: BaudRateRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.set_baud_rate(body.interface, body.baud))


# CADM2

@router.get("/cadm/{slot}/failsafe", response_model=ApiResponse)
def get_fail_safe_state(slot: str, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_fail_safe_state(slot))


@router.put("/cadm/{slot}/move", response_model=ApiResponse)
def put_move(slot: str, body: MoveRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.move_stage_open(
        slot, body.direction, body.step_freq, body.r_step_size,
        body.n_steps, body.temp, body.stage, body.drive_factor,
    ))


@router.put("/cadm/{slot}/stop", response_model=ApiResponse)
def put_stop(slot: str, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.stop_stage(slot))


@router.put("/cadm/{slot}/scan", response_model=ApiResponse)
def put_scan(slot: str, body: ScanRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.enable_scan_mode(slot, body.level))


@router.put("/cadm/{slot}/external", response_model=ApiResponse)
def put_external_input(slot: str, body: ExternalInputRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.enable_ext_input_mode(
        slot, body.direction, body.step_freq, body.r_step_size,
        body.temp, body.stage, body.drive_factor,
    ))


# RSM

@router.get("/rsm/{slot}/position/{channel}", response_model=ApiResponse)
def get_position(slot: str, channel: str, stage: str = Query(...), call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_current_position(slot, channel, stage))


@router.get("/rsm/{slot}/positions", response_model=ApiResponse)
def get_positions(
    slot: str,
    stage1: str = Query(...),
    stage2: str = Query(...),
    stage3: str = Query(...),
    call: ContextCall = Depends(),
):
    return call(lambda ctx: list(ctx.get_current_position_all(slot, stage1, stage2, stage3)))


@router.get("/rsm/{slot}/excitation", response_model=ApiResponse)
def get_excitation(slot: str, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.read_excitation_ds(slot))


@router.put("/rsm/{slot}/excitation", response_model=ApiResponse)
def put_excitation(slot: str, body: ExcitationRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.set_excitation_ds(slot, body.duty))


@router.put("/rsm/{slot}/save", response_model=ApiResponse)
def put_save_nvram(slot: str, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.save_rsm_nvram(slot))


# Servodrive

@router.put("/servodrive/enable", response_model=ApiResponse)
def put_servodrive_enable(body: ServodriveEnableRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.enable_servodrive(
        body.stage_1, body.init_step_freq_1,
        body.stage_2, body.init_step_freq_2,
        body.stage_3, body.init_step_freq_3,
        body.temp, body.drive_factor,
    ))


@router.put("/servodrive/disable", response_model=ApiResponse)
def put_servodrive_disable(call: ContextCall = Depends()):
    return call(lambda ctx: ctx.disable_servodrive())


@router.put("/servodrive/emergency-stop", response_model=ApiResponse)
def put_servodrive_em_stop(call: ContextCall = Depends()):
    return call(lambda ctx: ctx.servodrive_em_stop())


@router.put("/servodrive/setpoint", response_model=ApiResponse)
def put_setpoint(body: SetpointRequest, call: ContextCall = Depends()):
    return call(lambda ctx: ctx.go_to_setpoint(
        body.set_point1, body.pos_mode_1,
        body.set_point2, body.pos_mode_2,
        body.set_point3, body.pos_mode_3,
    ))


@router.get("/servodrive/status", response_model=ApiResponse)
def get_servodrive_status(call: ContextCall = Depends()):
    return call(lambda ctx: ctx.get_servodrive_status()._asdict())


# Management

@management_router.get("/ports")
def get_available_ports():
    """List all serial ports on the system."""
    return {"value": [p.to_dict() for p in list_available_ports()]}


@management_router.get("/protocol-log")
def get_protocol_log(limit: int = Query(100, ge=1, le=1000)):
    """Most recent TX/RX messages, oldest first."""
    protocol_logger = get_protocol_logger()
    return {"value": protocol_logger.get_messages(limit), "stats": protocol_logger.get_stats()}


@management_router.delete("/protocol-log")
def clear_protocol_log():
    get_protocol_logger().clear()
    return {"value": True}


@management_router.get("/description")
def get_description(request: Request):
    """Server version, configured transport and the cached controller state."""
    from jpe_cpsc import __version__

    context: BaseContext = request.app.state.context
    with request.app.state.context_lock:
        value = {
            "server": request.app.title,
            "version": __version__,
            "transport": describe_transport(request.app.state.config),
            "firmware": context.firmware_version,
            "mode": str(context.mode),
            "modules": [str(m) for m in context.modules],
        }
    return {"value": value}
