"""
Pydantic models for HTTP API requests and responses.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field


Number = Union[int, float]


class ApiResponse(BaseModel):
    """
    Response envelope returned by every controller endpoint.

    Errors are reported in the envelope with HTTP status 200, never as
    HTTP error codes.
    """
    value: Any = Field(None, description="Response value (type varies by endpoint)")
    error_number: int = Field(0, description="Error code (0 = success, non-zero = error)")
    error_message: str = Field("", description="Error message (empty string if no error)")
    error_category: str = Field("", description="transport, value, device, overflow or internal")
    server_transaction_id: int = Field(description="Server transaction ID (auto-incremented)")


def make_response(
    value: Any,
    server_id: int,
    error: Optional[Exception] = None,
) -> ApiResponse:
    """
    Helper to create an API response.

    Args:
        value: Response value (ignored if error).
        server_id: Server transaction ID.
        error: Exception (if any).

    Returns:
        ApiResponse instance.
    """
    if error is None:
        return ApiResponse(value=value, server_transaction_id=server_id)

    from jpe_cpsc.api.error_mapper import map_exception

    error_number, category, message = map_exception(error)
    return ApiResponse(
        value=None,
        error_number=error_number,
        error_message=message,
        error_category=category,
        server_transaction_id=server_id,
    )


class IpConfigRequest(BaseModel):
    mode: str = Field(description="DHCP or STATIC")
    ip_address: str = "0.0.0.0"
    subnet_mask: str = "0.0.0.0"
    gateway: str = "0.0.0.0"


class BaudRateRequest(BaseModel):
    interface: str = Field(description="RS422 or USB")
    baud: int


class MoveRequest(BaseModel):
    """Open-loop move on a CADM2 module."""
    direction: str = Field(description="1/positive or 0/negative")
    step_freq: Number = Field(description="Step frequency [Hz], 0-600")
    r_step_size: Number = Field(description="Relative step size [%], 0-100")
    n_steps: Number = Field(description="Number of steps, 0-50000 (0 = continuous)")
    temp: Number = Field(description="Stage temperature [K], 0-300")
    stage: str
    drive_factor: Number = Field(1.0, description="0.1-3.0")


class ExternalInputRequest(BaseModel):
    """Flexdrive (external analog input) on a CADM2 module."""
    direction: str
    step_freq: Number
    r_step_size: Number
    temp: Number
    stage: str
    drive_factor: Number = 1.0


class ScanRequest(BaseModel):
    level: Number = Field(description="DC output level, 0-1023")


class ExcitationRequest(BaseModel):
    duty: Number = Field(description="Duty cycle [%], 0 or 10-100")


class ServodriveEnableRequest(BaseModel):
    stage_1: str
    init_step_freq_1: Number
    stage_2: str
    init_step_freq_2: Number
    stage_3: str
    init_step_freq_3: Number
    temp: Number
    drive_factor: Number = 1.0


class SetpointRequest(BaseModel):
    """Setpoints in meters (linear) or radians (rotational)."""
    set_point1: float = 0.0
    pos_mode_1: str = "absolute"
    set_point2: float = 0.0
    pos_mode_2: str = "absolute"
    set_point3: float = 0.0
    pos_mode_3: str = "absolute"
