"""
Request and response schemas for the admin HTTP API.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from chathub.models.user import UserRole
from chathub.schemas.entities import InstanceRead, InstanceStats, UserRead


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    message: str
    user: UserRead


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    message: str
    user: UserRead


class UserUpdateRequest(BaseModel):
    """Dashboard edit form; empty strings mean "leave unchanged"."""
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    role: Optional[UserRole] = None


class InstanceCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    user_id: Optional[int] = None


class InstanceCreateResponse(BaseModel):
    message: str
    instance: InstanceRead
    provider: Optional[dict] = None


class QRCodeResponse(BaseModel):
    message: str
    qrData: dict


class InstanceStatusResponse(BaseModel):
    name: str
    status: str


class InstancesResponse(BaseModel):
    instances: List[InstanceStats]
    provider_instances: List[dict] = []
    provider_error: Optional[str] = None


class DataTableResponse(BaseModel):
    """Envelope expected by DataTables server-side processing."""
    draw: int
    recordsTotal: int
    recordsFiltered: int
    data: List[Any]


class HealthResponse(BaseModel):
    """Response schema for health endpoints."""
    status: str
    checks: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Standard error response schema."""
    detail: str
