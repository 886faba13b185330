"""
Admin management of provider instances.

Instances live in two places: the provider, which owns the WhatsApp
session, and the local table, which owns tenancy and stored rows. Provider
failures surface as 502 here; the list view degrades to local data.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from chathub.api.deps import AdminUser
from chathub.core.database import get_db
from chathub.core.errors import DuplicateInstanceNameError, ProviderError
from chathub.core.logging import get_logger
from chathub.repositories.instances import InstanceRepository
from chathub.schemas.api import (
    ErrorResponse,
    InstanceCreateRequest,
    InstanceCreateResponse,
    InstancesResponse,
    InstanceStatusResponse,
    MessageResponse,
    QRCodeResponse,
)
from chathub.schemas.entities import InstanceCreate, InstanceRead
from chathub.services.provider import EvolutionClient

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/instances", tags=["Instances"])

PROVIDER_NOT_CONFIGURED = "Evolution API is not configured"


def get_provider(request: Request) -> Optional[EvolutionClient]:
    return getattr(request.app.state, "provider", None)


def require_provider(provider: Annotated[Optional[EvolutionClient], Depends(get_provider)]) -> EvolutionClient:
    if provider is None:
        raise HTTPException(status_code=503, detail=PROVIDER_NOT_CONFIGURED)
    return provider


def provider_failure(exc: ProviderError) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Evolution API: {exc}")


def _provider_name(item: dict) -> Optional[str]:
    return item.get("instanceName") or item.get("name")


@router.get("", response_model=InstancesResponse, summary="List instances")
def list_instances(
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[Optional[EvolutionClient], Depends(get_provider)],
) -> InstancesResponse:
    """
    Provider instances with a refreshed connection state, plus local
    instances with their row counts. Local status is updated from the
    provider for every instance both sides know.
    """
    repository = InstanceRepository(db)
    provider_instances = []
    provider_error = None

    if provider is None:
        provider_error = PROVIDER_NOT_CONFIGURED
    else:
        try:
            fetched = provider.fetch_instances()
        except ProviderError as e:
            logger.warning("Provider instance list unavailable", extra={"extra_data": {"error": str(e)}})
            provider_error = f"Evolution API: {e}"
            fetched = []

        for item in fetched:
            if not isinstance(item, dict):
                continue
            name = _provider_name(item)
            if not name:
                continue
            status = provider.connection_state(name)
            repository.update_status_by_name(name, status)
            provider_instances.append({**item, "status": status})

    return InstancesResponse(
        instances=repository.get_all_with_stats(),
        provider_instances=provider_instances,
        provider_error=provider_error,
    )


@router.post(
    "",
    response_model=InstanceCreateResponse,
    responses={
        409: {"model": ErrorResponse, "description": "Instance name taken"},
        502: {"model": ErrorResponse, "description": "Provider failure"},
    },
    summary="Create an instance",
)
def create_instance(
    payload: InstanceCreateRequest,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[EvolutionClient, Depends(require_provider)],
) -> InstanceCreateResponse:
    repository = InstanceRepository(db)
    if repository.get_by_name(payload.name) is not None:
        raise HTTPException(status_code=409, detail=str(DuplicateInstanceNameError(payload.name)))

    try:
        provider_data = provider.create_instance(payload.name)
    except ProviderError as e:
        raise provider_failure(e)

    try:
        instance = repository.create(InstanceCreate(name=payload.name, user_id=payload.user_id))
    except DuplicateInstanceNameError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info("Instance created via admin", extra={"extra_data": {"instance": payload.name, "by": admin.id}})
    return InstanceCreateResponse(
        message="Instance created",
        instance=InstanceRead.model_validate(instance),
        provider=provider_data.get("instance") if isinstance(provider_data.get("instance"), dict) else provider_data,
    )


@router.delete(
    "/{name}",
    response_model=MessageResponse,
    responses={502: {"model": ErrorResponse, "description": "Provider failure"}},
    summary="Delete an instance",
)
def delete_instance(
    name: str,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[EvolutionClient, Depends(require_provider)],
) -> MessageResponse:
    """Deletes at the provider, then locally; local rows cascade."""
    try:
        provider.delete_instance(name)
    except ProviderError as e:
        raise provider_failure(e)

    repository = InstanceRepository(db)
    instance = repository.get_by_name(name)
    if instance is not None:
        repository.delete(instance.id)

    logger.info("Instance deleted", extra={"extra_data": {"instance": name, "by": admin.id}})
    return MessageResponse(message="Instance deleted")


@router.get(
    "/{name}/qrcode",
    response_model=QRCodeResponse,
    responses={502: {"model": ErrorResponse, "description": "Provider failure"}},
    summary="Pairing QR code",
)
def get_qrcode(
    name: str,
    admin: AdminUser,
    provider: Annotated[EvolutionClient, Depends(require_provider)],
) -> QRCodeResponse:
    try:
        data = provider.get_qrcode(name)
    except ProviderError as e:
        raise provider_failure(e)
    return QRCodeResponse(message="QR code retrieved", qrData=data)


@router.post(
    "/{name}/status",
    response_model=InstanceStatusResponse,
    responses={404: {"model": ErrorResponse, "description": "Instance not found"}},
    summary="Refresh connection state",
)
def refresh_status(
    name: str,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
    provider: Annotated[EvolutionClient, Depends(require_provider)],
) -> InstanceStatusResponse:
    repository = InstanceRepository(db)
    if repository.get_by_name(name) is None:
        raise HTTPException(status_code=404, detail="Instance not found")

    state = provider.connection_state(name)
    repository.update_status_by_name(name, state)
    instance = repository.get_by_name(name)
    return InstanceStatusResponse(name=name, status=instance.status)
