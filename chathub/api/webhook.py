"""
Webhook endpoint receiving provider events.
"""
import json
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chathub.api.metrics import record_webhook_event
from chathub.core.database import get_db
from chathub.core.errors import StoreUnavailableError
from chathub.core.logging import get_logger
from chathub.core.security import get_webhook_body
from chathub.schemas.api import ErrorResponse
from chathub.schemas.webhook import WebhookEnvelope, WebhookResponse
from chathub.services.normalizer import WebhookNormalizer

logger = get_logger(__name__)

router = APIRouter(tags=["Webhook"])


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid signature"},
        422: {"model": ErrorResponse, "description": "Validation error"},
        500: {"model": ErrorResponse, "description": "Store failure"},
    },
    summary="Receive provider event",
    description="Normalise one provider webhook call into contacts, chats, messages and instance state.",
)
def receive_event(
    request: Request,
    body: Annotated[bytes, Depends(get_webhook_body)],
    db: Annotated[Session, Depends(get_db)],
) -> WebhookResponse:
    """
    Ingest one provider webhook envelope.

    Runs in the threadpool: media downloads block only this request.
    Malformed elements are skipped; a store failure fails the call with 500.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON in webhook request: {e}")
        raise HTTPException(status_code=422, detail="Invalid JSON")

    try:
        envelope = WebhookEnvelope.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Validation error in webhook request: {e}")
        raise HTTPException(status_code=422, detail=str(e))

    state = request.app.state
    normalizer = WebhookNormalizer(
        db,
        hub=getattr(state, "hub", None),
        media_fetcher=getattr(state, "media_fetcher", None),
        default_owner_email=state.settings.admin_email,
        group=state.settings.realtime_group,
    )

    try:
        result = normalizer.process(envelope)
    except (SQLAlchemyError, StoreUnavailableError) as e:
        db.rollback()
        record_webhook_event(envelope.event, "error")
        logger.error(
            "Webhook store failure",
            extra={"extra_data": {"event": envelope.event, "instance": envelope.instance, "error": str(e)}},
        )
        raise HTTPException(status_code=500, detail="Store failure")

    record_webhook_event(result.event, "ok")
    return WebhookResponse(
        status="ok",
        event=result.event,
        processed=result.processed,
        skipped=result.skipped,
        failed=result.failed,
    )
