"""
WebSocket endpoint for live dashboard updates.
"""
import asyncio
import json
from enum import Enum
from typing import Callable, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from chathub.core.logging import get_logger
from chathub.models.user import UserRole
from chathub.realtime.hub import QueueSubscriber, RealtimeHub, build_event, instance_group
from chathub.repositories.instances import InstanceRepository
from chathub.repositories.users import UserRepository

logger = get_logger(__name__)

router = APIRouter(tags=["Realtime"])


class ClientAction(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    PING = "ping"


class ClientMessage(BaseModel):
    """Frame sent by the dashboard."""
    action: ClientAction
    group: Optional[str] = None


async def _pump(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    """Single writer: forwards queued events to the socket."""
    while True:
        message = await subscriber.get()
        await websocket.send_json(message)


def group_access(websocket: WebSocket, user_id: int) -> Optional[Callable[[str], bool]]:
    """
    Which groups this socket may join, or ``None`` when the user is gone.

    Admins may join any group. Clients may join only the instance groups of
    instances they own. Role and ownership are read once when the socket opens.
    """
    with websocket.app.state.database.session() as db:
        user = UserRepository(db).get_by_id(user_id)
        if user is None:
            return None
        if user.role == UserRole.ADMIN:
            return lambda group: True
        allowed = {instance_group(name) for name in InstanceRepository(db).names_for_user(user_id)}
    return lambda group: group in allowed


def _handle_client_message(
    raw: str,
    hub: RealtimeHub,
    subscriber: QueueSubscriber,
    default_group: str,
    may_join: Callable[[str], bool],
) -> None:
    try:
        message = ClientMessage.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        subscriber.deliver(build_event("error", {"detail": f"invalid message: {exc.__class__.__name__}"}))
        return

    group = message.group or default_group
    if message.action == ClientAction.JOIN:
        if not may_join(group):
            logger.warning("Realtime join refused", extra={"extra_data": {"group": group}})
            subscriber.deliver(build_event("error", {"detail": "group not accessible", "group": group}))
            return
        hub.join(group, subscriber)
        subscriber.deliver(build_event("joined", {"group": group}))
    elif message.action == ClientAction.LEAVE:
        hub.leave(group, subscriber)
        subscriber.deliver(build_event("left", {"group": group}))
    else:
        subscriber.deliver(build_event("pong", {}))


@router.websocket("/ws")
async def dashboard_websocket(websocket: WebSocket):
    """
    Live updates for logged-in dashboard users.

    Client frames: ``{"action": "join" | "leave" | "ping", "group": "admin"}``.
    Server frames: ``{"event": ..., "data": ..., "timestamp": ...}``.
    Admins join ``admin`` for every instance; clients join ``instance:<name>``
    for the instances they own.
    """
    session = websocket.session if "session" in websocket.scope else {}
    user_id = session.get("user_id")
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    may_join = await run_in_threadpool(group_access, websocket, user_id)
    if may_join is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    hub: RealtimeHub = websocket.app.state.hub
    default_group: str = websocket.app.state.settings.realtime_group
    subscriber = QueueSubscriber()
    sender = asyncio.create_task(_pump(websocket, subscriber))
    logger.info("Dashboard socket connected", extra={"extra_data": {"user_id": user_id}})

    try:
        while True:
            raw = await websocket.receive_text()
            _handle_client_message(raw, hub, subscriber, default_group, may_join)
    except WebSocketDisconnect:
        logger.info("Dashboard socket disconnected", extra={"extra_data": {"user_id": user_id}})
    finally:
        hub.leave_all(subscriber)
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
