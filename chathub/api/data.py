"""
Server-side data source for the dashboard tables.
"""
from enum import Enum
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from chathub.api.deps import CurrentUser
from chathub.core.database import get_db
from chathub.models.user import UserRole
from chathub.repositories.chats import ChatRepository
from chathub.repositories.contacts import ContactRepository
from chathub.repositories.instances import InstanceRepository
from chathub.repositories.messages import MessageRepository
from chathub.schemas.api import DataTableResponse, ErrorResponse
from chathub.schemas.entities import ChatRow, ContactRow, MessageRow

router = APIRouter(prefix="/api/data", tags=["Data"])


class DataType(str, Enum):
    MESSAGES = "messages"
    CONTACTS = "contacts"
    CHATS = "chats"


_SOURCES = {
    DataType.MESSAGES: (MessageRepository, MessageRow),
    DataType.CONTACTS: (ContactRepository, ContactRow),
    DataType.CHATS: (ChatRepository, ChatRow),
}


def visible_owners(db: Session, user, instance: Optional[str]) -> Optional[List[str]]:
    """
    Instance names the user may read, narrowed to ``instance`` when given.

    ``None`` means no restriction (admins without a filter). Clients asking
    for an instance they do not own get 403.
    """
    if user.role == UserRole.ADMIN:
        return [instance] if instance else None

    owned = InstanceRepository(db).names_for_user(user.id)
    if instance:
        if instance not in owned:
            raise HTTPException(status_code=403, detail="Instance not accessible")
        return [instance]
    return owned


@router.get(
    "/{data_type}",
    response_model=DataTableResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Instance not accessible"},
    },
    summary="Paged rows for a dashboard table",
)
def get_table_data(
    data_type: DataType,
    request: Request,
    user: CurrentUser,
    db: Annotated[Session, Depends(get_db)],
    instance: Optional[str] = Query(default=None),
    draw: int = Query(default=0),
    start: int = Query(default=0, ge=0),
    length: int = Query(default=10, ge=-1),
) -> DataTableResponse:
    # DataTables sends search[value]; some clients flatten it to search.value
    search = request.query_params.get("search[value]") or request.query_params.get("search.value") or None

    repository_class, row_model = _SOURCES[data_type]
    owners = visible_owners(db, user, instance)

    if owners is not None and not owners:
        return DataTableResponse(draw=draw, recordsTotal=0, recordsFiltered=0, data=[])

    total, filtered, rows = repository_class(db).page(owners=owners, search=search, start=start, length=length)
    return DataTableResponse(
        draw=draw,
        recordsTotal=total,
        recordsFiltered=filtered,
        data=[row_model.model_validate(row).model_dump(mode="json") for row in rows],
    )
