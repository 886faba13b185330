"""
Admin management of dashboard accounts.
"""
from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chathub.api.deps import AdminUser
from chathub.core.database import get_db
from chathub.core.errors import DuplicateEmailError
from chathub.core.logging import get_logger
from chathub.repositories.users import UserRepository
from chathub.schemas.api import ErrorResponse, MessageResponse, UserResponse, UserUpdateRequest
from chathub.schemas.entities import UserCreate, UserRead, UserUpdate

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/users", tags=["Users"])


@router.get("", response_model=List[UserRead], summary="List users")
def list_users(admin: AdminUser, db: Annotated[Session, Depends(get_db)]) -> List[UserRead]:
    return UserRepository(db).get_all()


@router.post(
    "",
    response_model=UserResponse,
    responses={409: {"model": ErrorResponse, "description": "Email already registered"}},
    summary="Create a user",
)
def create_user(
    payload: UserCreate,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    try:
        user = UserRepository(db).create(payload)
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info("User created", extra={"extra_data": {"user_id": user.id, "by": admin.id}})
    return UserResponse(message="User created", user=user)


@router.patch(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        404: {"model": ErrorResponse, "description": "User not found"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
    summary="Update a user",
)
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """Only non-empty fields are written; a blank password keeps the old one."""
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value not in (None, "")
    }
    try:
        user = UserRepository(db).update(user_id, UserUpdate(**changes))
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse(message="User updated", user=user)


@router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Cannot delete yourself"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
    summary="Delete a user",
)
def delete_user(
    user_id: int,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete yourself")

    if not UserRepository(db).delete(user_id):
        raise HTTPException(status_code=404, detail="User not found")

    logger.info("User deleted", extra={"extra_data": {"user_id": user_id, "by": admin.id}})
    return MessageResponse(message="User deleted")
