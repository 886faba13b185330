"""
Login, logout and current-user endpoints.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from chathub.api.deps import CurrentUser
from chathub.core.database import get_db
from chathub.core.logging import get_logger
from chathub.repositories.users import UserRepository
from chathub.schemas.api import ErrorResponse, LoginRequest, LoginResponse, MessageResponse
from chathub.schemas.entities import UserRead

logger = get_logger(__name__)

router = APIRouter(tags=["Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing email or password"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
    summary="Start a dashboard session",
)
def login(
    payload: LoginRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> LoginResponse:
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = UserRepository(db).authenticate(payload.email, payload.password)
    if user is None:
        logger.warning("Failed login", extra={"extra_data": {"email": payload.email}})
        raise HTTPException(status_code=401, detail="Invalid credentials")

    request.session.clear()
    request.session["user_id"] = user.id
    request.session["role"] = user.role.value
    logger.info("User logged in", extra={"extra_data": {"user_id": user.id}})
    return LoginResponse(message="Login successful", user=user)


@router.post("/logout", response_model=MessageResponse, summary="End the dashboard session")
def logout(request: Request) -> MessageResponse:
    request.session.clear()
    return MessageResponse(message="Logged out")


@router.get(
    "/api/user",
    response_model=UserRead,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
    summary="Current session user",
)
def current_user(user: CurrentUser) -> UserRead:
    return user
