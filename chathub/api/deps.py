"""
Session based authentication dependencies.
"""
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from chathub.core.database import get_db
from chathub.core.logging import get_logger
from chathub.models.user import UserRole
from chathub.repositories.users import UserRepository
from chathub.schemas.entities import UserRead

logger = get_logger(__name__)


def require_user(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> UserRead:
    """The logged-in user, or 401. A session pointing at a deleted user is cleared."""
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        request.session.clear()
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: Annotated[UserRead, Depends(require_user)]) -> UserRead:
    if user.role != UserRole.ADMIN:
        logger.warning("Admin route refused", extra={"extra_data": {"user_id": user.id}})
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


CurrentUser = Annotated[UserRead, Depends(require_user)]
AdminUser = Annotated[UserRead, Depends(require_admin)]
