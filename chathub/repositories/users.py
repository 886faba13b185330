"""
User repository.

Read operations return ``UserRead`` models, so the password hash never
leaves this module; it is only consulted by ``authenticate``.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from chathub.core.errors import DuplicateEmailError
from chathub.core.security import hash_password, verify_password
from chathub.models.mixins import utcnow
from chathub.models.user import User
from chathub.repositories.base import BaseRepository
from chathub.schemas.entities import UserCreate, UserRead, UserUpdate


class UserRepository(BaseRepository[User]):
    model = User
    search_columns = ("email", "name")

    def _row_by_email(self, email: str) -> Optional[User]:
        return self.db.scalars(select(User).where(User.email == email)).first()

    @staticmethod
    def _read(user: Optional[User]) -> Optional[UserRead]:
        return UserRead.model_validate(user) if user is not None else None

    def get_all(self) -> List[UserRead]:
        return [UserRead.model_validate(user) for user in super().get_all()]

    def get_by_id(self, id_: int) -> Optional[UserRead]:
        return self._read(super().get_by_id(id_))

    def get_by_email(self, email: str) -> Optional[UserRead]:
        return self._read(self._row_by_email(email))

    def authenticate(self, email: str, password: str) -> Optional[UserRead]:
        """Return the user when the password matches the stored hash."""
        user = self._row_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return self._read(user)

    def create(self, fields: UserCreate) -> UserRead:
        if self._row_by_email(fields.email) is not None:
            raise DuplicateEmailError(fields.email)

        user = User(
            email=fields.email,
            password_hash=hash_password(fields.password),
            name=fields.name,
            role=fields.role.value,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateEmailError(fields.email)
        return self.get_by_id(user.id)

    def update(self, id_: int, fields: UserUpdate) -> Optional[UserRead]:
        if "email" in fields.model_fields_set and fields.email:
            existing = self._row_by_email(fields.email)
            if existing is not None and existing.id != id_:
                raise DuplicateEmailError(fields.email)

        user = super().get_by_id(id_)
        if user is None:
            return None

        values = fields.model_dump(exclude_unset=True, exclude={"password"})
        for key, value in values.items():
            if value is None:
                continue
            setattr(user, key, value.value if key == "role" else value)
        if fields.password:
            user.password_hash = hash_password(fields.password)
        user.updated_at = utcnow()

        self.db.commit()
        return self.get_by_id(id_)
