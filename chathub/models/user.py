"""
User database model.
"""
import enum

from sqlalchemy import Column, Integer, String

from chathub.core.database import Base
from chathub.models.mixins import TimestampMixin


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    CLIENT = "client"


class User(TimestampMixin, Base):
    """Dashboard account. Admins manage everything, clients see their own instances."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.CLIENT.value)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
