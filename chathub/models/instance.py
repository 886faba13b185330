"""
Instance database model.
"""
import enum

from sqlalchemy import Column, ForeignKey, Integer, String

from chathub.core.database import Base
from chathub.models.mixins import TimestampMixin


class InstanceStatus(str, enum.Enum):
    """Connection states reported by the provider."""

    UNKNOWN = "unknown"
    CREATED = "created"
    OPEN = "open"
    CLOSE = "close"
    CONNECTING = "connecting"

    @classmethod
    def coerce(cls, value) -> "InstanceStatus":
        """Map any provider value onto a known state, defaulting to unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN


class Instance(TimestampMixin, Base):
    """One provider session (tenant). Its name is the owner of dependent rows."""

    __tablename__ = "instances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), nullable=False, default=InstanceStatus.UNKNOWN.value)

    def __repr__(self) -> str:
        return f"<Instance(id={self.id}, name={self.name}, status={self.status})>"
