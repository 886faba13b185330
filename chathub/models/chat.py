"""
Chat database model.
"""
from sqlalchemy import JSON, Column, ForeignKey, String

from chathub.core.database import Base
from chathub.models.mixins import TimestampMixin


class Chat(TimestampMixin, Base):
    __tablename__ = "chats"

    id = Column(String(255), primary_key=True)
    owner = Column(
        String(255),
        ForeignKey("instances.name", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    raw_data = Column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Chat(id={self.id}, owner={self.owner})>"
