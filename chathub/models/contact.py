"""
Contact database model.
"""
from sqlalchemy import JSON, Column, ForeignKey, String, Text

from chathub.core.database import Base
from chathub.models.mixins import TimestampMixin


class Contact(TimestampMixin, Base):
    __tablename__ = "contacts"

    id = Column(String(255), primary_key=True)
    push_name = Column(String(255), nullable=True)
    profile_picture_url = Column(Text, nullable=True)
    owner = Column(
        String(255),
        ForeignKey("instances.name", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    raw_data = Column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, owner={self.owner})>"
