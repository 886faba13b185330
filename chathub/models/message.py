"""
Message database model.
"""
from sqlalchemy import JSON, BigInteger, Boolean, Column, ForeignKey, Index, Integer, String, Text

from chathub.core.database import Base
from chathub.models.mixins import TimestampMixin

# Message types whose attachment is downloaded from the provider
MULTIMEDIA_TYPES = frozenset({
    "imageMessage",
    "videoMessage",
    "audioMessage",
    "documentMessage",
    "stickerMessage",
})


class Message(TimestampMixin, Base):
    """A provider message, keyed by the provider message id."""

    __tablename__ = "messages"

    id = Column(String(255), primary_key=True)

    # Chat the message belongs to, and the sender inside group chats
    remote_jid = Column(
        String(255),
        ForeignKey("chats.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    participant = Column(String(255), nullable=True)
    push_name = Column(String(255), nullable=True)

    message_type = Column(String(64), nullable=True)
    # Epoch seconds as sent by the provider, never generated locally
    message_timestamp = Column(BigInteger, nullable=True, index=True)
    owner = Column(
        String(255),
        ForeignKey("instances.name", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    source = Column(String(64), nullable=True)
    content = Column(Text, nullable=True)
    status = Column(String(32), nullable=True)
    raw_data = Column(JSON, nullable=True)

    # Media descriptor, only set after a successful download
    media_type = Column(String(64), nullable=True)
    media_filename = Column(String(512), nullable=True)
    media_path = Column(String(1024), nullable=True)
    media_size = Column(Integer, nullable=True)
    media_mimetype = Column(String(255), nullable=True)
    media_caption = Column(Text, nullable=True)
    media_downloaded = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_messages_owner_timestamp", "owner", "message_timestamp"),
    )

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, remote_jid={self.remote_jid}, type={self.message_type})>"
