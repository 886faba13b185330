"""
Message repository.
"""
from chathub.models.message import Message
from chathub.repositories.base import BaseRepository
from chathub.schemas.entities import MessageUpdate


class MessageRepository(BaseRepository[Message]):
    model = Message
    search_columns = ("content", "remote_jid", "push_name")

    def default_order(self) -> list:
        # Newest first; rows without a provider timestamp sort last
        return [Message.message_timestamp.desc().nulls_last(), Message.id.asc()]

    def set_status(self, id_: str, status: str) -> bool:
        """Record the latest delivery status of a stored message."""
        return self.update(id_, MessageUpdate(status=status)) is not None
