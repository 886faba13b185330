"""
Chat repository.
"""
from chathub.models.chat import Chat
from chathub.repositories.base import BaseRepository


class ChatRepository(BaseRepository[Chat]):
    model = Chat
    search_columns = ("id",)
