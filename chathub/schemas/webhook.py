"""
Schemas for the inbound provider webhook.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class WebhookEnvelope(BaseModel):
    """Uniform outer shape of every provider webhook call."""

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "event": "messages.upsert",
                "instance": "shop1",
                "data": {
                    "key": {"id": "abc", "remoteJid": "123@g.us"},
                    "messageType": "conversation",
                    "message": {"conversation": "hola"},
                },
                "server_url": "https://evolution.example.com",
                "apikey": "secret",
            }
        },
    )

    event: str = Field(..., min_length=1, description="Provider event name, e.g. messages.upsert")
    instance: str = Field(..., min_length=1, description="Provider instance name (tenant)")
    data: Any = None
    server_url: Optional[str] = None
    apikey: Optional[str] = None

    def items(self) -> list:
        """The payload as a list of element dicts, whatever shape it arrived in."""
        if isinstance(self.data, list):
            return self.data
        if self.data is None:
            return []
        return [self.data]


class WebhookResponse(BaseModel):
    """Response schema for POST /webhook."""
    status: str = Field(default="ok")
    event: Optional[str] = None
    processed: int = 0
    skipped: int = 0
    failed: int = 0
