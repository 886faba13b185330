"""
Pydantic schemas for repository input and output.

``*Create`` models describe a whole row: every field not supplied falls
back to its default, so an upsert replaces the stored row completely.
``*Update`` models are partial: only fields explicitly set by the caller
(``model_dump(exclude_unset=True)``) are written, and setting a field to
``None`` clears it.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from chathub.models.instance import InstanceStatus
from chathub.models.user import UserRole


class ContactCreate(BaseModel):
    id: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    push_name: Optional[str] = None
    profile_picture_url: Optional[str] = None
    raw_data: Optional[Any] = None


class ContactUpdate(BaseModel):
    owner: Optional[str] = None
    push_name: Optional[str] = None
    profile_picture_url: Optional[str] = None
    raw_data: Optional[Any] = None


class ChatCreate(BaseModel):
    id: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    raw_data: Optional[Any] = None


class ChatUpdate(BaseModel):
    owner: Optional[str] = None
    raw_data: Optional[Any] = None


class MediaFields(BaseModel):
    media_type: Optional[str] = None
    media_filename: Optional[str] = None
    media_path: Optional[str] = None
    media_size: Optional[int] = None
    media_mimetype: Optional[str] = None
    media_caption: Optional[str] = None
    media_downloaded: bool = False


class MessageCreate(MediaFields):
    id: str = Field(..., min_length=1)
    remote_jid: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    participant: Optional[str] = None
    push_name: Optional[str] = None
    message_type: Optional[str] = None
    message_timestamp: Optional[int] = None
    source: Optional[str] = None
    content: Optional[str] = None
    status: Optional[str] = None
    raw_data: Optional[Any] = None


class MessageUpdate(BaseModel):
    remote_jid: Optional[str] = None
    owner: Optional[str] = None
    participant: Optional[str] = None
    push_name: Optional[str] = None
    message_type: Optional[str] = None
    message_timestamp: Optional[int] = None
    source: Optional[str] = None
    content: Optional[str] = None
    status: Optional[str] = None
    raw_data: Optional[Any] = None
    media_type: Optional[str] = None
    media_filename: Optional[str] = None
    media_path: Optional[str] = None
    media_size: Optional[int] = None
    media_mimetype: Optional[str] = None
    media_caption: Optional[str] = None
    media_downloaded: Optional[bool] = None


class InstanceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    user_id: Optional[int] = None
    status: InstanceStatus = InstanceStatus.UNKNOWN


class InstanceUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    user_id: Optional[int] = None
    status: Optional[InstanceStatus] = None


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role: UserRole = UserRole.CLIENT


class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1)
    name: Optional[str] = Field(default=None, min_length=1)
    role: Optional[UserRole] = None


class UserRead(BaseModel):
    """User as returned by read operations; never carries the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: UserRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InstanceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    user_id: Optional[int] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InstanceStats(InstanceRead):
    owner_name: Optional[str] = None
    chat_count: int = 0
    message_count: int = 0
    contact_count: int = 0


class ContactRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    push_name: Optional[str] = None
    profile_picture_url: Optional[str] = None
    owner: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChatRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    remote_jid: str
    participant: Optional[str] = None
    push_name: Optional[str] = None
    message_type: Optional[str] = None
    message_timestamp: Optional[int] = None
    owner: str
    source: Optional[str] = None
    content: Optional[str] = None
    status: Optional[str] = None
    media_type: Optional[str] = None
    media_filename: Optional[str] = None
    media_path: Optional[str] = None
    media_size: Optional[int] = None
    media_mimetype: Optional[str] = None
    media_caption: Optional[str] = None
    media_downloaded: bool = False
    created_at: Optional[datetime] = None
