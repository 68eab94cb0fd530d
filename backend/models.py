# Pydantic models for stored documents and the WebSocket event payloads.
# Stored documents use the camelCase keys of the collections; the Python side
# uses snake_case attributes with aliases.
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(v: str) -> str:
    if not v.strip():
        raise ValueError('must not be blank')
    return v


NonBlank = Annotated[str, AfterValidator(_require_text)]


class MessageType(str, Enum):
    text = 'text'
    image = 'image'
    audio = 'audio'


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias='_id')
    room: str
    author: str
    content: str
    type: MessageType = MessageType.text
    created_at: datetime = Field(default_factory=utcnow, alias='createdAt')
    # persisted for clients, never flipped by the server
    delivered: bool = False

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, v):
        # ObjectId from the driver
        return None if v is None else str(v)

    def to_wire(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


class UserProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias='_id')
    name: str
    email: str
    avatar_url: Optional[str] = Field(default=None, alias='avatarUrl')
    bio: str = ''
    is_online: bool = Field(default=False, alias='isOnline')
    last_seen: datetime = Field(default_factory=utcnow, alias='lastSeen')
    email_verified: bool = Field(default=False, alias='emailVerified')
    created_at: datetime = Field(default_factory=utcnow, alias='createdAt')
    updated_at: datetime = Field(default_factory=utcnow, alias='updatedAt')

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, v):
        return None if v is None else str(v)

    def to_wire(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


class SendMessage(BaseModel):
    """Payload of the ``send_message`` event."""
    room: NonBlank
    author: NonBlank
    content: NonBlank
    type: MessageType = MessageType.text


class TypingPayload(BaseModel):
    room: NonBlank
    author: NonBlank


class StopTypingPayload(BaseModel):
    room: NonBlank


class StatusChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias='userId')
    status: Literal['online', 'offline']

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
