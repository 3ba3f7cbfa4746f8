"""Messaging schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ConversationCreate(BaseModel):
    organization_id: int
    participant_ids: list[int] = Field(..., min_length=1, max_length=50)
    subject: Optional[str] = Field(None, max_length=255)
    message: Optional[str] = Field(None, max_length=10000)


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v.strip()


class MuteUpdate(BaseModel):
    is_muted: bool


class ParticipantResponse(BaseModel):
    user_id: int
    full_name: Optional[str] = None
    email: str
    last_read_at: Optional[datetime] = None
    is_muted: bool


class MessageResponse(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationResponse(BaseModel):
    id: int
    organization_id: int
    subject: Optional[str] = None
    created_by: int
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    participants: list[ParticipantResponse] = []
    unread_count: int = 0
