from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from .profile import ProfileSummary


def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError('Message cannot be empty')
    return v


class DirectChatRequest(BaseModel):
    user_id: int
    other_user_id: int


class MessageCreate(BaseModel):
    sender_id: int
    content: str = Field(..., max_length=4000)
    reply_to: Optional[int] = None

    @field_validator('content')
    @classmethod
    def content_not_blank(cls, v):
        return _not_blank(v)


class MessageEdit(BaseModel):
    user_id: int
    content: str = Field(..., max_length=4000)

    @field_validator('content')
    @classmethod
    def content_not_blank(cls, v):
        return _not_blank(v)


class MarkReadRequest(BaseModel):
    user_id: int


class MessageResponse(BaseModel):
    id: int
    chat_id: int
    sender_id: int
    content: str
    reply_to: Optional[int] = None
    edited_at: Optional[datetime] = None
    deleted: bool = False
    created_at: datetime
    sender: Optional[ProfileSummary] = None

    class Config:
        from_attributes = True


class ChatMemberResponse(BaseModel):
    user_id: int
    role: str
    last_read: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ChatResponse(BaseModel):
    id: int
    is_group: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ChatSummary(ChatResponse):
    """A chat as listed in the inbox of one user"""
    members: List[ChatMemberResponse] = Field(default_factory=list)
    other_user: Optional[ProfileSummary] = None
    last_message: Optional[MessageResponse] = None
    unread_count: int = 0
