from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from .profile import ProfileSummary


class UserAction(BaseModel):
    """Body of like and bookmark requests"""
    user_id: int


class LikeStatus(BaseModel):
    like_count: int
    liked: bool = False


class BookmarkStatus(BaseModel):
    video_id: int
    bookmarked: bool


class CommentCreate(BaseModel):
    user_id: int
    content: str = Field(..., max_length=2000)
    rating: Optional[int] = Field(None, ge=1, le=5)
    image_url: Optional[str] = None
    parent_id: Optional[int] = None

    @field_validator('content')
    @classmethod
    def strip_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Comment cannot be empty')
        return v


class CommentResponse(BaseModel):
    id: int
    video_id: int
    user_id: int
    parent_id: Optional[int] = None
    content: str
    rating: Optional[int] = None
    image_url: Optional[str] = None
    created_at: datetime
    user: Optional[ProfileSummary] = None
    like_count: int = 0
    is_liked: bool = False
    reply_count: int = 0

    class Config:
        from_attributes = True
