from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class ProfileCreate(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50)
    full_name: str = Field(..., min_length=1)
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None


class ProfileResponse(BaseModel):
    id: int
    email: str
    username: str
    full_name: str
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None
    coin_balance: int
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileCreated(BaseModel):
    profile: ProfileResponse
    welcome_coupon_code: Optional[str] = None


class ProfileSummary(BaseModel):
    """Public part of a profile, shown next to comments and messages"""
    id: int
    username: str
    full_name: str
    profile_picture_url: Optional[str] = None

    class Config:
        from_attributes = True
