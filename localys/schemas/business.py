from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any
from datetime import datetime

from ..enums import BusinessCategory


class BusinessCreate(BaseModel):
    owner_id: int
    business_name: str = Field(..., min_length=1, max_length=200)
    category: Optional[BusinessCategory] = None
    business_type: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    profile_picture_url: Optional[str] = None
    business_hours: Optional[Dict[str, Any]] = None


class BusinessUpdate(BaseModel):
    business_name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[BusinessCategory] = None
    business_type: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    profile_picture_url: Optional[str] = None
    business_hours: Optional[Dict[str, Any]] = None

    @field_validator('business_name')
    @classmethod
    def name_not_null(cls, v):
        if v is None:
            raise ValueError('Business name cannot be removed')
        return v


class BusinessResponse(BaseModel):
    id: int
    owner_id: int
    business_name: str
    category: Optional[BusinessCategory] = None
    business_type: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    profile_picture_url: Optional[str] = None
    business_hours: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LocationCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=100)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class LocationResponse(LocationCreate):
    id: int
    business_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class MenuItemCreate(BaseModel):
    item_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    category: Optional[str] = None
    image_url: Optional[str] = None


class MenuItemUpdate(BaseModel):
    item_name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None

    @field_validator('item_name', 'price', 'is_available')
    @classmethod
    def required_not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class MenuItemResponse(MenuItemCreate):
    id: int
    business_id: int
    is_available: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PriceRangeResponse(BaseModel):
    min: float
    max: float
    average: Optional[int] = None


class BusinessMetrics(BaseModel):
    """Derived, cached per-business numbers used by search"""
    business_id: int
    average_rating: Optional[float] = None
    total_reviews: int = 0
    price_range: Optional[PriceRangeResponse] = None


class ReviewBase(BaseModel):
    rating: float
    title: Optional[str] = None
    comment: Optional[str] = None

    @field_validator('rating')
    @classmethod
    def validate_rating(cls, v):
        """Validate rating is between 1 and 5"""
        if not 1 <= v <= 5:
            raise ValueError('Rating must be between 1 and 5')
        return v


class ReviewCreate(ReviewBase):
    user_id: int


class ReviewResponse(ReviewBase):
    id: int
    business_id: int
    user_id: int
    created_at: datetime

    class Config:
        from_attributes = True
