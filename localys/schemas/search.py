from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from ..enums import BusinessCategory


class SearchFilters(BaseModel):
    query: Optional[str] = None
    category: Optional[BusinessCategory] = None
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    max_distance: Optional[float] = Field(None, gt=0, description="Radius in km")
    price_min: Optional[float] = Field(None, ge=0)
    price_max: Optional[float] = Field(None, ge=0)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class BusinessResult(BaseModel):
    id: int
    business_name: str
    category: Optional[BusinessCategory] = None
    profile_picture_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    average_rating: Optional[float] = None
    total_reviews: int = 0
    price_range_min: Optional[float] = None
    price_range_max: Optional[float] = None
    distance_km: Optional[float] = None
    eta_minutes: Optional[int] = None


class VideoResult(BaseModel):
    id: int
    user_id: int
    caption: Optional[str] = None
    video_url: str
    thumbnail_url: Optional[str] = None
    view_count: int = 0
    boost_value: float = 1.0
    created_at: datetime
    business: Optional[BusinessResult] = None


class VideoSearchResponse(BaseModel):
    terms: List[str] = Field(default_factory=list)
    results: List[VideoResult] = Field(default_factory=list)


class BusinessSearchResponse(BaseModel):
    terms: List[str] = Field(default_factory=list)
    results: List[BusinessResult] = Field(default_factory=list)
