from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class VideoCreate(BaseModel):
    user_id: int
    business_id: Optional[int] = None
    caption: Optional[str] = None
    video_url: str
    thumbnail_url: Optional[str] = None


class VideoResponse(BaseModel):
    id: int
    user_id: int
    business_id: Optional[int] = None
    caption: Optional[str] = None
    video_url: str
    thumbnail_url: Optional[str] = None
    view_count: int
    boost_value: float
    coins_spent_on_promotion: int
    last_promoted_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PromoteVideoRequest(BaseModel):
    user_id: int
    coins: int = Field(..., gt=0)


class PromotionResponse(BaseModel):
    id: int
    video_id: int
    coins_spent: int
    previous_boost: float
    new_boost: float
    created_at: datetime

    class Config:
        from_attributes = True


class PromoteVideoResponse(BaseModel):
    promotion: PromotionResponse
    coin_balance: int


class CoinBalanceResponse(BaseModel):
    user_id: int
    coin_balance: int


class CoinCreditRequest(BaseModel):
    amount: int = Field(..., gt=0)


class AnalyticsSummary(BaseModel):
    total_coins_spent: int
    total_views: int
    views_per_coin: float
    current_balance: int
    total_promotions: int
    total_videos_promoted: int
