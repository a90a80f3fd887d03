from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


class CouponBase(BaseModel):
    """Base schema for coupons"""
    code: str = Field(..., min_length=3, max_length=32)
    discount_percentage: float = Field(..., gt=0, le=100, description="Percentage taken off the price")
    expiry_date: Optional[datetime] = None
    max_uses: Optional[int] = Field(None, gt=0, description="Maximum number of times coupon can be used")

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v):
        """Codes are matched case-insensitively and stored upper-case"""
        return v.strip().upper()


class CouponCreate(CouponBase):
    """Schema for creating coupons"""
    is_active: bool = True


class CouponResponse(CouponBase):
    """Schema for coupon responses"""
    id: int
    is_active: bool
    used_count: int = 0
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UserCouponResponse(BaseModel):
    id: int
    user_id: int
    coupon_id: int
    is_used: bool
    used_at: Optional[datetime] = None
    created_at: datetime
    coupon: Optional[CouponResponse] = None

    class Config:
        from_attributes = True


class CouponValidateRequest(BaseModel):
    code: str
    user_id: int
