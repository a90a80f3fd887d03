from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ..core.dependencies import get_db
from ..schemas.coupon import CouponCreate, CouponResponse, CouponValidateRequest, UserCouponResponse
from ..services.coupon_service import CouponService

router = APIRouter(prefix="/coupons")

coupon_service = CouponService()


@router.post("/shop/{seller_id}", response_model=CouponResponse, status_code=201)
async def create_shop_coupon(
    seller_id: int,
    coupon_data: CouponCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    **Create Shop Coupon**

    Creates a percentage coupon usable on the seller's items.

    **Request Body:**
    - **code**: coupon code, stored upper-case (required)
    - **discount_percentage**: 0 < pct <= 100 (required)
    - **expiry_date**: optional expiry
    - **max_uses**: optional usage cap
    """
    return await coupon_service.create_coupon(seller_id, coupon_data, db)


@router.get("/shop/{seller_id}", response_model=List[CouponResponse])
async def get_shop_coupons(seller_id: int, db: AsyncSession = Depends(get_db)):
    """Coupons currently usable at a shop, including global ones"""
    return await coupon_service.get_shop_coupons(seller_id, db)


@router.get("/user/{user_id}", response_model=List[UserCouponResponse])
async def get_user_coupons(user_id: int, db: AsyncSession = Depends(get_db)):
    """Unused coupons assigned to a user"""
    return await coupon_service.get_user_coupons(user_id, db)


@router.post("/user/{user_id}/welcome", response_model=UserCouponResponse, status_code=201)
async def create_welcome_coupon(user_id: int, db: AsyncSession = Depends(get_db)):
    """Issue the 20% welcome coupon to a new user"""
    return await coupon_service.create_welcome_coupon(user_id, db)


@router.post("/validate", response_model=CouponResponse)
async def validate_coupon(request: CouponValidateRequest, db: AsyncSession = Depends(get_db)):
    """
    **Validate Coupon**

    Checks that a coupon assigned to the user can still be used, without
    consuming it.
    """
    return await coupon_service.validate_coupon(request.code, request.user_id, db)
