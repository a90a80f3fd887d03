from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ..core.dependencies import get_db
from ..schemas.video import (
    AnalyticsSummary,
    CoinBalanceResponse,
    CoinCreditRequest,
    PromoteVideoRequest,
    PromoteVideoResponse,
    PromotionResponse,
    VideoCreate,
    VideoResponse,
)
from ..services.video_service import VideoService

router = APIRouter()


async def get_video_service(db: AsyncSession = Depends(get_db)) -> VideoService:
    """Dependency function that provides an instance of VideoService."""
    return VideoService(db)


@router.post("/videos", response_model=VideoResponse, status_code=201)
async def create_video(video_data: VideoCreate, service: VideoService = Depends(get_video_service)):
    return await service.create_video(video_data)


@router.get("/videos/{video_id}", response_model=VideoResponse)
async def get_video(video_id: int, service: VideoService = Depends(get_video_service)):
    return await service.get_video(video_id)


@router.get("/users/{user_id}/videos", response_model=List[VideoResponse])
async def get_user_videos(
    user_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=50),
    service: VideoService = Depends(get_video_service)
):
    return await service.get_user_videos(user_id, skip, limit)


@router.post("/videos/{video_id}/views")
async def record_view(video_id: int, service: VideoService = Depends(get_video_service)):
    view_count = await service.record_view(video_id)
    return {"video_id": video_id, "view_count": view_count}


@router.post("/videos/{video_id}/promote", response_model=PromoteVideoResponse)
async def promote_video(
    video_id: int,
    request: PromoteVideoRequest,
    service: VideoService = Depends(get_video_service)
):
    """
    **Promote Video**

    Spends the owner's coins to raise the video's feed boost by
    `coins / 100`.

    **Errors:**
    - 400 "Insufficient coins" when the balance is too low
    - 403 when the user doesn't own the video
    - 404 when the video doesn't exist
    """
    promotion, balance = await service.promote_video(request.user_id, video_id, request.coins)
    return {"promotion": promotion, "coin_balance": balance}


@router.get("/users/{user_id}/promotions", response_model=List[PromotionResponse])
async def get_promotion_history(
    user_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=50),
    service: VideoService = Depends(get_video_service)
):
    return await service.get_promotion_history(user_id, skip, limit)


@router.get("/users/{user_id}/coins", response_model=CoinBalanceResponse)
async def get_coin_balance(user_id: int, service: VideoService = Depends(get_video_service)):
    balance = await service.get_coin_balance(user_id)
    return {"user_id": user_id, "coin_balance": balance}


@router.post("/users/{user_id}/coins", response_model=CoinBalanceResponse)
async def credit_coins(
    user_id: int,
    request: CoinCreditRequest,
    service: VideoService = Depends(get_video_service)
):
    """Add coins to a balance (rewards, manual adjustments)"""
    balance = await service.credit_coins(user_id, request.amount)
    return {"user_id": user_id, "coin_balance": balance}


@router.get("/users/{user_id}/analytics", response_model=AnalyticsSummary)
async def get_analytics_summary(user_id: int, service: VideoService = Depends(get_video_service)):
    """
    **Creator Analytics**

    Coins spent on promotion against views gained, across the user's videos.
    """
    return await service.get_analytics_summary(user_id)
