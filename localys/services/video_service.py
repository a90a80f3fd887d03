import logging
from datetime import datetime
from typing import Any, Dict, List, Tuple

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Business, Profile, PromotionHistory, Video
from ..schemas.video import VideoCreate
from ..exceptions import BadRequestException, ForbiddenException, NotFoundException

logger = logging.getLogger(__name__)

COINS_PER_BOOST_POINT = 100


class VideoService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_video(self, video_data: VideoCreate) -> Video:
        if not await self.db.get(Profile, video_data.user_id):
            raise NotFoundException("User not found")

        if video_data.business_id is not None and not await self.db.get(Business, video_data.business_id):
            raise NotFoundException("Business not found")

        video = Video(**video_data.model_dump())
        self.db.add(video)
        await self.db.commit()
        await self.db.refresh(video)
        return video

    async def get_video(self, video_id: int) -> Video:
        video = await self.db.get(Video, video_id)
        if not video:
            raise NotFoundException("Video not found")
        return video

    async def get_user_videos(self, user_id: int, skip: int = 0, limit: int = 20) -> List[Video]:
        query = (
            select(Video)
            .where(Video.user_id == user_id)
            .order_by(Video.created_at.desc(), Video.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def record_view(self, video_id: int) -> int:
        """Count one view and return the new total"""
        stmt = (
            update(Video)
            .where(Video.id == video_id)
            .values(view_count=Video.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundException("Video not found")

        await self.db.commit()
        video = await self.get_video(video_id)
        await self.db.refresh(video)
        return video.view_count

    async def promote_video(self, user_id: int, video_id: int, coins: int) -> Tuple[PromotionHistory, int]:
        """
        Spend coins on a video's feed boost.

        The balance debit is conditional on ``coin_balance >= coins`` in the same
        statement, so concurrent promotions can't overdraw. Returns the history
        row and the remaining balance.
        """
        if coins <= 0:
            raise BadRequestException("Coins must be a positive amount")

        video = await self.get_video(video_id)
        if video.user_id != user_id:
            raise ForbiddenException("You can only promote your own videos")

        debit = (
            update(Profile)
            .where(
                and_(
                    Profile.id == user_id,
                    Profile.coin_balance >= coins
                )
            )
            .values(coin_balance=Profile.coin_balance - coins)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(debit)
        if result.rowcount == 0:
            await self.db.rollback()
            raise BadRequestException("Insufficient coins")

        previous_boost = video.boost_value
        boost_increase = coins / COINS_PER_BOOST_POINT

        bump = (
            update(Video)
            .where(Video.id == video_id)
            .values(
                boost_value=Video.boost_value + boost_increase,
                coins_spent_on_promotion=Video.coins_spent_on_promotion + coins,
                last_promoted_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(bump)

        promotion = PromotionHistory(
            user_id=user_id,
            video_id=video_id,
            coins_spent=coins,
            previous_boost=previous_boost,
            new_boost=previous_boost + boost_increase,
        )
        self.db.add(promotion)
        await self.db.commit()

        await self.db.refresh(promotion)
        await self.db.refresh(video)
        balance = await self.get_coin_balance(user_id)

        logger.info(f"User {user_id} spent {coins} coins on video {video_id}, boost {previous_boost} -> {video.boost_value}")
        return promotion, balance

    async def get_promotion_history(self, user_id: int, skip: int = 0, limit: int = 20) -> List[PromotionHistory]:
        query = (
            select(PromotionHistory)
            .where(PromotionHistory.user_id == user_id)
            .order_by(PromotionHistory.created_at.desc(), PromotionHistory.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # Coins

    async def get_coin_balance(self, user_id: int) -> int:
        query = select(Profile.coin_balance).where(Profile.id == user_id)
        balance = (await self.db.execute(query)).scalar_one_or_none()
        if balance is None:
            raise NotFoundException("User not found")
        return balance

    async def credit_coins(self, user_id: int, amount: int) -> int:
        if amount <= 0:
            raise BadRequestException("Amount must be positive")

        stmt = (
            update(Profile)
            .where(Profile.id == user_id)
            .values(coin_balance=Profile.coin_balance + amount)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundException("User not found")

        await self.db.commit()
        return await self.get_coin_balance(user_id)

    async def get_analytics_summary(self, user_id: int) -> Dict[str, Any]:
        """Promotion spend against views across a creator's videos"""
        balance = await self.get_coin_balance(user_id)

        totals_query = select(
            func.coalesce(func.sum(Video.coins_spent_on_promotion), 0),
            func.coalesce(func.sum(Video.view_count), 0)
        ).where(Video.user_id == user_id)
        total_coins_spent, total_views = (await self.db.execute(totals_query)).one()

        promotions_query = select(
            func.count(PromotionHistory.id),
            func.count(func.distinct(PromotionHistory.video_id))
        ).where(PromotionHistory.user_id == user_id)
        total_promotions, total_videos_promoted = (await self.db.execute(promotions_query)).one()

        views_per_coin = round(total_views / total_coins_spent, 1) if total_coins_spent > 0 else 0.0

        return {
            "total_coins_spent": int(total_coins_spent),
            "total_views": int(total_views),
            "views_per_coin": views_per_coin,
            "current_balance": balance,
            "total_promotions": total_promotions,
            "total_videos_promoted": total_videos_promoted,
        }
