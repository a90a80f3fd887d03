import logging
from typing import Tuple

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Profile, UserCoupon
from ..schemas.profile import ProfileCreate
from ..services.coupon_service import CouponService
from ..exceptions import ConflictException, NotFoundException

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.coupon_service = CouponService()

    async def create_profile(self, profile_data: ProfileCreate) -> Tuple[Profile, UserCoupon]:
        """Create a profile and give it a welcome coupon"""
        query = select(Profile).where(
            or_(Profile.email == profile_data.email, Profile.username == profile_data.username)
        )
        existing = (await self.db.execute(query)).scalars().first()
        if existing:
            if existing.email == profile_data.email:
                raise ConflictException("User with this email exists!")
            raise ConflictException("The username is already taken!")

        profile = Profile(**profile_data.model_dump())
        self.db.add(profile)
        await self.db.commit()
        await self.db.refresh(profile)

        welcome = await self.coupon_service.create_welcome_coupon(profile.id, self.db)
        logger.info(f"Profile {profile.id} created")
        return profile, welcome

    async def get_profile(self, user_id: int) -> Profile:
        profile = await self.db.get(Profile, user_id)
        if not profile:
            raise NotFoundException("User not found")
        return profile
