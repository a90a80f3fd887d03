import logging
import secrets
import string
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from ..models import Coupon, UserCoupon
from ..schemas.coupon import CouponCreate
from ..exceptions import BadRequestException, ConflictException, ForbiddenException, NotFoundException

logger = logging.getLogger(__name__)

WELCOME_PREFIX = "WELCOME"
WELCOME_DISCOUNT = 20
WELCOME_SUFFIX_LENGTH = 6


def normalize_code(code: str) -> str:
    return code.strip().upper()


def apply_discount(price: float, discount_percentage: float) -> float:
    """Price after a percentage discount, rounded to cents."""
    discounted = price - round(price * discount_percentage / 100, 2)
    return max(0.0, round(discounted, 2))


class CouponService:
    async def get_coupon_by_code(self, code: str, db: AsyncSession) -> Optional[Coupon]:
        query = select(Coupon).where(Coupon.code == normalize_code(code))
        result = await db.execute(query)
        return result.scalars().first()

    def check_usable(self, coupon: Optional[Coupon]) -> Coupon:
        """Raise if the coupon can't be applied right now"""
        if not coupon or not coupon.is_active:
            raise NotFoundException("Coupon not found or expired")

        if coupon.expiry_date and coupon.expiry_date < datetime.utcnow():
            raise BadRequestException("Coupon has expired")

        if coupon.max_uses is not None and coupon.used_count >= coupon.max_uses:
            raise BadRequestException("Coupon has reached maximum uses")

        return coupon

    async def is_assigned(self, coupon: Coupon, db: AsyncSession) -> bool:
        """Whether the coupon is handed out per user (welcome coupons)"""
        query = select(UserCoupon.id).where(UserCoupon.coupon_id == coupon.id).limit(1)
        result = await db.execute(query)
        return result.first() is not None

    async def get_checkout_coupon(
        self,
        code: str,
        buyer_id: int,
        seller_ids: Iterable[int],
        db: AsyncSession
    ) -> Tuple[Coupon, bool]:
        """
        Resolve a coupon for an item checkout.

        Assigned coupons need an unused assignment to the buyer. Shop coupons
        only cover that shop's items, global coupons cover any item.
        Returns the coupon and whether it is an assigned one.
        """
        coupon = self.check_usable(await self.get_coupon_by_code(code, db))

        if await self.is_assigned(coupon, db):
            await self.validate_coupon(code, buyer_id, db)
            return coupon, True

        if coupon.created_by is not None and any(seller_id != coupon.created_by for seller_id in seller_ids):
            raise ForbiddenException("Coupon is not valid for this shop")

        return coupon, False

    async def validate_coupon(self, code: str, user_id: int, db: AsyncSession) -> Coupon:
        """Validate a coupon that must be assigned to the user (coin packages)"""
        coupon = self.check_usable(await self.get_coupon_by_code(code, db))

        query = select(UserCoupon).where(
            and_(
                UserCoupon.user_id == user_id,
                UserCoupon.coupon_id == coupon.id
            )
        )
        result = await db.execute(query)
        user_coupon = result.scalars().first()

        if not user_coupon:
            raise ForbiddenException("You do not have access to this coupon")

        if user_coupon.is_used:
            raise BadRequestException("You have already used this coupon")

        return coupon

    async def redeem_coupon(self, coupon: Coupon, db: AsyncSession) -> None:
        """
        Count one use of the coupon.

        The increment is a single conditional UPDATE so two checkouts racing for
        the last use cannot both get it. Does not commit.
        """
        stmt = (
            update(Coupon)
            .where(
                and_(
                    Coupon.id == coupon.id,
                    Coupon.is_active.is_(True),
                    or_(Coupon.max_uses.is_(None), Coupon.used_count < Coupon.max_uses)
                )
            )
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)

        if result.rowcount == 0:
            raise BadRequestException("Coupon has reached maximum uses")

        await db.refresh(coupon)

    async def use_user_coupon(self, code: str, user_id: int, db: AsyncSession) -> UserCoupon:
        """Mark the user's copy of a coupon used and count the use"""
        coupon = await self.validate_coupon(code, user_id, db)

        stmt = (
            update(UserCoupon)
            .where(
                and_(
                    UserCoupon.user_id == user_id,
                    UserCoupon.coupon_id == coupon.id,
                    UserCoupon.is_used.is_(False)
                )
            )
            .values(is_used=True, used_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:
            raise BadRequestException("You have already used this coupon")

        await self.redeem_coupon(coupon, db)

        query = select(UserCoupon).where(
            and_(UserCoupon.user_id == user_id, UserCoupon.coupon_id == coupon.id)
        )
        user_coupon = (await db.execute(query)).scalars().first()
        await db.refresh(user_coupon, attribute_names=["is_used", "used_at"])
        return user_coupon

    async def create_coupon(self, seller_id: Optional[int], coupon_data: CouponCreate, db: AsyncSession) -> Coupon:
        """Create a shop coupon (seller_id) or a global one (None)"""
        coupon = Coupon(
            code=coupon_data.code,
            discount_percentage=coupon_data.discount_percentage,
            expiry_date=coupon_data.expiry_date,
            max_uses=coupon_data.max_uses,
            is_active=coupon_data.is_active,
            created_by=seller_id,
        )
        db.add(coupon)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictException(f"Coupon code {coupon_data.code} already exists")

        await db.refresh(coupon)
        return coupon

    async def create_welcome_coupon(self, user_id: int, db: AsyncSession) -> UserCoupon:
        """Give a new user a personal 20% coupon"""
        alphabet = string.ascii_uppercase + string.digits
        suffix = "".join(secrets.choice(alphabet) for _ in range(WELCOME_SUFFIX_LENGTH))

        coupon = Coupon(
            code=f"{WELCOME_PREFIX}{suffix}",
            discount_percentage=WELCOME_DISCOUNT,
            created_by=user_id,
        )
        db.add(coupon)
        await db.flush()

        user_coupon = UserCoupon(user_id=user_id, coupon=coupon)
        db.add(user_coupon)
        await db.commit()

        logger.info(f"Welcome coupon {coupon.code} created for user {user_id}")
        return user_coupon

    async def get_user_coupons(self, user_id: int, db: AsyncSession) -> List[UserCoupon]:
        """Unused coupons assigned to a user"""
        query = (
            select(UserCoupon)
            .where(
                and_(
                    UserCoupon.user_id == user_id,
                    UserCoupon.is_used.is_(False)
                )
            )
            .order_by(UserCoupon.created_at.desc())
        )
        result = await db.execute(query)
        return list(result.scalars().unique().all())

    async def get_shop_coupons(self, seller_id: int, db: AsyncSession) -> List[Coupon]:
        """Active coupons of a shop plus global ones, minus expired and used-up"""
        now = datetime.utcnow()
        query = (
            select(Coupon)
            .where(
                and_(
                    Coupon.is_active.is_(True),
                    or_(Coupon.created_by == seller_id, Coupon.created_by.is_(None)),
                    or_(Coupon.expiry_date.is_(None), Coupon.expiry_date >= now),
                    or_(Coupon.max_uses.is_(None), Coupon.used_count < Coupon.max_uses)
                )
            )
            .order_by(Coupon.created_at.desc())
        )
        result = await db.execute(query)
        return list(result.scalars().all())
