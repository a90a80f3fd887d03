import logging
from typing import Any, Dict, List

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..caching import MetricsCache, make_key
from ..models import Business, BusinessLocation, MenuItem, Profile, Review
from ..schemas.business import (
    BusinessCreate,
    BusinessUpdate,
    LocationCreate,
    MenuItemCreate,
    MenuItemUpdate,
    ReviewCreate,
)
from ..exceptions import ConflictException, ForbiddenException, NotFoundException
from ..utils.pricing import compute_average_price, compute_rounded_price_range

logger = logging.getLogger(__name__)

METRICS_NAMESPACE = "business-metrics"


class BusinessService:
    def __init__(self, db: AsyncSession, cache: MetricsCache):
        self.db = db
        self.cache = cache

    async def create_business(self, business_data: BusinessCreate) -> Business:
        """Register the business profile of a user (one per owner)"""
        owner = await self.db.get(Profile, business_data.owner_id)
        if not owner:
            raise NotFoundException("User not found")

        business = Business(**business_data.model_dump())
        self.db.add(business)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("This user already has a business profile")

        await self.db.refresh(business)
        return business

    async def get_business(self, business_id: int) -> Business:
        business = await self.db.get(Business, business_id)
        if not business:
            raise NotFoundException("Business not found")
        return business

    async def update_business(self, business_id: int, business_data: BusinessUpdate) -> Business:
        """Change the business info; only fields present in the request are touched"""
        business = await self.get_business(business_id)

        for field, value in business_data.model_dump(exclude_unset=True).items():
            setattr(business, field, value)

        await self.db.commit()
        await self.db.refresh(business)
        logger.info(f"Business {business_id} updated")
        return business

    # Locations

    async def get_locations(self, business_id: int) -> List[BusinessLocation]:
        await self.get_business(business_id)
        query = (
            select(BusinessLocation)
            .where(BusinessLocation.business_id == business_id)
            .order_by(BusinessLocation.created_at, BusinessLocation.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def add_location(self, business_id: int, location_data: LocationCreate) -> BusinessLocation:
        await self.get_business(business_id)

        location = BusinessLocation(business_id=business_id, **location_data.model_dump())
        self.db.add(location)
        await self.db.commit()
        await self.db.refresh(location)
        return location

    async def delete_location(self, business_id: int, location_id: int) -> None:
        location = await self.db.get(BusinessLocation, location_id)
        if not location or location.business_id != business_id:
            raise NotFoundException("Location not found")

        await self.db.delete(location)
        await self.db.commit()

    # Menu

    async def add_menu_item(self, business_id: int, item_data: MenuItemCreate) -> MenuItem:
        await self.get_business(business_id)

        item = MenuItem(business_id=business_id, **item_data.model_dump())
        self.db.add(item)
        await self.db.commit()
        await self.db.refresh(item)

        self.invalidate_metrics(business_id)
        return item

    async def get_menu_items(self, business_id: int, available_only: bool = True) -> List[MenuItem]:
        query = select(MenuItem).where(MenuItem.business_id == business_id)
        if available_only:
            query = query.where(MenuItem.is_available.is_(True))

        result = await self.db.execute(query.order_by(MenuItem.id))
        return list(result.scalars().all())

    async def get_menu_item(self, business_id: int, item_id: int) -> MenuItem:
        item = await self.db.get(MenuItem, item_id)
        if not item or item.business_id != business_id:
            raise NotFoundException("Menu item not found")
        return item

    async def update_menu_item(self, business_id: int, item_id: int, item_data: MenuItemUpdate) -> MenuItem:
        """Partial update; price and availability changes move the price range"""
        item = await self.get_menu_item(business_id, item_id)

        for field, value in item_data.model_dump(exclude_unset=True).items():
            setattr(item, field, value)

        await self.db.commit()
        await self.db.refresh(item)

        self.invalidate_metrics(business_id)
        return item

    async def delete_menu_item(self, business_id: int, item_id: int) -> None:
        item = await self.get_menu_item(business_id, item_id)

        await self.db.delete(item)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("This item has orders. Mark it unavailable instead")

        self.invalidate_metrics(business_id)

    # Reviews

    async def create_review(self, business_id: int, review_data: ReviewCreate) -> Review:
        """Create a review. Each user may review a business once."""
        business = await self.get_business(business_id)

        if business.owner_id == review_data.user_id:
            raise ForbiddenException("You can't review your own business")

        existing_query = select(Review).where(
            and_(Review.user_id == review_data.user_id, Review.business_id == business_id)
        )
        existing = (await self.db.execute(existing_query)).scalar_one_or_none()
        if existing:
            raise ConflictException("You have already reviewed this business")

        review = Review(
            business_id=business_id,
            user_id=review_data.user_id,
            rating=review_data.rating,
            title=review_data.title,
            comment=review_data.comment,
        )
        self.db.add(review)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException("You have already reviewed this business")

        await self.db.refresh(review)
        self.invalidate_metrics(business_id)
        return review

    async def get_reviews(self, business_id: int, skip: int = 0, limit: int = 20) -> List[Review]:
        query = (
            select(Review)
            .where(Review.business_id == business_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # Metrics

    def invalidate_metrics(self, business_id: int) -> None:
        removed = self.cache.invalidate_prefix(make_key(METRICS_NAMESPACE, business_id))
        logger.debug(f"Dropped {removed} cached metrics for business {business_id}")

    async def get_business_metrics(self, business_id: int) -> Dict[str, Any]:
        """
        Average rating, review count and display price range of a business.
        Served from the metrics cache until a review or menu change invalidates it.
        """
        key = make_key(METRICS_NAMESPACE, business_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        rating_query = select(
            func.avg(Review.rating),
            func.count(Review.id)
        ).where(Review.business_id == business_id)
        average_rating, total_reviews = (await self.db.execute(rating_query)).one()

        prices = [item.price for item in await self.get_menu_items(business_id)]
        price_range = compute_rounded_price_range(prices)

        metrics = {
            "business_id": business_id,
            "average_rating": round(float(average_rating), 2) if average_rating is not None else None,
            "total_reviews": total_reviews or 0,
            "price_range": None,
        }
        if price_range:
            metrics["price_range"] = {
                "min": price_range.min,
                "max": price_range.max,
                "average": compute_average_price(price_range),
            }

        self.cache.set(key, metrics)
        return metrics
