import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..caching import MetricsCache
from ..models import Business, Video
from ..schemas.search import SearchFilters
from ..services.business_service import BusinessService
from ..utils.geo import estimate_eta_minutes
from ..utils.search import (
    LIKE_ESCAPE,
    business_distance,
    contains_pattern,
    expand_search_query,
    filter_businesses,
    filter_videos,
    rank_business_results,
    rank_video_results,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


class SearchService:
    """Text search over videos and businesses, then filtering and ranking in memory."""

    def __init__(self, db: AsyncSession, cache: MetricsCache):
        self.db = db
        self.business_service = BusinessService(db, cache)

    async def search_videos(self, filters: SearchFilters) -> Dict[str, Any]:
        terms = expand_search_query(filters.query) if filters.query else []

        query = (
            select(Video)
            .options(selectinload(Video.business).selectinload(Business.locations))
            .order_by(Video.created_at.desc(), Video.id.desc())
            .limit(SEARCH_LIMIT)
        )
        if terms:
            matches = [Video.caption.ilike(contains_pattern(term), escape=LIKE_ESCAPE) for term in terms]
            query = query.where(or_(*matches))

        videos = (await self.db.execute(query)).scalars().all()

        candidates = []
        for video in videos:
            business = await self._business_dict(video.business) if video.business else None
            candidates.append({
                "id": video.id,
                "user_id": video.user_id,
                "caption": video.caption,
                "video_url": video.video_url,
                "thumbnail_url": video.thumbnail_url,
                "view_count": video.view_count or 0,
                "boost_value": video.boost_value if video.boost_value is not None else 1.0,
                "created_at": video.created_at,
                "business": business,
            })

        results = rank_video_results(filter_videos(candidates, filters))
        for result in results:
            if result["business"]:
                self._add_travel(result["business"], filters)

        logger.debug(f"Video search {terms} matched {len(videos)}, kept {len(results)}")
        return {"terms": terms, "results": results}

    async def search_businesses(self, filters: SearchFilters) -> Dict[str, Any]:
        terms = expand_search_query(filters.query) if filters.query else []

        query = (
            select(Business)
            .options(selectinload(Business.locations))
            .order_by(Business.created_at.desc(), Business.id.desc())
            .limit(SEARCH_LIMIT)
        )
        if terms:
            matches = [Business.business_name.ilike(contains_pattern(term), escape=LIKE_ESCAPE) for term in terms]
            query = query.where(or_(*matches))

        businesses = (await self.db.execute(query)).scalars().all()
        candidates = [await self._business_dict(business) for business in businesses]

        results = rank_business_results(filter_businesses(candidates, filters), filters)
        for result in results:
            self._add_travel(result, filters)

        logger.debug(f"Business search {terms} matched {len(businesses)}, kept {len(results)}")
        return {"terms": terms, "results": results}

    async def _business_dict(self, business: Business) -> Dict[str, Any]:
        metrics = await self.business_service.get_business_metrics(business.id)
        price_range = metrics.get("price_range") or {}

        return {
            "id": business.id,
            "business_name": business.business_name,
            "category": business.category.value if business.category else None,
            "profile_picture_url": business.profile_picture_url,
            "latitude": business.latitude,
            "longitude": business.longitude,
            "locations": [
                {"latitude": loc.latitude, "longitude": loc.longitude}
                for loc in business.locations
            ],
            "average_rating": metrics.get("average_rating"),
            "total_reviews": metrics.get("total_reviews", 0),
            "price_range_min": price_range.get("min"),
            "price_range_max": price_range.get("max"),
        }

    @staticmethod
    def _add_travel(business: Dict[str, Any], filters: SearchFilters) -> None:
        if filters.latitude is None or filters.longitude is None:
            return

        dist: Optional[float] = business_distance(business, filters.latitude, filters.longitude)
        if dist is None:
            return
        business["distance_km"] = round(dist, 2)
        business["eta_minutes"] = estimate_eta_minutes(dist)
