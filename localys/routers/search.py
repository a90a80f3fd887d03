from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ..caching import MetricsCache
from ..core.dependencies import get_db, get_metrics_cache
from ..enums import BusinessCategory
from ..schemas.search import BusinessSearchResponse, SearchFilters, VideoSearchResponse
from ..services.search_service import SearchService

router = APIRouter(prefix="/search")


async def get_search_service(
    db: AsyncSession = Depends(get_db),
    cache: MetricsCache = Depends(get_metrics_cache)
) -> SearchService:
    return SearchService(db, cache)


def get_search_filters(
    q: Optional[str] = Query(None, description="Free text, expanded with related food terms"),
    category: Optional[BusinessCategory] = Query(None),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    max_distance: Optional[float] = Query(None, gt=0, description="Radius in km"),
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
) -> SearchFilters:
    return SearchFilters(
        query=q,
        category=category,
        min_rating=min_rating,
        max_distance=max_distance,
        price_min=price_min,
        price_max=price_max,
        latitude=lat,
        longitude=lng,
    )


@router.get("/videos", response_model=VideoSearchResponse)
async def search_videos(
    filters: SearchFilters = Depends(get_search_filters),
    service: SearchService = Depends(get_search_service)
):
    """
    **Search Videos**

    Matches captions against the query and its related terms ("pho" also finds
    "noodle", "vietnamese", "soup"), then applies the business filters and
    ranks by rating, recency, boost and views.

    Videos without a business don't survive a category, rating or price filter.
    """
    return await service.search_videos(filters)


@router.get("/businesses", response_model=BusinessSearchResponse)
async def search_businesses(
    filters: SearchFilters = Depends(get_search_filters),
    service: SearchService = Depends(get_search_service)
):
    """
    **Search Businesses**

    Matches business names against the expanded query, filters, and ranks by
    rating, review count and proximity. With `lat`/`lng` each result carries
    its distance and a driving ETA.
    """
    return await service.search_businesses(filters)
