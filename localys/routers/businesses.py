from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ..caching import MetricsCache
from ..core.dependencies import get_db, get_metrics_cache
from ..schemas.business import (
    BusinessCreate,
    BusinessMetrics,
    BusinessResponse,
    BusinessUpdate,
    LocationCreate,
    LocationResponse,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    ReviewCreate,
    ReviewResponse,
)
from ..services.business_service import BusinessService

router = APIRouter(prefix="/businesses")


async def get_business_service(
    db: AsyncSession = Depends(get_db),
    cache: MetricsCache = Depends(get_metrics_cache)
) -> BusinessService:
    """Dependency function that provides an instance of BusinessService."""
    return BusinessService(db, cache)


@router.post("/", response_model=BusinessResponse, status_code=201)
async def create_business(
    business_data: BusinessCreate,
    service: BusinessService = Depends(get_business_service)
):
    """
    **Create Business Profile**

    One business per owner; a second one gets 409.
    """
    return await service.create_business(business_data)


@router.get("/{business_id}", response_model=BusinessResponse)
async def get_business(business_id: int, service: BusinessService = Depends(get_business_service)):
    return await service.get_business(business_id)


@router.patch("/{business_id}", response_model=BusinessResponse)
async def update_business(
    business_id: int,
    business_data: BusinessUpdate,
    service: BusinessService = Depends(get_business_service)
):
    """
    **Update Business Info**

    Partial update. Fields left out of the body keep their current values.
    """
    return await service.update_business(business_id, business_data)


@router.get("/{business_id}/metrics", response_model=BusinessMetrics)
async def get_business_metrics(business_id: int, service: BusinessService = Depends(get_business_service)):
    """
    **Get Business Metrics**

    Average rating, review count and display price range ("$min - $max")
    derived from the available menu items.
    """
    await service.get_business(business_id)
    return await service.get_business_metrics(business_id)


# Locations

@router.get("/{business_id}/locations", response_model=List[LocationResponse])
async def get_locations(business_id: int, service: BusinessService = Depends(get_business_service)):
    """Branch locations of a business, oldest first"""
    return await service.get_locations(business_id)


@router.post("/{business_id}/locations", response_model=LocationResponse, status_code=201)
async def add_location(
    business_id: int,
    location_data: LocationCreate,
    service: BusinessService = Depends(get_business_service)
):
    """
    **Add Location**

    **Request Body:**
    - **label**: display name of the branch
    - **latitude**: -90 to 90
    - **longitude**: -180 to 180
    """
    return await service.add_location(business_id, location_data)


@router.delete("/{business_id}/locations/{location_id}", status_code=204)
async def delete_location(
    business_id: int,
    location_id: int,
    service: BusinessService = Depends(get_business_service)
):
    await service.delete_location(business_id, location_id)


# Menu

@router.get("/{business_id}/menu", response_model=List[MenuItemResponse])
async def get_menu(
    business_id: int,
    include_unavailable: bool = Query(False),
    service: BusinessService = Depends(get_business_service)
):
    return await service.get_menu_items(business_id, available_only=not include_unavailable)


@router.post("/{business_id}/menu", response_model=MenuItemResponse, status_code=201)
async def add_menu_item(
    business_id: int,
    item_data: MenuItemCreate,
    service: BusinessService = Depends(get_business_service)
):
    return await service.add_menu_item(business_id, item_data)


@router.patch("/{business_id}/menu/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    business_id: int,
    item_id: int,
    item_data: MenuItemUpdate,
    service: BusinessService = Depends(get_business_service)
):
    """
    **Update Menu Item**

    Partial update of name, description, price, category, image or
    availability. Unavailable items leave the price range.
    """
    return await service.update_menu_item(business_id, item_id, item_data)


@router.delete("/{business_id}/menu/{item_id}")
async def delete_menu_item(
    business_id: int,
    item_id: int,
    service: BusinessService = Depends(get_business_service)
):
    await service.delete_menu_item(business_id, item_id)
    return {"message": f"Menu item {item_id} deleted successfully"}


# Reviews

@router.post("/{business_id}/reviews", response_model=ReviewResponse, status_code=201)
async def create_review(
    business_id: int,
    review_data: ReviewCreate,
    service: BusinessService = Depends(get_business_service)
):
    """
    **Create Review**

    **Request Body:**
    - **user_id**: reviewer
    - **rating**: 1-5 stars (required)
    - **title**, **comment**: optional

    Users can review a business once (409 on a second review).
    """
    return await service.create_review(business_id, review_data)


@router.get("/{business_id}/reviews", response_model=List[ReviewResponse])
async def get_reviews(
    business_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=50),
    service: BusinessService = Depends(get_business_service)
):
    return await service.get_reviews(business_id, skip, limit)
