from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import get_db
from ..schemas.profile import ProfileCreate, ProfileCreated, ProfileResponse
from ..services.profile_service import ProfileService

router = APIRouter(prefix="/profiles")


async def get_profile_service(db: AsyncSession = Depends(get_db)) -> ProfileService:
    return ProfileService(db)


@router.post("/", response_model=ProfileCreated, status_code=201)
async def create_profile(
    profile_data: ProfileCreate,
    service: ProfileService = Depends(get_profile_service)
):
    """
    **Create Profile**

    Registers a user and issues their one-time 20% welcome coupon.
    """
    profile, welcome = await service.create_profile(profile_data)
    return {"profile": profile, "welcome_coupon_code": welcome.coupon.code}


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(user_id: int, service: ProfileService = Depends(get_profile_service)):
    return await service.get_profile(user_id)
