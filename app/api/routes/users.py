from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.db import get_session
from app.models.user import User, UserProfile, UserProfileUpdate
from app.services.user_service import profile_of, update_profile

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/profile", response_model=UserProfile)
async def read_profile(current_user: User = Depends(get_current_user)) -> UserProfile:
    return profile_of(current_user)


@router.patch("/me/profile", response_model=UserProfile)
async def edit_profile(
    body: UserProfileUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UserProfile:
    user = await update_profile(session, current_user, body)
    await session.commit()
    return profile_of(user)
