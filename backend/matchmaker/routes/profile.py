"""
Profile Routes Module

Lets the authenticated user update the profile fields that drive discovery
and submit the onboarding questionnaire.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import crud, models, schemas
from ..db.session import get_db
from .auth import get_current_user

router = APIRouter(tags=["Profile"])
onboarding_router = APIRouter(tags=["Onboarding"])


@router.put("", response_model=schemas.UserResponse)
async def update_profile(
    profile: schemas.ProfileUpdate,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Apply the supplied fields and mark the profile as completed."""
    return await crud.update_user_profile(db, user, profile)


@onboarding_router.post("/complete")
async def complete_onboarding(
    request: schemas.OnboardingRequest,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await crud.complete_onboarding(db, user, request.responses)
    return {
        "message": "Onboarding completed successfully",
        "user": schemas.UserResponse.model_validate(user),
    }
