"""
Application Routes Module

Founders apply to opportunities; funders and admins review and move
applications through SUBMITTED, UNDER_REVIEW, ACCEPTED and REJECTED.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import crud, models, schemas
from ..db.session import get_db
from ..utils.logger import api_logger as logger
from .auth import get_current_user, require_role

router = APIRouter(tags=["Applications"])

REVIEWER_ROLES = ("FUNDER", "ADMIN")


@router.post("", response_model=schemas.ApplicationResponse, status_code=201)
async def create_application(
    application: schemas.ApplicationCreate,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit an application.

    Raises:
        HTTPException(404): unknown opportunity
        HTTPException(409): the caller already applied to it
    """
    if not await crud.get_opportunity(db, application.opportunity_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Opportunity not found")
    if await crud.get_user_application(db, user.id, application.opportunity_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail="You have already applied to this opportunity")

    created = await crud.create_application(db, user.id, application)
    logger.info(f"User {user.id} applied to opportunity {application.opportunity_id}")
    return created


@router.get("", response_model=List[schemas.ApplicationResponse])
async def list_my_applications(
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_applications_by_user(db, user.id)


@router.get("/opportunity/{opportunity_id}", response_model=List[schemas.ApplicationResponse])
async def list_opportunity_applications(
    opportunity_id: int,
    user: models.User = Depends(require_role(*REVIEWER_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_applications_by_opportunity(db, opportunity_id)


@router.get("/{application_id}", response_model=schemas.ApplicationResponse)
async def get_application(
    application_id: int,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    application = await crud.get_application(db, application_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    if application.user_id != user.id and user.role not in REVIEWER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return application


@router.put("/{application_id}/status", response_model=schemas.ApplicationResponse)
async def update_application_status(
    application_id: int,
    update: schemas.ApplicationStatusUpdate,
    user: models.User = Depends(require_role(*REVIEWER_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    application = await crud.get_application(db, application_id)
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    updated = await crud.update_application_status(db, application, update.status)
    logger.info(f"User {user.id} set application {application_id} to {update.status}")
    return updated
