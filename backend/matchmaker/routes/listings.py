"""
Listing Routes Module

This module handles the browsable catalogue: startups, opportunities and
events, saved opportunities, cross-listing search and platform stats.

Key Features:
- Filtered listings with pagination
- Role-guarded creation
- Saved opportunity bookmarks
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import crud, models, schemas
from ..db.session import get_db
from ..utils.logger import api_logger as logger
from .auth import get_current_user, require_role

router = APIRouter(tags=["Listings"])


# Startups
@router.get("/startups", response_model=List[schemas.StartupResponse])
async def list_startups(
    sector: Optional[str] = None,
    location: Optional[str] = None,
    stage: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_startups(db, sector=sector, location=location, stage=stage,
                                   search=search, skip=skip, limit=limit)


@router.get("/startups/{startup_id}", response_model=schemas.StartupResponse)
async def get_startup(startup_id: int, db: AsyncSession = Depends(get_db)):
    startup = await crud.get_startup(db, startup_id)
    if not startup:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Startup not found")
    return startup


@router.post("/startups", response_model=schemas.StartupResponse, status_code=201)
async def create_startup(
    startup: schemas.StartupBase,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a startup owned by the caller."""
    data = startup.model_dump()
    data["owner_user_id"] = user.id
    created = await crud.create_startup(db, data)
    logger.info(f"User {user.id} created startup {created.id}")
    return created


# Opportunities
@router.get("/opportunities", response_model=List[schemas.OpportunityResponse])
async def list_opportunities(
    type: Optional[str] = None,
    sector: Optional[str] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_opportunities(db, type=type, sector=sector, location=location,
                                        search=search, skip=skip, limit=limit)


@router.get("/opportunities/my")
async def my_opportunities(
    user: models.User = Depends(require_role("FUNDER", "ADMIN", "ECOSYSTEM_BUILDER")),
    db: AsyncSession = Depends(get_db)
):
    """Opportunities created by the caller, newest first."""
    opportunities = await crud.get_opportunities(db, creator_user_id=user.id, limit=100)
    return {"opportunities": [schemas.OpportunityResponse.model_validate(o) for o in opportunities]}


@router.get("/opportunities/{opportunity_id}", response_model=schemas.OpportunityResponse)
async def get_opportunity(opportunity_id: int, db: AsyncSession = Depends(get_db)):
    opportunity = await crud.get_opportunity(db, opportunity_id)
    if not opportunity:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Opportunity not found")
    return opportunity


@router.post("/opportunities", response_model=schemas.OpportunityResponse, status_code=201)
async def create_opportunity(
    opportunity: schemas.OpportunityBase,
    user: models.User = Depends(require_role("FUNDER", "ADMIN", "ECOSYSTEM_BUILDER")),
    db: AsyncSession = Depends(get_db)
):
    data = opportunity.model_dump()
    data["creator_user_id"] = user.id
    created = await crud.create_opportunity(db, data)
    logger.info(f"User {user.id} created opportunity {created.id}")
    return created


@router.post("/opportunities/{opportunity_id}/save")
async def save_opportunity(
    opportunity_id: int,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not await crud.get_opportunity(db, opportunity_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Opportunity not found")
    await crud.save_opportunity(db, user.id, opportunity_id)
    return {"message": "Opportunity saved"}


@router.delete("/opportunities/{opportunity_id}/save")
async def unsave_opportunity(
    opportunity_id: int,
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    removed = await crud.unsave_opportunity(db, user.id, opportunity_id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Saved opportunity not found")
    return {"message": "Opportunity removed from saved"}


@router.get("/saved-opportunities", response_model=List[schemas.OpportunityResponse])
async def list_saved_opportunities(
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_saved_opportunities(db, user.id)


# Events
@router.get("/events", response_model=List[schemas.EventResponse])
async def list_events(
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db)
):
    return await crud.get_events(db, search=search, skip=skip, limit=limit)


@router.post("/events", response_model=schemas.EventResponse, status_code=201)
async def create_event(
    event: schemas.EventBase,
    user: models.User = Depends(require_role("ECOSYSTEM_BUILDER", "ADMIN")),
    db: AsyncSession = Depends(get_db)
):
    data = event.model_dump()
    data["creator_user_id"] = user.id
    return await crud.create_event(db, data)


# Caller's own listings
@router.get("/listings/my")
async def my_listings(
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Startups the caller owns and the opportunities and events they created."""
    startups = await crud.get_startups(db, owner_user_id=user.id, limit=100)
    opportunities = await crud.get_opportunities(db, creator_user_id=user.id, limit=100)
    events = await crud.get_events(db, creator_user_id=user.id, limit=100)
    return {
        "startups": [schemas.StartupResponse.model_validate(s) for s in startups],
        "opportunities": [schemas.OpportunityResponse.model_validate(o) for o in opportunities],
        "events": [schemas.EventResponse.model_validate(e) for e in events],
    }


# Search and stats
@router.get("/search")
async def search(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Substring search over startup and opportunity names and descriptions."""
    found = await crud.search_all(db, q, limit=limit)
    return {
        "startups": [schemas.StartupResponse.model_validate(s) for s in found["startups"]],
        "opportunities": [schemas.OpportunityResponse.model_validate(o) for o in found["opportunities"]],
    }


@router.get("/stats")
async def stats(db: AsyncSession = Depends(get_db)):
    return await crud.get_stats(db)
