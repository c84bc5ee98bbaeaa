"""
CRUD operations for the matcher's persisted entities.

This module contains database operations for users, startups, opportunities,
events, embeddings, applications and saved opportunities, used by the API
routes, the discovery import step and background tasks.

Key Features:
- Async database operations
- Error handling and logging
- Transaction management
- Filtered listings and substring search
"""

import json

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import delete, func, or_
from . import models, schemas
from typing import List, Optional, Dict, Any, Union
from ..services.embeddings import EmbeddingVector, cosine_similarity
from ..utils.logger import db_logger as logger


def _as_dict(data: Union[dict, Any]) -> Dict[str, Any]:
    """Accept either a plain dict or a pydantic schema."""
    if isinstance(data, dict):
        return dict(data)
    return data.model_dump()


async def _add(db: AsyncSession, obj, label: str):
    """Persist a new row, rolling back and re-raising on failure."""
    try:
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
        return obj
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating {label}: {str(e)}")
        raise


async def _apply_update(db: AsyncSession, obj, data: Dict[str, Any], label: str):
    try:
        for key, value in data.items():
            setattr(obj, key, value)
        await db.commit()
        await db.refresh(obj)
        return obj
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating {label}: {str(e)}")
        raise


# User CRUD operations
async def create_user(db: AsyncSession, email: str, password_hash: str,
                      role: str = "FOUNDER", name: Optional[str] = None) -> models.User:
    """
    Create a new user account.

    Args:
        db: Database session
        email: Unique login email
        password_hash: Already-hashed password
        role: One of the platform roles
        name: Optional display name

    Returns:
        Created User object
    """
    user = models.User(email=email, password_hash=password_hash, role=role, name=name)
    return await _add(db, user, "user")


async def get_user(db: AsyncSession, user_id: int) -> Optional[models.User]:
    result = await db.execute(select(models.User).where(models.User.id == user_id))
    return result.scalars().first()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[models.User]:
    result = await db.execute(select(models.User).where(models.User.email == email.lower()))
    return result.scalars().first()


async def get_users(db: AsyncSession, skip: int = 0, limit: int = 100) -> List[models.User]:
    result = await db.execute(select(models.User).order_by(models.User.id).offset(skip).limit(limit))
    return result.scalars().all()


async def update_user_profile(db: AsyncSession, user: models.User,
                              profile: Union[dict, schemas.ProfileUpdate]) -> models.User:
    """Apply the provided profile fields and mark the profile complete."""
    data = profile if isinstance(profile, dict) else profile.model_dump(exclude_unset=True)
    data = {k: v for k, v in data.items() if v is not None}
    data["profile_completed"] = True
    logger.info(f"Updating profile for user {user.id}: {sorted(data)}")
    return await _apply_update(db, user, data, "user profile")


async def update_user_role(db: AsyncSession, user: models.User, role: str) -> models.User:
    return await _apply_update(db, user, {"role": role}, "user role")


async def complete_onboarding(db: AsyncSession, user: models.User,
                              responses: Dict[str, Any]) -> models.User:
    """
    Store questionnaire answers and mark onboarding complete in one commit.
    List answers are stored as JSON; everything else as text.
    """
    try:
        for question_id, answer in responses.items():
            is_list = isinstance(answer, list)
            db.add(models.OnboardingResponse(
                user_id=user.id,
                question_id=question_id,
                response=json.dumps(answer) if is_list else str(answer),
                response_data=answer if is_list else None,
            ))
        user.onboarding_completed = True
        await db.commit()
        await db.refresh(user)
    except Exception as e:
        await db.rollback()
        logger.error(f"Error completing onboarding for user {user.id}: {str(e)}")
        raise
    logger.info(f"User {user.id} completed onboarding with {len(responses)} answers")
    return user


async def get_onboarding_responses(db: AsyncSession, user_id: int) -> List[models.OnboardingResponse]:
    result = await db.execute(
        select(models.OnboardingResponse)
        .where(models.OnboardingResponse.user_id == user_id)
        .order_by(models.OnboardingResponse.id)
    )
    return result.scalars().all()


# Startup CRUD operations
async def create_startup(db: AsyncSession, startup: Union[dict, schemas.StartupCreate]) -> models.Startup:
    return await _add(db, models.Startup(**_as_dict(startup)), "startup")


async def get_startup(db: AsyncSession, startup_id: int) -> Optional[models.Startup]:
    result = await db.execute(select(models.Startup).where(models.Startup.id == startup_id))
    return result.scalars().first()


async def get_startups(
    db: AsyncSession,
    sector: Optional[str] = None,
    location: Optional[str] = None,
    stage: Optional[str] = None,
    search: Optional[str] = None,
    owner_user_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 50
) -> List[models.Startup]:
    """
    List startups, newest first, with optional exact-match filters and a
    case-insensitive substring search over name and description.
    """
    query = select(models.Startup)
    if sector:
        query = query.where(models.Startup.sector == sector)
    if location:
        query = query.where(models.Startup.location == location)
    if stage:
        query = query.where(models.Startup.stage == stage)
    if owner_user_id is not None:
        query = query.where(models.Startup.owner_user_id == owner_user_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(models.Startup.name.ilike(pattern),
                                models.Startup.description.ilike(pattern)))
    query = query.order_by(models.Startup.created_at.desc(), models.Startup.id.desc())
    result = await db.execute(query.offset(skip).limit(limit))
    return result.scalars().all()


async def update_startup(db: AsyncSession, startup: models.Startup, data: Dict[str, Any]) -> models.Startup:
    return await _apply_update(db, startup, data, "startup")


# Opportunity CRUD operations
async def create_opportunity(db: AsyncSession,
                             opportunity: Union[dict, schemas.OpportunityCreate]) -> models.Opportunity:
    return await _add(db, models.Opportunity(**_as_dict(opportunity)), "opportunity")


async def get_opportunity(db: AsyncSession, opportunity_id: int) -> Optional[models.Opportunity]:
    result = await db.execute(select(models.Opportunity).where(models.Opportunity.id == opportunity_id))
    return result.scalars().first()


async def get_opportunities(
    db: AsyncSession,
    type: Optional[str] = None,
    sector: Optional[str] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
    creator_user_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 50
) -> List[models.Opportunity]:
    """List opportunities, newest first, filtered like get_startups."""
    query = select(models.Opportunity)
    if type:
        query = query.where(models.Opportunity.type == type)
    if sector:
        query = query.where(models.Opportunity.sector == sector)
    if location:
        query = query.where(models.Opportunity.location == location)
    if creator_user_id is not None:
        query = query.where(models.Opportunity.creator_user_id == creator_user_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(models.Opportunity.title.ilike(pattern),
                                models.Opportunity.description.ilike(pattern)))
    query = query.order_by(models.Opportunity.created_at.desc(), models.Opportunity.id.desc())
    result = await db.execute(query.offset(skip).limit(limit))
    return result.scalars().all()


async def update_opportunity(db: AsyncSession, opportunity: models.Opportunity,
                             data: Dict[str, Any]) -> models.Opportunity:
    return await _apply_update(db, opportunity, data, "opportunity")


# Event CRUD operations
async def create_event(db: AsyncSession, event: Union[dict, schemas.EventCreate]) -> models.Event:
    return await _add(db, models.Event(**_as_dict(event)), "event")


async def get_event(db: AsyncSession, event_id: int) -> Optional[models.Event]:
    result = await db.execute(select(models.Event).where(models.Event.id == event_id))
    return result.scalars().first()


async def get_events(db: AsyncSession, search: Optional[str] = None, creator_user_id: Optional[int] = None,
                     skip: int = 0, limit: int = 50) -> List[models.Event]:
    query = select(models.Event)
    if creator_user_id is not None:
        query = query.where(models.Event.creator_user_id == creator_user_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(models.Event.name.ilike(pattern),
                                models.Event.description.ilike(pattern)))
    query = query.order_by(models.Event.created_at.desc(), models.Event.id.desc())
    result = await db.execute(query.offset(skip).limit(limit))
    return result.scalars().all()


# Embedding operations
async def create_embedding(db: AsyncSession, row_type: str, row_id: int,
                           embedding: EmbeddingVector) -> models.Embedding:
    """Store a vector along with its generator and dimension tags."""
    row = models.Embedding(
        row_type=row_type,
        row_id=row_id,
        generator=embedding.generator,
        dimension=embedding.dimension,
        vector=list(embedding.vector),
    )
    return await _add(db, row, "embedding")


async def get_embedding(db: AsyncSession, row_type: str, row_id: int) -> Optional[EmbeddingVector]:
    """Most recent embedding stored for a row, as a tagged vector."""
    result = await db.execute(
        select(models.Embedding)
        .where(models.Embedding.row_type == row_type, models.Embedding.row_id == row_id)
        .order_by(models.Embedding.id.desc())
    )
    row = result.scalars().first()
    if row is None:
        return None
    return EmbeddingVector(vector=row.vector, generator=row.generator, dimension=row.dimension)


async def get_embeddings(db: AsyncSession, row_type: Optional[str] = None) -> List[models.Embedding]:
    query = select(models.Embedding)
    if row_type:
        query = query.where(models.Embedding.row_type == row_type)
    result = await db.execute(query.order_by(models.Embedding.id))
    return result.scalars().all()


async def get_similar_items(
    db: AsyncSession,
    embedding: EmbeddingVector,
    row_type: str,
    limit: int = 10
) -> List[Dict[str, Any]]:
    """
    Rank stored embeddings of one row type by cosine similarity.

    Only vectors produced by the same generator with the same dimension are
    considered; everything else is skipped rather than compared.

    Returns:
        List of {"row_id", "similarity"} dicts, most similar first
    """
    result = await db.execute(
        select(models.Embedding).where(
            models.Embedding.row_type == row_type,
            models.Embedding.generator == embedding.generator,
            models.Embedding.dimension == embedding.dimension,
        )
    )
    scored = []
    for row in result.scalars().all():
        stored = EmbeddingVector(vector=row.vector, generator=row.generator, dimension=row.dimension)
        scored.append({"row_id": row.row_id, "similarity": cosine_similarity(embedding, stored)})
    scored.sort(key=lambda item: item["similarity"], reverse=True)
    return scored[:limit]


# Application CRUD operations
async def create_application(db: AsyncSession, user_id: int,
                             application: schemas.ApplicationCreate) -> models.Application:
    row = models.Application(user_id=user_id, status="SUBMITTED", **application.model_dump())
    return await _add(db, row, "application")


async def get_application(db: AsyncSession, application_id: int) -> Optional[models.Application]:
    result = await db.execute(select(models.Application).where(models.Application.id == application_id))
    return result.scalars().first()


async def get_user_application(db: AsyncSession, user_id: int,
                               opportunity_id: int) -> Optional[models.Application]:
    result = await db.execute(
        select(models.Application).where(
            models.Application.user_id == user_id,
            models.Application.opportunity_id == opportunity_id,
        )
    )
    return result.scalars().first()


async def get_applications_by_user(db: AsyncSession, user_id: int) -> List[models.Application]:
    result = await db.execute(
        select(models.Application)
        .where(models.Application.user_id == user_id)
        .order_by(models.Application.created_at.desc(), models.Application.id.desc())
    )
    return result.scalars().all()


async def get_applications_by_opportunity(db: AsyncSession, opportunity_id: int) -> List[models.Application]:
    result = await db.execute(
        select(models.Application)
        .where(models.Application.opportunity_id == opportunity_id)
        .order_by(models.Application.id)
    )
    return result.scalars().all()


async def update_application_status(db: AsyncSession, application: models.Application,
                                    status: str) -> models.Application:
    return await _apply_update(db, application, {"status": status}, "application status")


# Saved opportunity operations
async def save_opportunity(db: AsyncSession, user_id: int, opportunity_id: int) -> models.SavedOpportunity:
    """Bookmark an opportunity; saving twice returns the existing bookmark."""
    result = await db.execute(
        select(models.SavedOpportunity).where(
            models.SavedOpportunity.user_id == user_id,
            models.SavedOpportunity.opportunity_id == opportunity_id,
        )
    )
    existing = result.scalars().first()
    if existing:
        return existing
    row = models.SavedOpportunity(user_id=user_id, opportunity_id=opportunity_id)
    return await _add(db, row, "saved opportunity")


async def unsave_opportunity(db: AsyncSession, user_id: int, opportunity_id: int) -> bool:
    try:
        result = await db.execute(
            delete(models.SavedOpportunity).where(
                models.SavedOpportunity.user_id == user_id,
                models.SavedOpportunity.opportunity_id == opportunity_id,
            )
        )
        await db.commit()
        return result.rowcount > 0
    except Exception as e:
        await db.rollback()
        logger.error(f"Error removing saved opportunity: {str(e)}")
        raise


async def get_saved_opportunities(db: AsyncSession, user_id: int) -> List[models.Opportunity]:
    result = await db.execute(
        select(models.Opportunity)
        .join(models.SavedOpportunity, models.SavedOpportunity.opportunity_id == models.Opportunity.id)
        .where(models.SavedOpportunity.user_id == user_id)
        .order_by(models.SavedOpportunity.id.desc())
    )
    return result.scalars().all()


# Search and stats
async def search_all(db: AsyncSession, term: str, limit: int = 20) -> Dict[str, List]:
    """Substring search across startups and opportunities"""
    return {
        "startups": await get_startups(db, search=term, limit=limit),
        "opportunities": await get_opportunities(db, search=term, limit=limit),
    }


async def get_stats(db: AsyncSession) -> Dict[str, int]:
    """Row counts for the dashboard"""
    stats = {}
    for key, model in (
        ("users", models.User),
        ("startups", models.Startup),
        ("opportunities", models.Opportunity),
        ("events", models.Event),
        ("applications", models.Application),
    ):
        result = await db.execute(select(func.count()).select_from(model))
        stats[key] = result.scalar_one()
    return stats
