"""
Discovery Routes Module

This module exposes the profile-driven discovery pipeline: running a
discovery pass, importing its results, free-text personalised search,
market intelligence, snapshot history and ranked recommendations.

Key Features:
- Intelligent scraping per authenticated user
- Explicit import of discovered items
- Deterministic match-score ranking of stored listings
- Embedding-based similar listings
"""

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import crud, models, schemas
from ..db.session import get_db
from ..services.intelligent_scraper import IntelligentScrapingService
from ..utils.logger import api_logger as logger
from .auth import get_current_user

router = APIRouter(tags=["Discovery"])

_scraping_service: Optional[IntelligentScrapingService] = None


def get_scraping_service() -> IntelligentScrapingService:
    """Shared discovery service, created on first use."""
    global _scraping_service
    if _scraping_service is None:
        _scraping_service = IntelligentScrapingService()
    return _scraping_service


@router.post("/scrape/intelligent", response_model=schemas.ScrapingResultResponse)
async def intelligent_scrape(
    user: models.User = Depends(get_current_user),
    service: IntelligentScrapingService = Depends(get_scraping_service)
):
    """Run one discovery pass for the caller's profile. Results are not stored."""
    result = await service.scrape_for_user(schemas.UserProfile.from_user(user))
    return schemas.ScrapingResultResponse.from_result(result)


@router.post("/scrape/intelligent/import")
async def import_scraped(
    request: schemas.ImportRequest,
    user: models.User = Depends(get_current_user),
    service: IntelligentScrapingService = Depends(get_scraping_service),
    db: AsyncSession = Depends(get_db)
):
    report = await service.import_scraped_data(db, request.results, user.id)
    return {"imported": report}


@router.post("/scrape/personalized")
async def personalized_search(
    request: schemas.PersonalizedSearchRequest,
    user: models.User = Depends(get_current_user),
    service: IntelligentScrapingService = Depends(get_scraping_service)
):
    """Free-text AI search scoped by the caller's profile (sector/location may be overridden)."""
    profile = schemas.UserProfile.from_user(user)
    overrides = {k: v for k, v in (("sector", request.sector), ("location", request.location)) if v}
    profile = profile.model_copy(update=overrides)

    query = request.query or f"relevant opportunities for {user.role} in {profile.sector or 'startup ecosystem'}"
    results = await service.ai_client.search_by_user_profile(profile, query)
    return {"results": results}


@router.get("/scrape/market-intelligence")
async def market_intelligence(
    sector: Optional[str] = None,
    location: Optional[str] = None,
    user: models.User = Depends(get_current_user),
    service: IntelligentScrapingService = Depends(get_scraping_service)
):
    target_sector = sector or user.sector or "technology"
    target_location = location or user.location
    intelligence = await service.ai_client.get_market_intelligence(target_sector, target_location)
    if service.enable_web_search:
        intelligence["web"] = await service.web_client.get_market_intelligence(
            target_sector, target_location or "Malaysia"
        )
    return {"intelligence": intelligence}


@router.get("/scrape/history")
async def scraping_history(
    limit: int = Query(10, ge=1, le=50),
    user: models.User = Depends(get_current_user),
    service: IntelligentScrapingService = Depends(get_scraping_service)
):
    return {"history": service.get_history(user.id, limit)}


@router.get("/discovery/recommendations")
async def recommendations(
    user: models.User = Depends(get_current_user),
    service: IntelligentScrapingService = Depends(get_scraping_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Stored opportunities (and startups, for funders and admins) ranked by
    match score, upcoming deadlines, and fresh insights from a discovery pass.
    """
    profile = schemas.UserProfile.from_user(user)
    discovery = await service.scrape_for_user(profile)

    opportunities = [
        {**schemas.OpportunityResponse.model_validate(o).model_dump(),
         "match_score": service.scorer.calculate_match_score(o, profile)}
        for o in await crud.get_opportunities(db, limit=20)
    ]
    opportunities.sort(key=lambda o: o["match_score"], reverse=True)

    startups = []
    if user.role in ("FUNDER", "ADMIN"):
        startups = [
            {**schemas.StartupResponse.model_validate(s).model_dump(),
             "match_score": service.scorer.calculate_match_score(s, profile)}
            for s in await crud.get_startups(db, limit=20)
        ]
        startups.sort(key=lambda s: s["match_score"], reverse=True)

    now = datetime.utcnow()
    deadlines = sorted(
        (o for o in opportunities if o["deadline"] and o["deadline"] > now),
        key=lambda o: o["deadline"],
    )

    return {
        "opportunities": opportunities[:12],
        "startups": startups[:12],
        "deadlines": deadlines[:6],
        "insights": discovery.insights,
        "provenance": discovery.provenance,
    }


CHAT_UNAVAILABLE = (
    "I'm having trouble accessing the latest information right now. Please try asking about "
    "your saved opportunities or profile improvements."
)


def chat_suggestions(user: models.User) -> List[str]:
    return [
        "What programs do I qualify for?",
        "How can I improve my profile?",
        f"Show me trending {user.sector or 'Malaysian'} startups",
        "What are the application requirements?",
    ]


def profile_tips(user: models.User) -> str:
    def mark(value):
        return "done" if value else "missing"

    return (
        "To improve your profile visibility:\n\n"
        f"- Complete all profile sections (sector: {mark(user.sector)}, location: {mark(user.location)})\n"
        "- Add a detailed startup description and traction metrics\n"
        "- Upload your pitch deck and team information\n"
        "- Keep your funding status and needs updated\n\n"
        "A complete profile gets more visibility from investors and program organisers."
    )


@router.post("/discovery/chat")
async def discovery_chat(
    request: schemas.ChatRequest,
    user: models.User = Depends(get_current_user),
    service: IntelligentScrapingService = Depends(get_scraping_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Profile-aware assistant. Questions about eligibility list the best-matching
    stored opportunities, questions about the profile get completion tips, and
    anything else is answered from a personalised AI search.
    """
    profile = schemas.UserProfile.from_user(user)
    message = request.message.lower()
    results = await service.ai_client.search_by_user_profile(profile, request.message)

    reply = "I can help you with that! "
    matches = []
    if "qualify" in message or "opportunities" in message:
        try:
            stored = await crud.get_opportunities(db, sector=user.sector, limit=20)
        except SQLAlchemyError as e:
            logger.error(f"Chat assistant failed for user {user.id}: {str(e)}")
            return {"response": CHAT_UNAVAILABLE, "suggestions": [], "results": [], "opportunities": []}
        matches = sorted(
            ({**schemas.OpportunityResponse.model_validate(o).model_dump(),
              "match_score": service.scorer.calculate_match_score(o, profile)} for o in stored),
            key=lambda o: o["match_score"], reverse=True,
        )[:3]
        if matches:
            reply += f"Based on your profile ({user.sector or 'no sector set'}), here are some relevant opportunities:\n\n"
            for i, opp in enumerate(matches, 1):
                reply += f"{i}. **{opp['title']}** - {opp['provider'] or 'Unknown provider'}\n"
                reply += f"   {(opp['description'] or '')[:100]}...\n\n"
    elif "profile" in message or "improve" in message:
        reply += profile_tips(user)
    elif results:
        reply += "I found some relevant information:\n\n"
        for i, result in enumerate(results[:2], 1):
            reply += f"{i}. **{result.title}**\n   {result.description}\n\n"

    return {
        "response": reply.strip(),
        "suggestions": chat_suggestions(user),
        "results": results[:5],
        "opportunities": matches,
    }


@router.get("/discovery/similar/{row_type}/{row_id}")
async def similar_listings(
    row_type: Literal["startup", "opportunity"],
    row_id: int,
    limit: int = Query(5, ge=1, le=50),
    user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Listings of the same type whose embeddings are closest to this one's."""
    embedding = await crud.get_embedding(db, row_type, row_id)
    if embedding is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No embedding for this listing")

    similar = await crud.get_similar_items(db, embedding, row_type, limit=limit + 1)
    similar = [item for item in similar if item["row_id"] != row_id][:limit]
    logger.info(f"Found {len(similar)} listings similar to {row_type} {row_id}")
    return {"row_type": row_type, "row_id": row_id, "similar": similar}
