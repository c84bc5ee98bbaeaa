"""
Unit tests for database CRUD operations.
"""
import pytest
from datetime import datetime, timedelta

from matchmaker.db import crud, schemas
from matchmaker.services.embeddings import EmbeddingVector, hashed_embedding


@pytest.fixture
async def founder(db):
    return await crud.create_user(db, "founder@example.com", "hash", role="FOUNDER", name="Aisyah")


@pytest.mark.asyncio
async def test_create_and_get_user(db, founder):
    """Test creating a user and retrieving it by id and email."""
    assert founder.id is not None
    assert founder.profile_completed is False

    assert (await crud.get_user(db, founder.id)).email == "founder@example.com"
    assert (await crud.get_user_by_email(db, "Founder@Example.com")).id == founder.id
    assert await crud.get_user_by_email(db, "nobody@example.com") is None


@pytest.mark.asyncio
async def test_update_user_profile_marks_completed(db, founder):
    updated = await crud.update_user_profile(
        db, founder, schemas.ProfileUpdate(sector="FinTech", location="Malaysia", interests=["payments"])
    )
    assert updated.sector == "FinTech"
    assert updated.interests == ["payments"]
    assert updated.profile_completed is True
    # Fields that were not supplied are left alone
    assert updated.name == "Aisyah"


@pytest.mark.asyncio
async def test_update_user_role(db, founder):
    updated = await crud.update_user_role(db, founder, "FUNDER")
    assert updated.role == "FUNDER"
    assert [u.role for u in await crud.get_users(db)] == ["FUNDER"]


@pytest.mark.asyncio
async def test_startup_filters_and_search(db):
    await crud.create_startup(db, schemas.StartupCreate(name="PayLah", sector="FinTech",
                                                        location="Malaysia", stage="Seed",
                                                        description="Cross-border payments"))
    await crud.create_startup(db, {"name": "MedKL", "sector": "HealthTech", "location": "Malaysia"})
    await crud.create_startup(db, {"name": "SGPay", "sector": "FinTech", "location": "Singapore"})

    fintech = await crud.get_startups(db, sector="FinTech")
    assert {s.name for s in fintech} == {"PayLah", "SGPay"}

    malaysian_fintech = await crud.get_startups(db, sector="FinTech", location="Malaysia")
    assert [s.name for s in malaysian_fintech] == ["PayLah"]

    assert [s.name for s in await crud.get_startups(db, search="payments")] == ["PayLah"]
    assert [s.name for s in await crud.get_startups(db, stage="Seed")] == ["PayLah"]
    assert len(await crud.get_startups(db, limit=2)) == 2


@pytest.mark.asyncio
async def test_update_startup(db):
    startup = await crud.create_startup(db, {"name": "Kita Recycle", "stage": "Pre-seed"})

    updated = await crud.update_startup(db, startup, {"stage": "Seed", "funding_amount": "RM500,000"})

    assert updated.stage == "Seed"
    assert (await crud.get_startup(db, startup.id)).funding_amount == "RM500,000"


@pytest.mark.asyncio
async def test_opportunity_crud(db):
    opportunity = await crud.create_opportunity(db, schemas.OpportunityCreate(
        title="Cradle CIP Spark", type="Grant", sector="technology", location="Malaysia",
        deadline=datetime(2025, 12, 31), source="cradlefund.com.my", confidence=0.85,
    ))
    assert (await crud.get_opportunity(db, opportunity.id)).title == "Cradle CIP Spark"
    assert await crud.get_opportunities(db, type="Accelerator") == []

    updated = await crud.update_opportunity(db, opportunity, {"amount": "RM150,000"})
    assert updated.amount == "RM150,000"


@pytest.mark.asyncio
async def test_events_search(db):
    await crud.create_event(db, {"name": "MTEP Demo Day", "date": datetime.utcnow() + timedelta(days=30)})
    await crud.create_event(db, schemas.EventCreate(name="Fintech Malaysia Conference"))

    assert [e.name for e in await crud.get_events(db, search="demo")] == ["MTEP Demo Day"]
    assert len(await crud.get_events(db)) == 2

    event = await crud.create_event(db, {"name": "Climate Summit", "venue": "KLCC"})
    assert (await crud.get_event(db, event.id)).venue == "KLCC"
    assert await crud.get_event(db, 999) is None


@pytest.mark.asyncio
async def test_similar_items_only_compare_matching_generators(db):
    await crud.create_embedding(db, "startup", 1, hashed_embedding("fintech payments platform for malaysia"))
    await crud.create_embedding(db, "startup", 2, hashed_embedding("healthcare clinic booking"))
    await crud.create_embedding(db, "startup", 3, EmbeddingVector([1.0, 0.0], "openai:other", 2))

    query = hashed_embedding("payments platform for malaysian fintech")
    similar = await crud.get_similar_items(db, query, "startup", limit=5)

    assert [item["row_id"] for item in similar] == [1, 2]
    assert similar[0]["similarity"] > similar[1]["similarity"]


@pytest.mark.asyncio
async def test_get_embedding_returns_tagged_vector(db):
    stored = hashed_embedding("accelerator programme")
    await crud.create_embedding(db, "opportunity", 7, stored)

    loaded = await crud.get_embedding(db, "opportunity", 7)
    assert loaded.generator == stored.generator
    assert loaded.dimension == stored.dimension
    assert await crud.get_embedding(db, "opportunity", 8) is None


@pytest.mark.asyncio
async def test_applications(db, founder):
    opportunity = await crud.create_opportunity(db, {"title": "MDEC Fund", "type": "Grant"})
    user_id = founder.id
    application = await crud.create_application(db, user_id, schemas.ApplicationCreate(
        opportunity_id=opportunity.id,
        cover_letter="We are building payment rails for Malaysian micro merchants today.",
        project_description="A" * 120,
    ))
    assert application.status == "SUBMITTED"
    assert (await crud.get_user_application(db, user_id, opportunity.id)).id == application.id
    assert [a.id for a in await crud.get_applications_by_user(db, user_id)] == [application.id]
    assert [a.id for a in await crud.get_applications_by_opportunity(db, opportunity.id)] == [application.id]

    reviewed = await crud.update_application_status(db, application, "UNDER_REVIEW")
    assert reviewed.status == "UNDER_REVIEW"


@pytest.mark.asyncio
async def test_saved_opportunities(db, founder):
    opportunity = await crud.create_opportunity(db, {"title": "Axiata Fund", "type": "Fund"})
    user_id = founder.id

    first = await crud.save_opportunity(db, user_id, opportunity.id)
    second = await crud.save_opportunity(db, user_id, opportunity.id)
    assert first.id == second.id
    assert [o.title for o in await crud.get_saved_opportunities(db, user_id)] == ["Axiata Fund"]

    assert await crud.unsave_opportunity(db, user_id, opportunity.id) is True
    assert await crud.unsave_opportunity(db, user_id, opportunity.id) is False
    assert await crud.get_saved_opportunities(db, user_id) == []


@pytest.mark.asyncio
async def test_search_all_and_stats(db, founder):
    await crud.create_startup(db, {"name": "GreenGrid", "description": "Climate tech for Malaysia"})
    await crud.create_opportunity(db, {"title": "Climate Accelerator", "type": "Accelerator"})
    await crud.create_event(db, {"name": "Climate Summit"})

    found = await crud.search_all(db, "climate")
    assert [s.name for s in found["startups"]] == ["GreenGrid"]
    assert [o.title for o in found["opportunities"]] == ["Climate Accelerator"]

    assert await crud.get_stats(db) == {
        "users": 1, "startups": 1, "opportunities": 1, "events": 1, "applications": 0,
    }


@pytest.mark.asyncio
async def test_failed_insert_rolls_back(db):
    with pytest.raises(Exception):
        await crud.create_opportunity(db, {"title": "No type"})
    # The session is usable again after the rollback
    created = await crud.create_opportunity(db, {"title": "Typed", "type": "Grant"})
    assert created.id is not None


@pytest.mark.asyncio
async def test_listings_filtered_by_owner(db, founder):
    other = await crud.create_user(db, "other@example.com", "hash", role="FUNDER")
    await crud.create_startup(db, {"name": "Mine", "owner_user_id": founder.id})
    await crud.create_startup(db, {"name": "Theirs", "owner_user_id": other.id})
    await crud.create_opportunity(db, {"title": "Own Grant", "type": "Grant", "creator_user_id": founder.id})
    await crud.create_opportunity(db, {"title": "Other Grant", "type": "Grant", "creator_user_id": other.id})
    await crud.create_event(db, {"name": "Own Meetup", "creator_user_id": founder.id})

    assert [s.name for s in await crud.get_startups(db, owner_user_id=founder.id)] == ["Mine"]
    assert [o.title for o in await crud.get_opportunities(db, creator_user_id=other.id)] == ["Other Grant"]
    assert [e.name for e in await crud.get_events(db, creator_user_id=founder.id)] == ["Own Meetup"]
    assert await crud.get_events(db, creator_user_id=other.id) == []


@pytest.mark.asyncio
async def test_complete_onboarding_stores_answers(db, founder):
    user = await crud.complete_onboarding(db, founder, {"stage": "Seed", "needs": ["grants", "talent"]})

    assert user.onboarding_completed is True
    answers = {a.question_id: a for a in await crud.get_onboarding_responses(db, founder.id)}
    assert answers["stage"].response == "Seed"
    assert answers["stage"].response_data is None
    assert answers["needs"].response_data == ["grants", "talent"]
    assert answers["needs"].response == '["grants", "talent"]'
