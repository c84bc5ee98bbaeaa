"""
Unit tests for Pydantic schemas.
"""
import pytest
from types import SimpleNamespace
from pydantic import ValidationError

from matchmaker.db.schemas import (
    ApplicationCreate, ApplicationStatusUpdate, ScrapedEvent, ScrapedOpportunity,
    ScrapingResult, ScrapingResultResponse, SearchResult, UserCreate, UserProfile,
    clamp_confidence,
)


@pytest.mark.parametrize("raw, expected", [(-0.3, 0.0), (0.0, 0.0), (0.72, 0.72), (1.0, 1.0), (1.45, 1.0)])
def test_clamp_confidence(raw, expected):
    assert clamp_confidence(raw) == expected


def test_search_result_confidence_is_clamped():
    assert SearchResult(title="x", source="s", confidence=1.3).confidence == 1.0
    assert SearchResult(title="x", source="s", confidence=-1).confidence == 0.0


def test_scraped_items_clamp_confidence():
    opportunity = ScrapedOpportunity(title="Grant", source="mdec.my", confidence=1.2)
    assert opportunity.confidence == 1.0
    assert opportunity.type == "Grant"
    assert opportunity.provenance == "live"


def test_user_profile_from_user_splits_interests():
    user = SimpleNamespace(id=4, role="FUNDER", sector="FinTech", location="Penang",
                           interests="payments, lending,", experience=None, stage=None,
                           investment_range="RM1M - RM5M")
    profile = UserProfile.from_user(user)
    assert profile.role == "FUNDER"
    assert profile.interests == ["payments", "lending"]
    assert profile.investment_range == "RM1M - RM5M"


def test_user_profile_unknown_role_defaults_to_founder():
    user = SimpleNamespace(id=1, role="GUEST", sector=None, location=None, interests=None,
                           experience=None, stage=None, investment_range=None)
    assert UserProfile.from_user(user).role == "FOUNDER"


def test_scraping_result_provenance():
    assert ScrapingResult().provenance == "live"

    fallback_only = ScrapingResult(opportunities=[
        ScrapedOpportunity(title="A", source="mdec.my", confidence=0.9, provenance="fallback")
    ])
    assert fallback_only.provenance == "fallback"

    mixed = ScrapingResult(
        opportunities=[ScrapedOpportunity(title="A", source="mdec.my", confidence=0.9, provenance="fallback")],
        events=[ScrapedEvent(name="B", source="Web Search", confidence=0.8)],
    )
    assert mixed.provenance == "mixed"
    assert ScrapingResultResponse.from_result(mixed).provenance == "mixed"


@pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
def test_user_create_rejects_weak_passwords(password):
    with pytest.raises(ValidationError):
        UserCreate(email="a@example.com", password=password)


def test_user_create_normalises_email():
    user = UserCreate(email="Founder@Example.COM", password="Str0ngPass")
    assert user.email == "founder@example.com"
    assert user.role == "FOUNDER"

    with pytest.raises(ValidationError):
        UserCreate(email="not-an-email", password="Str0ngPass")


def test_application_create_lengths():
    with pytest.raises(ValidationError):
        ApplicationCreate(opportunity_id=1, cover_letter="too short", project_description="x" * 100)
    ApplicationCreate(opportunity_id=1, cover_letter="x" * 50, project_description="x" * 100)


def test_application_status_update():
    assert ApplicationStatusUpdate(status="ACCEPTED").status == "ACCEPTED"
    with pytest.raises(ValidationError):
        ApplicationStatusUpdate(status="MAYBE")
