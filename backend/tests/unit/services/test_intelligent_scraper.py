"""
Unit tests for the intelligent scraping orchestrator.
"""
import json
from types import SimpleNamespace

import httpx
import pytest

from matchmaker.db.schemas import SearchMetadata, SearchResult, UserProfile
from matchmaker.services import intelligent_scraper
from matchmaker.services.ai_search import AISearchClient
from matchmaker.services.fallback_data import FALLBACK_SOURCES
from matchmaker.services.intelligent_scraper import (
    FALLBACK_KEY_FINDINGS, IntelligentScrapingService, extract_sector, filter_and_cap, parse_date,
)
from matchmaker.services.query_builder import QueryBuilder
from matchmaker.services.web_search import WebSearchClient

LIVE_ANSWER = json.dumps([
    {
        "title": "MaGIC FinTech Grant",
        "description": "Grant for FinTech startups in Malaysia worth RM100,000. Deadline: March 31, 2026",
        "type": "opportunity",
        "url": "https://magic.com.my/grant",
        "deadline": "March 31, 2026",
        "amount": "RM100,000",
        "sector": "FinTech",
        "location": "Malaysia",
        "stage": None,
    }
])


def empty_web_client():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html><body></body></html>"))
    return WebSearchClient(transport=transport)


class SpyWebClient:
    def __init__(self):
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        return {"results": [], "total": 0}


def test_filter_and_cap_keeps_order_above_floor():
    items = [SimpleNamespace(confidence=c) for c in (0.5, 0.69, 0.7, 0.95)]
    assert [i.confidence for i in filter_and_cap(items, 0.7, 20)] == [0.7, 0.95]
    assert [i.confidence for i in filter_and_cap(items, 0.7, 1)] == [0.7]


def test_parse_date():
    assert parse_date("March 31, 2026").year == 2026
    assert parse_date("Ongoing applications") is None
    assert parse_date(None) is None


def test_extract_sector_does_not_match_ai_inside_words():
    item = SearchResult(title="Malaysia grant", description="Support for local founders", source="s",
                        metadata=SearchMetadata(sector="technology"))
    assert extract_sector(item) == "technology"

    ai_item = SearchResult(title="AI accelerator", description="", source="s")
    assert extract_sector(ai_item) == "Artificial Intelligence"


@pytest.mark.asyncio
async def test_scrape_never_raises_when_all_ai_backends_fail(storage, founder_profile, make_ai_client):
    failing = AISearchClient(
        perplexity_client=make_ai_client(error=RuntimeError("perplexity down")),
        openai_client=make_ai_client(error=TimeoutError("openai timeout")),
    )
    service = IntelligentScrapingService(ai_client=failing, storage=storage, enable_web_search=False)

    result = await service.scrape_for_user(founder_profile)

    items = [*result.startups, *result.opportunities, *result.events]
    assert items
    assert all(item.provenance == "fallback" for item in items)
    assert result.provenance == "fallback"
    assert result.insights.market_trends


@pytest.mark.asyncio
async def test_founder_fintech_with_empty_ai_results_uses_fallback_domains(storage, founder_profile,
                                                                           make_ai_client):
    service = IntelligentScrapingService(
        ai_client=AISearchClient(perplexity_client=make_ai_client(content="[]")),
        web_client=empty_web_client(),
        storage=storage,
        enable_web_search=True,
    )

    result = await service.scrape_for_user(founder_profile)

    assert result.opportunities
    assert all(o.source in FALLBACK_SOURCES for o in result.opportunities)
    assert [o.source for o in result.opportunities] == ["axiata.com"]
    axiata = result.opportunities[0]
    assert axiata.confidence == 0.8
    assert axiata.link == "https://axiata.com"
    assert axiata.provenance == "fallback"
    assert all(0.7 <= e.confidence <= 1.0 for e in result.events)


@pytest.mark.asyncio
async def test_total_failure_returns_fallback_result(monkeypatch, offline_service, founder_profile):
    def explode(profile):
        raise RuntimeError("query generation failed")

    monkeypatch.setattr(QueryBuilder, "generate_search_queries", staticmethod(explode))

    result = await offline_service.scrape_for_user(founder_profile)

    assert result.provenance == "fallback"
    assert [o.source for o in result.opportunities] == ["axiata.com"]
    assert len(result.events) == 2
    assert result.insights.key_findings == FALLBACK_KEY_FINDINGS
    assert result.insights.recommendations[0].startswith("Apply to Axiata Digital Innovation Fund")


@pytest.mark.asyncio
async def test_live_results_are_scored_and_extracted(storage, founder_profile, make_ai_client):
    service = IntelligentScrapingService(
        ai_client=AISearchClient(perplexity_client=make_ai_client(content=LIVE_ANSWER)),
        storage=storage,
        enable_web_search=False,
    )

    result = await service.scrape_for_user(founder_profile)

    assert result.provenance == "live"
    titles = {o.title for o in result.opportunities}
    assert titles == {"MaGIC FinTech Grant"}
    grant = result.opportunities[0]
    assert grant.confidence == 1.0
    assert grant.provider == "magic.com.my"
    assert grant.type == "Grant"
    assert grant.amount == "RM100,000"
    assert grant.deadline.year == 2026 and grant.deadline.month == 3
    assert grant.sector == "FinTech"
    assert result.insights.market_trends
    assert "MaGIC FinTech Grant" in result.insights.recommendations[0]


@pytest.mark.asyncio
async def test_web_search_runs_only_for_non_funders(storage, make_ai_client):
    spy = SpyWebClient()
    service = IntelligentScrapingService(
        ai_client=AISearchClient(perplexity_client=make_ai_client(content="[]")),
        web_client=spy,
        storage=storage,
        enable_web_search=True,
    )

    await service.scrape_for_user(UserProfile(id=2, role="FUNDER", sector="FinTech"))
    assert spy.queries == []

    await service.scrape_for_user(UserProfile(id=3, role="ECOSYSTEM_BUILDER"))
    assert spy.queries == ["startup ecosystem Malaysia funding opportunities new companies"]


@pytest.mark.asyncio
async def test_one_failing_query_does_not_sink_the_others(storage, founder_profile):
    class FlakyAIClient:
        def __init__(self):
            self.calls = 0

        async def search_by_user_profile(self, profile, query=None):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("boom")
            return [SearchResult(title="Seed Accelerator", description="FinTech accelerator", source="Perplexity",
                                 type="opportunity", relevance_score=90,
                                 metadata=SearchMetadata(sector="FinTech"))]

        async def search(self, query, profile=None):
            return {"results": []}

        async def summarize(self, text):
            return None

    service = IntelligentScrapingService(ai_client=FlakyAIClient(), storage=storage, enable_web_search=False)
    result = await service.scrape_for_user(founder_profile)

    assert result.provenance == "live"
    assert {o.title for o in result.opportunities} == {"Seed Accelerator"}


@pytest.mark.asyncio
async def test_long_descriptions_are_summarised(storage, make_ai_client):
    client = AISearchClient(openai_client=make_ai_client(content="Short summary."))
    service = IntelligentScrapingService(ai_client=client, storage=storage, enable_web_search=False)

    assert await service.enhance_description("x" * 301) == "Short summary."
    assert await service.enhance_description("short") == "short"


@pytest.mark.asyncio
async def test_snapshots_are_saved_per_user(offline_service, founder_profile):
    await offline_service.scrape_for_user(founder_profile)
    await offline_service.scrape_for_user(UserProfile(role="ADMIN"))

    history = offline_service.get_history(founder_profile.id)
    assert len(history) == 1
    assert history[0]["provenance"] == "fallback"


@pytest.mark.asyncio
async def test_snapshot_failure_is_not_fatal(founder_profile):
    def broken_save(data, user_id):
        raise OSError("disk full")

    service = IntelligentScrapingService(
        ai_client=AISearchClient(),
        storage=SimpleNamespace(save_scraping_snapshot=broken_save),
        enable_web_search=False,
    )
    result = await service.scrape_for_user(founder_profile)
    assert result.opportunities


def test_generate_recommendations_by_role():
    result = intelligent_scraper.ScrapingResult()
    funder = intelligent_scraper.generate_recommendations(UserProfile(role="FUNDER", sector="AgriTech"), result)
    assert any("AgriTech" in line for line in funder)

    builder = intelligent_scraper.generate_recommendations(UserProfile(role="ECOSYSTEM_BUILDER"), result)
    assert builder == ["Stay engaged with ecosystem updates", "Participate in industry events"]
