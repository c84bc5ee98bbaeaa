"""
Intelligent Scraping Module

Profile-driven discovery of startups, funding opportunities and events.

For one user profile the service fans out a handful of role-specific queries
to the AI search client (and, for non-funders, the web search client),
categorises and scores what comes back, fills gaps from the curated fallback
dataset, builds a market-insight block and filters everything by confidence.
Discovered items only become database rows when explicitly imported.

Key Features:
- Concurrent sub-queries with independent failure tolerance
- Curated fallback when live discovery finds nothing or fails outright
- Confidence floor and per-type cap
- Import with per-item error collection and embedding generation
- Per-user snapshot history
"""

import asyncio
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from dateutil import parser as date_parser
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import crud
from ..db.schemas import (
    ImportReport, Insights, ScrapedEvent, ScrapedOpportunity, ScrapedStartup,
    ScrapingResult, SearchResult, UserProfile,
)
from ..utils.config import settings
from ..utils.logger import scraper_logger as logger
from ..utils.storage import StorageService
from . import fallback_data
from .ai_search import AISearchClient
from .embeddings import EmbeddingService
from .query_builder import QueryBuilder
from .scorer import Scorer
from .web_search import WebSearchClient

SUMMARY_THRESHOLD = 300
FALLBACK_KEY_FINDINGS = (
    "Malaysian startup ecosystem demonstrating robust growth across fintech, healthtech, "
    "and sustainability sectors with increased government backing."
)
DEFAULT_TRENDS = ["AI and automation adoption", "Sustainability focus", "Digital transformation"]

SECTOR_LABELS = [
    (r"fintech", "FinTech"),
    (r"healthtech", "HealthTech"),
    (r"edtech", "EdTech"),
    (r"agritech", "AgriTech"),
    (r"climate", "Climate/Environment"),
    (r"e-?commerce", "E-commerce"),
    (r"\bai\b", "Artificial Intelligence"),
    (r"blockchain", "Blockchain"),
    (r"\biot\b", "IoT"),
]
LOCATIONS = ["malaysia", "singapore", "indonesia", "thailand", "vietnam", "philippines"]
STAGES = ["pre-seed", "seed", "series a", "series b", "series c", "ipo"]
OPPORTUNITY_TYPES = ["grant", "competition", "accelerator", "incubator", "fellowship", "award"]

FUNDING_PATTERN = re.compile(r"\$(\d+(?:\.\d+)?(?:[MKB]|million|billion|thousand)?)", re.I)
FOUNDED_PATTERN = re.compile(r"(?:founded|established|started).*?(\d{4})", re.I)
AMOUNT_PATTERN = re.compile(
    r"(?:up to|worth|prize|grant of)\s*\$?(\d+(?:,\d{3})*(?:\.\d{2})?)\s*(?:USD|MYR|SGD)?", re.I
)
DATE_FRAGMENT = r"(\w+\s+\d{1,2},?\s+\d{4}|\d{1,2}/\d{1,2}/\d{4})"
DEADLINE_PATTERN = re.compile(r"(?:deadline|due|closes?|ends?)\s*:?\s*" + DATE_FRAGMENT, re.I)
EVENT_DATE_PATTERN = re.compile(DATE_FRAGMENT, re.I)
VENUE_PATTERN = re.compile(r"\b(?:held at|venue|location|at)\b[:\s]*([^,\n.]{5,50})", re.I)


def filter_and_cap(items: Sequence[Any], min_confidence: float, max_results: int) -> List[Any]:
    """Keep items with confidence >= min_confidence, in order, at most max_results of them."""
    return [item for item in items if item.confidence >= min_confidence][:max_results]


def parse_date(text: Optional[str]) -> Optional[datetime]:
    """Parse a human-written date; None when it is not a recognisable date."""
    if not text:
        return None
    try:
        # Stored as naive UTC
        return date_parser.parse(text).replace(tzinfo=None)
    except (ValueError, OverflowError):
        return None


def _item_text(item: SearchResult) -> str:
    return f"{item.title} {item.description}"


def extract_sector(item: SearchResult) -> Optional[str]:
    text = _item_text(item).lower()
    for pattern, label in SECTOR_LABELS:
        if re.search(pattern, text):
            return label
    return item.metadata.sector


def extract_location(item: SearchResult) -> Optional[str]:
    text = _item_text(item).lower()
    for location in LOCATIONS:
        if location in text:
            return location.capitalize()
    return item.metadata.location


def extract_stage(item: SearchResult) -> Optional[str]:
    text = _item_text(item).lower()
    for stage in STAGES:
        if stage in text:
            return stage.title() if stage != "ipo" else "IPO"
    return item.metadata.stage


def extract_funding(item: SearchResult) -> Optional[str]:
    match = FUNDING_PATTERN.search(_item_text(item))
    return match.group(0) if match else item.metadata.amount


def extract_founded_year(item: SearchResult) -> Optional[int]:
    match = FOUNDED_PATTERN.search(_item_text(item))
    if match:
        year = int(match.group(1))
        if 1990 <= year <= datetime.utcnow().year:
            return year
    return None


def extract_provider(item: SearchResult) -> Optional[str]:
    domain = urlparse(item.url).hostname if item.url else None
    return domain or item.metadata.provider


def extract_opportunity_type(item: SearchResult) -> str:
    if item.metadata.opportunity_type:
        return item.metadata.opportunity_type
    text = _item_text(item).lower()
    for kind in OPPORTUNITY_TYPES:
        if kind in text:
            return kind.capitalize()
    return "Grant"


def extract_amount(item: SearchResult) -> Optional[str]:
    match = AMOUNT_PATTERN.search(_item_text(item))
    return match.group(0).strip() if match else item.metadata.amount


def extract_deadline(item: SearchResult) -> Optional[datetime]:
    match = DEADLINE_PATTERN.search(_item_text(item))
    if match:
        return parse_date(match.group(1))
    return parse_date(item.metadata.deadline)


def extract_event_date(item: SearchResult) -> Optional[datetime]:
    match = EVENT_DATE_PATTERN.search(_item_text(item))
    return parse_date(match.group(1)) if match else None


def extract_venue(item: SearchResult) -> Optional[str]:
    match = VENUE_PATTERN.search(_item_text(item))
    return match.group(1).strip() if match else item.metadata.location


def extract_trends(results: List[SearchResult]) -> List[str]:
    trends = [
        result.title or "Market trend identified"
        for result in results
        if any(word in result.description.lower() for word in ("trend", "growing", "emerging"))
    ]
    return trends[:5] if trends else list(DEFAULT_TRENDS)


def extract_key_findings(results: List[SearchResult]) -> str:
    if not results:
        return "Market analysis data is currently being updated. Please try again later."
    findings = " ".join(result.description or result.title for result in results)[:300]
    return findings or ("Current market conditions show continued growth opportunities in "
                        "technology and sustainability sectors.")


def generate_recommendations(profile: UserProfile, result: ScrapingResult) -> List[str]:
    """Role-based next steps drawn from what was found."""
    recommendations = []
    if profile.role == "FOUNDER":
        if result.opportunities:
            titles = ", ".join(o.title for o in result.opportunities[:3])
            recommendations.append(f"Apply to {titles} - good fit for your profile")
        if result.events:
            recommendations.append("Attend upcoming events to network and learn from industry experts")
        recommendations.append("Consider partnerships with similar startups in your sector")
    elif profile.role == "FUNDER":
        if result.startups:
            names = ", ".join(s.name for s in result.startups[:3])
            recommendations.append(f"Review {names} for potential investment")
        recommendations.append(f"Monitor emerging trends in {profile.sector or 'your focus sectors'} "
                               f"for early-stage opportunities")
    else:
        recommendations = ["Stay engaged with ecosystem updates", "Participate in industry events"]
    return recommendations


def _fallback_opportunity(item: SearchResult) -> ScrapedOpportunity:
    return ScrapedOpportunity(
        title=item.title,
        description=item.description,
        provider=item.source,
        type=extract_opportunity_type(item),
        deadline=parse_date(item.metadata.deadline),
        amount=item.metadata.amount,
        link=f"https://{item.source}",
        sector=item.metadata.sector,
        location=item.metadata.location,
        source=item.source,
        confidence=item.confidence,
        provenance="fallback",
    )


def _fallback_event(item: SearchResult) -> ScrapedEvent:
    return ScrapedEvent(
        name=item.title,
        description=item.description,
        date=datetime.utcnow() + timedelta(days=30),
        venue=item.metadata.location or "TBD",
        link=f"https://{item.source}",
        source=item.source,
        confidence=item.confidence,
        provenance="fallback",
    )


class IntelligentScrapingService:
    """
    Orchestrates one discovery pass per user profile and imports accepted items.

    Collaborators are created from settings when not supplied.
    """

    def __init__(
        self,
        ai_client: Optional[AISearchClient] = None,
        web_client: Optional[WebSearchClient] = None,
        embedding_service: Optional[EmbeddingService] = None,
        storage: Optional[StorageService] = None,
        scorer: Optional[Scorer] = None,
        enable_web_search: Optional[bool] = None,
    ):
        self.ai_client = ai_client or AISearchClient()
        self.web_client = web_client or WebSearchClient()
        self.embedding_service = embedding_service or EmbeddingService()
        self.storage = storage or StorageService()
        self.scorer = scorer or Scorer()
        self.enable_web_search = settings.ENABLE_WEB_SEARCH if enable_web_search is None else enable_web_search
        self.min_confidence = settings.MIN_CONFIDENCE
        self.max_results = settings.MAX_RESULTS_PER_TYPE

    async def scrape_for_user(self, profile: UserProfile) -> ScrapingResult:
        """
        Discover startups, opportunities, events and insights for a profile.

        Never raises: any unexpected failure yields a fully fallback-sourced result.
        """
        logger.info(f"Starting discovery for user {profile.id} ({profile.role})")
        try:
            result = await self._scrape(profile)
        except Exception as e:
            logger.error(f"Intelligent scraping failed, serving fallback data: {str(e)}", exc_info=True)
            result = self.build_fallback_result(profile)

        logger.info(
            f"Discovery finished for user {profile.id}: {len(result.startups)} startups, "
            f"{len(result.opportunities)} opportunities, {len(result.events)} events "
            f"({result.provenance})"
        )
        self._save_snapshot(result, profile)
        return result

    async def _scrape(self, profile: UserProfile) -> ScrapingResult:
        result = ScrapingResult()
        queries = QueryBuilder.generate_search_queries(profile)

        tasks = [self._ai_search(profile, query) for query in queries]
        if self.enable_web_search and profile.role != "FUNDER":
            tasks.append(self._web_search(queries[0]))
        batches = await asyncio.gather(*tasks)

        for batch in batches:
            await self._process_search_results(batch, result, profile)

        if not result.startups and not result.opportunities:
            logger.info("No live startups or opportunities found, using curated fallback data")
            self._apply_fallback(result, profile)

        if profile.sector:
            result.insights = await self._market_insights(profile, result)
        if not result.insights.recommendations:
            result.insights.recommendations = generate_recommendations(profile, result)

        result.startups = filter_and_cap(result.startups, self.min_confidence, self.max_results)
        result.opportunities = filter_and_cap(result.opportunities, self.min_confidence, self.max_results)
        result.events = filter_and_cap(result.events, self.min_confidence, self.max_results)
        return result

    async def _ai_search(self, profile: UserProfile, query: str) -> List[SearchResult]:
        try:
            return await self.ai_client.search_by_user_profile(profile, query)
        except Exception as e:
            logger.warning(f"Search failed for query: {query} - {str(e)}")
            return []

    async def _web_search(self, query: str) -> List[SearchResult]:
        try:
            response = await self.web_client.search(query)
            return response.get("results", [])
        except Exception as e:
            logger.warning(f"Web search failed for query: {query} - {str(e)}")
            return []

    async def _process_search_results(self, items: List[SearchResult], result: ScrapingResult,
                                      profile: UserProfile) -> None:
        for item in items:
            confidence = self.scorer.calculate_confidence(item, profile)
            if item.type == "startup":
                result.startups.append(await self._extract_startup(item, confidence))
            elif item.type == "opportunity":
                result.opportunities.append(await self._extract_opportunity(item, confidence))
            elif item.type == "event":
                result.events.append(await self._extract_event(item, confidence))

    async def enhance_description(self, description: str) -> str:
        """Summarise descriptions longer than 300 characters when a summariser is available."""
        if not description or len(description) <= SUMMARY_THRESHOLD:
            return description or ""
        summary = await self.ai_client.summarize(description)
        return summary or description

    async def _extract_startup(self, item: SearchResult, confidence: float) -> ScrapedStartup:
        return ScrapedStartup(
            name=item.title or "Unknown Startup",
            description=await self.enhance_description(item.description),
            sector=extract_sector(item) or "Technology",
            location=extract_location(item) or "Unknown",
            website=item.url,
            stage=extract_stage(item),
            funding_amount=extract_funding(item),
            founded_year=extract_founded_year(item),
            source=item.source or "Web",
            confidence=confidence,
        )

    async def _extract_opportunity(self, item: SearchResult, confidence: float) -> ScrapedOpportunity:
        return ScrapedOpportunity(
            title=item.title or "Unknown Opportunity",
            description=await self.enhance_description(item.description),
            provider=extract_provider(item) or "Unknown",
            type=extract_opportunity_type(item),
            deadline=extract_deadline(item),
            amount=extract_amount(item),
            link=item.url,
            sector=extract_sector(item),
            location=extract_location(item),
            source=item.source or "Web",
            confidence=confidence,
        )

    async def _extract_event(self, item: SearchResult, confidence: float) -> ScrapedEvent:
        return ScrapedEvent(
            name=item.title or "Unknown Event",
            description=await self.enhance_description(item.description),
            date=extract_event_date(item),
            venue=extract_venue(item),
            link=item.url,
            source=item.source or "Web",
            confidence=confidence,
        )

    def _apply_fallback(self, result: ScrapingResult, profile: UserProfile) -> None:
        for item in fallback_data.get_fallback_results(profile.sector, profile.location):
            if item.type == "opportunity":
                result.opportunities.append(_fallback_opportunity(item))
        result.events.extend(_fallback_event(item) for item in fallback_data.get_upcoming_events())
        result.insights.market_trends.extend(item.title for item in fallback_data.get_startup_insights())

    async def _market_insights(self, profile: UserProfile, result: ScrapingResult) -> Insights:
        try:
            market_query = QueryBuilder.build_market_query(profile.sector, profile.location)
            response = await self.ai_client.search(market_query, profile)
            market_results = response.get("results", [])
            if market_results:
                return Insights(
                    market_trends=extract_trends(market_results),
                    key_findings=extract_key_findings(market_results),
                    recommendations=generate_recommendations(profile, result),
                )
            logger.info("Market intelligence search returned nothing, using curated insights")
        except Exception as e:
            logger.warning(f"Market intelligence search failed: {str(e)}")

        curated = fallback_data.get_startup_insights()
        return Insights(
            market_trends=[insight.title for insight in curated],
            key_findings=curated[0].description if curated else "Current market analysis unavailable",
            recommendations=generate_recommendations(profile, result),
        )

    def build_fallback_result(self, profile: UserProfile) -> ScrapingResult:
        """A ScrapingResult made entirely of curated data."""
        result = ScrapingResult(
            opportunities=[
                _fallback_opportunity(item)
                for item in fallback_data.get_fallback_results(profile.sector, profile.location)
                if item.type == "opportunity"
            ],
            events=[_fallback_event(item) for item in fallback_data.get_upcoming_events()],
        )
        result.insights = Insights(
            market_trends=[insight.title for insight in fallback_data.get_startup_insights()][:5],
            key_findings=FALLBACK_KEY_FINDINGS,
            recommendations=generate_recommendations(profile, result),
        )
        result.opportunities = filter_and_cap(result.opportunities, self.min_confidence, self.max_results)
        result.events = filter_and_cap(result.events, self.min_confidence, self.max_results)
        return result

    def _save_snapshot(self, result: ScrapingResult, profile: UserProfile) -> None:
        if profile.id is None:
            return
        try:
            snapshot = result.model_dump(mode="json")
            snapshot["provenance"] = result.provenance
            self.storage.save_scraping_snapshot(snapshot, profile.id)
        except OSError as e:
            logger.warning(f"Could not save discovery snapshot for user {profile.id}: {str(e)}")

    def get_history(self, user_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        return self.storage.list_scraping_history(user_id, limit)

    async def import_scraped_data(self, db: AsyncSession, result: ScrapingResult,
                                  user_id: Optional[int]) -> ImportReport:
        """
        Persist every item of a ScrapingResult as its own row.

        Startups and opportunities with a long enough description get one
        embedding each. A failing item is recorded in ``errors`` and the import
        carries on. Nothing is deduplicated against earlier imports.
        """
        report = ImportReport()
        min_length = settings.EMBEDDING_MIN_DESCRIPTION_LENGTH

        for startup_data in result.startups:
            try:
                startup = await crud.create_startup(db, {
                    "name": startup_data.name,
                    "description": startup_data.description,
                    "sector": startup_data.sector,
                    "location": startup_data.location,
                    "website": startup_data.website,
                    "social_enterprise_flag": True,
                    "stage": startup_data.stage,
                    "founded_year": startup_data.founded_year,
                    "funding_amount": startup_data.funding_amount,
                    "source": startup_data.source,
                    "confidence": startup_data.confidence,
                    "owner_user_id": None,
                })
                if startup.description and len(startup.description) > min_length:
                    embedding = await self.embedding_service.generate(startup.description)
                    await crud.create_embedding(db, "startup", startup.id, embedding)
                report.imported.startups += 1
            except Exception as e:
                logger.error(f"Startup import failed: {startup_data.name} - {str(e)}")
                report.errors.append(f"Startup import failed: {startup_data.name} - {str(e)}")

        for opp_data in result.opportunities:
            try:
                opportunity = await crud.create_opportunity(db, {
                    "title": opp_data.title,
                    "description": opp_data.description,
                    "type": opp_data.type,
                    "provider": opp_data.provider,
                    "criteria": opp_data.description,
                    "deadline": opp_data.deadline,
                    "amount": opp_data.amount,
                    "link": opp_data.link,
                    "sector": opp_data.sector,
                    "location": opp_data.location,
                    "source": opp_data.source,
                    "confidence": opp_data.confidence,
                    "creator_user_id": user_id,
                })
                if opportunity.description and len(opportunity.description) > min_length:
                    embedding = await self.embedding_service.generate(opportunity.description)
                    await crud.create_embedding(db, "opportunity", opportunity.id, embedding)
                report.imported.opportunities += 1
            except Exception as e:
                logger.error(f"Opportunity import failed: {opp_data.title} - {str(e)}")
                report.errors.append(f"Opportunity import failed: {opp_data.title} - {str(e)}")

        for event_data in result.events:
            try:
                await crud.create_event(db, {
                    "name": event_data.name,
                    "description": event_data.description,
                    "date": event_data.date,
                    "venue": event_data.venue,
                    "link": event_data.link,
                    "source": event_data.source,
                    "confidence": event_data.confidence,
                    "creator_user_id": user_id,
                })
                report.imported.events += 1
            except Exception as e:
                logger.error(f"Event import failed: {event_data.name} - {str(e)}")
                report.errors.append(f"Event import failed: {event_data.name} - {str(e)}")

        logger.info(
            f"Imported {report.imported.startups} startups, {report.imported.opportunities} opportunities, "
            f"{report.imported.events} events for user {user_id} with {len(report.errors)} errors"
        )
        return report
