"""
Fallback Data Module

Curated Malaysian startup ecosystem entries served whenever live discovery
comes back empty or fails outright. Results are deterministic and always
returned as fresh copies so callers may mutate them freely.
"""

from typing import List, Optional

from ..db.schemas import SearchResult, SearchMetadata

_MALAYSIA_OPPORTUNITIES = [
    SearchResult(
        title="Malaysia Digital Economy Corporation (MDEC) Digital Acceleration Fund",
        description="Government-backed funding program supporting Malaysian digital startups with grants up to "
                    "RM500,000 for technology commercialization and market expansion.",
        source="mdec.my",
        confidence=0.9,
        type="opportunity",
        metadata=SearchMetadata(sector="technology", location="Malaysia", amount="RM500,000",
                                deadline="Ongoing applications"),
    ),
    SearchResult(
        title="Cradle Fund CEO (CFO) Program",
        description="Early-stage funding initiative providing grants up to RM150,000 for Malaysian tech startups "
                    "focusing on innovation and commercialization.",
        source="cradlefund.com.my",
        confidence=0.85,
        type="opportunity",
        metadata=SearchMetadata(sector="technology", location="Malaysia", amount="RM150,000",
                                stage="Early-stage"),
    ),
    SearchResult(
        title="Axiata Digital Innovation Fund",
        description="Corporate venture capital fund investing in Southeast Asian fintech, healthtech, and digital "
                    "solutions with focus on Malaysian market.",
        source="axiata.com",
        confidence=0.8,
        type="opportunity",
        metadata=SearchMetadata(sector="fintech", location="Malaysia", amount="Series A to Series B",
                                stage="Growth-stage"),
    ),
    SearchResult(
        title="Malaysia Venture Capital Management Berhad (MAVCAP)",
        description="Government-linked venture capital firm investing in Malaysian startups across various sectors "
                    "including technology, healthcare, and manufacturing.",
        source="mavcap.com",
        confidence=0.9,
        type="opportunity",
        metadata=SearchMetadata(sector="multi-sector", location="Malaysia", amount="RM1M - RM10M",
                                stage="Series A to Series C"),
    ),
    SearchResult(
        title="Grab Ventures Velocity Program",
        description="Accelerator program for Southeast Asian startups focusing on mobility, fintech, and digital "
                    "services with mentorship and funding opportunities.",
        source="grab.com",
        confidence=0.75,
        type="opportunity",
        metadata=SearchMetadata(sector="mobility", location="Southeast Asia", amount="USD100,000",
                                stage="Seed to Series A"),
    ),
]

_STARTUP_INSIGHTS = [
    SearchResult(
        title="Malaysian Startup Ecosystem Report 2024",
        description="Latest insights on Malaysian startup funding trends, with fintech and healthtech leading "
                    "sectors. Total ecosystem valuation reached RM2.8 billion.",
        source="startup.my",
        confidence=0.8,
        type="insight",
        metadata=SearchMetadata(sector="ecosystem", location="Malaysia"),
    ),
    SearchResult(
        title="Southeast Asia Tech Investment Trends",
        description="Regional analysis showing Malaysia as emerging hub for B2B SaaS and climate tech solutions, "
                    "with government backing through MSC status benefits.",
        source="techinasia.com",
        confidence=0.75,
        type="insight",
        metadata=SearchMetadata(sector="technology", location="Southeast Asia"),
    ),
]

_UPCOMING_EVENTS = [
    SearchResult(
        title="Malaysia Tech Entrepreneur Programme (MTEP) Demo Day",
        description="Quarterly showcase of Malaysian tech startups presenting to investors and corporate partners, "
                    "focusing on scalable technology solutions.",
        source="mtep.my",
        confidence=0.85,
        type="event",
        metadata=SearchMetadata(sector="technology", location="Kuala Lumpur", deadline="Next quarter"),
    ),
    SearchResult(
        title="Fintech Malaysia Conference",
        description="Annual gathering of fintech innovators, regulators, and investors discussing digital banking, "
                    "blockchain, and financial inclusion in Malaysia.",
        source="fintechmalaysia.my",
        confidence=0.8,
        type="event",
        metadata=SearchMetadata(sector="fintech", location="Malaysia", deadline="Annual event"),
    ),
]

FALLBACK_SOURCES = frozenset(
    item.source for item in [*_MALAYSIA_OPPORTUNITIES, *_STARTUP_INSIGHTS, *_UPCOMING_EVENTS]
)


def _copies(items: List[SearchResult]) -> List[SearchResult]:
    return [item.model_copy(deep=True) for item in items]


def _matches(item: SearchResult, field: str, needle: str) -> bool:
    needle = needle.lower()
    value = getattr(item.metadata, field) or ""
    return (needle in value.lower()
            or needle in item.title.lower()
            or needle in item.description.lower())


def get_fallback_results(sector: Optional[str] = None, location: Optional[str] = None) -> List[SearchResult]:
    """
    Curated funding opportunities filtered by case-insensitive substring match.

    Sector is matched against metadata sector, title and description; location
    likewise against metadata location. When nothing matches the first three
    entries of the unfiltered list are returned.
    """
    results = list(_MALAYSIA_OPPORTUNITIES)
    if sector:
        results = [item for item in results if _matches(item, "sector", sector)]
    if location:
        results = [item for item in results if _matches(item, "location", location)]
    if not results:
        results = _MALAYSIA_OPPORTUNITIES[:3]
    return _copies(results)


def get_startup_insights() -> List[SearchResult]:
    return _copies(_STARTUP_INSIGHTS)


def get_upcoming_events() -> List[SearchResult]:
    return _copies(_UPCOMING_EVENTS)
