"""
AI Search Module

Sends role-tailored discovery prompts to hosted chat-completion models and
turns the answers into structured search results.

Perplexity is tried first and OpenAI second; both are reached through the
OpenAI SDK (Perplexity exposes a compatible endpoint). The models are asked
for a JSON array; free-text answers are still parsed line by line.

Key Features:
- Primary/secondary backend fallback with per-backend timeouts
- Structured (JSON) output with heuristic text parsing as a fallback
- Role-aware result typing and keyword metadata extraction
- Heuristic confidence scoring
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from openai import AsyncOpenAI

from ..db.schemas import SearchMetadata, SearchResult, UserProfile
from ..utils.config import settings
from ..utils.logger import search_logger as logger
from .query_builder import QueryBuilder

PERPLEXITY_SOURCE = "Perplexity AI Search"
OPENAI_SOURCE = "OpenAI Search"
MAX_AI_RESULTS = 10
MIN_DESCRIPTION_LINE = 20
RESULT_TYPES = ("opportunity", "startup", "event", "insight")

PERPLEXITY_SYSTEM_PROMPT = (
    "You are a helpful assistant that finds startup ecosystem opportunities and information. "
    "Return results in a structured format with clear titles, descriptions, sources, and relevant "
    "metadata like deadlines, amounts, locations, and sectors."
)
OPENAI_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that provides information about Malaysian startups, funding "
    "opportunities, and business ecosystem. Focus on providing accurate, current information about "
    "the Malaysian startup and investment landscape."
)
JSON_INSTRUCTIONS = (
    " Respond with a JSON array only. Each element must be an object with the keys "
    "\"title\", \"description\", \"type\" (one of opportunity, startup, event, insight), "
    "\"url\", \"deadline\", \"amount\", \"sector\", \"location\" and \"stage\"; use null when unknown."
)

TITLE_KEYWORDS = ("Program", "Fund", "Grant", "Accelerator", "Startup")
STAGE_KEYWORDS = [
    ("seed", "Seed"),
    ("series a", "Series A"),
    ("series b", "Series B"),
    ("pre-seed", "Pre-Seed"),
    ("early stage", "Early Stage"),
]
SECTOR_KEYWORDS = ["fintech", "healthtech", "edtech", "cleantech", "agritech", "proptech"]
LOCATION_KEYWORDS = ["malaysia", "singapore", "kuala lumpur", "klang valley", "penang", "johor"]

DEADLINE_PATTERNS = [
    re.compile(r"deadline[:\s]+([^.]+)", re.I),
    re.compile(r"apply by[:\s]+([^.]+)", re.I),
    re.compile(r"closes?[:\s]+([^.]+)", re.I),
]
AMOUNT_PATTERNS = [
    re.compile(r"(\$[\d,]+(?:\.\d{2})?(?:[kmb])?|\d+[kmb]?[\s]*(?:million|thousand))", re.I),
    re.compile(r"funding[:\s]+([^.]+)", re.I),
]


def is_likely_title(line: str) -> bool:
    return bool(
        re.match(r"^\d+\.", line)
        or (re.match(r"^[A-Z]", line) and len(line) < 100 and line.endswith(":"))
        or re.match(r"^\*\*.*\*\*", line)
        or any(keyword in line for keyword in TITLE_KEYWORDS)
    )


def clean_title(title: str) -> str:
    title = re.sub(r"^\d+\.\s*", "", title)
    title = re.sub(r"^\*\*", "", title)
    title = re.sub(r"\*\*$", "", title)
    title = re.sub(r":$", "", title)
    return title.strip()


def determine_type(title: str, role: str) -> str:
    lower = title.lower()
    if role == "FOUNDER":
        if any(word in lower for word in ("grant", "fund", "accelerator", "program")):
            return "opportunity"
        if any(word in lower for word in ("event", "conference", "demo")):
            return "event"
    elif role == "FUNDER":
        if "startup" in lower or "company" in lower:
            return "startup"
    return "insight"


def extract_metadata(text: str, field: str) -> Optional[str]:
    """Pull one metadata field (deadline, amount, stage, sector, location) out of free text."""
    lower = text.lower()
    if field == "deadline":
        for pattern in DEADLINE_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None
    if field == "amount":
        for pattern in AMOUNT_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None
    if field == "stage":
        for keyword, label in STAGE_KEYWORDS:
            if keyword in lower:
                return label
        return None
    if field == "sector":
        for sector in SECTOR_KEYWORDS:
            if sector in lower:
                return sector.capitalize()
        return None
    if field == "location":
        for location in LOCATION_KEYWORDS:
            if location in lower:
                return " ".join(word.capitalize() for word in location.split(" "))
        return None
    return None


def calculate_confidence(title: str, description: str, profile: UserProfile) -> float:
    """Base 0.8, +0.1 sector match, +0.1 location match, +0.05 long description; capped at 1.0."""
    confidence = 0.8
    title = (title or "").lower()
    description = (description or "").lower()

    if profile.sector and (profile.sector.lower() in description or profile.sector.lower() in title):
        confidence += 0.1
    if profile.location and (profile.location.lower() in description or profile.location.lower() in title):
        confidence += 0.1
    if len(description) > 200:
        confidence += 0.05
    return min(confidence, 1.0)


def _complete_result(title: str, description: str, result_type: str, profile: UserProfile,
                     url: Optional[str] = None, hints: Optional[Dict[str, Any]] = None,
                     source: str = PERPLEXITY_SOURCE) -> SearchResult:
    hints = hints or {}
    confidence = calculate_confidence(title, description, profile)
    return SearchResult(
        title=title or "Untitled",
        description=description or "No description available",
        source=source,
        confidence=confidence,
        relevance_score=round(confidence * 100),
        type=result_type,
        url=url,
        metadata=SearchMetadata(
            sector=hints.get("sector") or extract_metadata(description, "sector") or profile.sector,
            location=hints.get("location") or extract_metadata(description, "location") or profile.location,
            deadline=hints.get("deadline") or extract_metadata(description, "deadline"),
            amount=hints.get("amount") or extract_metadata(description, "amount"),
            stage=hints.get("stage") or extract_metadata(description, "stage"),
        ),
    )


def _strip_code_fence(content: str) -> str:
    content = content.strip()
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", content, re.S)
    return fenced.group(1) if fenced else content


def parse_json_results(content: str, profile: UserProfile,
                       source: str = PERPLEXITY_SOURCE) -> Optional[List[SearchResult]]:
    """
    Parse a JSON array answer. Returns None when the content is not a JSON
    array of objects, so the caller can fall back to text parsing.
    """
    try:
        data = json.loads(_strip_code_fence(content))
    except (json.JSONDecodeError, TypeError):
        return None
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        data = data["results"]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        return None

    results = []
    for item in data:
        title = clean_title(str(item.get("title") or ""))
        if not title:
            continue
        description = str(item.get("description") or "")
        result_type = item.get("type")
        if result_type not in RESULT_TYPES:
            result_type = determine_type(title, profile.role)
        hints = {key: item.get(key) for key in ("sector", "location", "deadline", "amount", "stage")
                 if isinstance(item.get(key), str) and item.get(key)}
        url = item.get("url") if isinstance(item.get("url"), str) else None
        results.append(_complete_result(title, description, result_type, profile,
                                        url=url, hints=hints, source=source))
    return results[:MAX_AI_RESULTS]


def parse_text_results(content: str, profile: UserProfile,
                       source: str = PERPLEXITY_SOURCE) -> List[SearchResult]:
    """
    Split a free-text answer into results.

    A title-like line starts a new result; following lines longer than 20
    characters accumulate as its description. Results without a description
    are dropped. If nothing title-like is found but the answer is longer than
    100 characters, a single generic result is built from its first 300.
    """
    results = []
    current = None

    for line in (raw.strip() for raw in content.split("\n")):
        if not line:
            continue
        if is_likely_title(line):
            if current and current["description"]:
                results.append(_complete_result(current["title"], current["description"],
                                                current["type"], profile, source=source))
            current = {"title": clean_title(line), "type": determine_type(line, profile.role), "description": ""}
        elif current is not None and len(line) > MIN_DESCRIPTION_LINE:
            current["description"] = f"{current['description']} {line}".strip()

    if current and current["title"] and current["description"]:
        results.append(_complete_result(current["title"], current["description"], current["type"],
                                        profile, source=source))

    if not results and len(content) > 100:
        founder = profile.role == "FOUNDER"
        results.append(SearchResult(
            title=f"{'Funding Opportunities' if founder else 'Market Intelligence'} Found",
            description=content[:300] + "...",
            source=source,
            confidence=0.7,
            relevance_score=70,
            type="opportunity" if founder else "insight",
            metadata=SearchMetadata(sector=profile.sector, location=profile.location),
        ))

    return results[:MAX_AI_RESULTS]


def parse_search_results(content: str, profile: UserProfile,
                         source: str = PERPLEXITY_SOURCE) -> List[SearchResult]:
    """Structured JSON first, heuristic line parsing otherwise."""
    if not content:
        return []
    parsed = parse_json_results(content, profile, source)
    if parsed is not None:
        return parsed
    return parse_text_results(content, profile, source)


class AISearchClient:
    """
    Chat-completion search with Perplexity as primary and OpenAI as fallback.

    A backend without an API key is skipped. Clients can be injected, which is
    how tests replace the network.
    """

    def __init__(self, perplexity_client: Optional[AsyncOpenAI] = None,
                 openai_client: Optional[AsyncOpenAI] = None):
        if perplexity_client is None and settings.PERPLEXITY_API_KEY:
            perplexity_client = AsyncOpenAI(
                api_key=settings.PERPLEXITY_API_KEY,
                base_url=settings.PERPLEXITY_BASE_URL,
                timeout=settings.PERPLEXITY_TIMEOUT,
                max_retries=0,
            )
        if openai_client is None and settings.OPENAI_API_KEY:
            openai_client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT,
                max_retries=0,
            )
        self.perplexity_client = perplexity_client
        self.openai_client = openai_client

        if not self.perplexity_client and not self.openai_client:
            logger.warning("Neither PERPLEXITY_API_KEY nor OPENAI_API_KEY provided - AI search will be limited")

    async def _perplexity_completion(self, query: str) -> str:
        response = await self.perplexity_client.chat.completions.create(
            model=settings.PERPLEXITY_MODEL,
            messages=[
                {"role": "system", "content": PERPLEXITY_SYSTEM_PROMPT + JSON_INSTRUCTIONS},
                {"role": "user", "content": query},
            ],
            max_tokens=500,
            temperature=0.2,
            top_p=0.9,
            extra_body={"search_recency_filter": "month", "return_images": False,
                        "return_related_questions": False},
        )
        return response.choices[0].message.content or ""

    async def _openai_completion(self, query: str) -> str:
        response = await self.openai_client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": OPENAI_SYSTEM_PROMPT + JSON_INSTRUCTIONS},
                {"role": "user", "content": query},
            ],
            max_tokens=500,
            temperature=0.3,
        )
        return response.choices[0].message.content or ""

    async def answer(self, query: str) -> Tuple[Optional[str], Optional[str]]:
        """
        (answer text, source label) from the first backend that responds, or
        (None, None) if both are unavailable or fail.
        """
        if self.perplexity_client is not None:
            try:
                content = await self._perplexity_completion(query)
                if content:
                    return content, PERPLEXITY_SOURCE
            except Exception as e:
                logger.error(f"Perplexity search failed: {str(e)}")
                logger.info("Falling back to OpenAI...")

        if self.openai_client is not None:
            try:
                content = await self._openai_completion(query)
                if content:
                    return content, OPENAI_SOURCE
            except Exception as e:
                logger.error(f"OpenAI search failed: {str(e)}")

        logger.info("No AI search backend answered, returning empty results")
        return None, None

    async def complete(self, query: str) -> Optional[str]:
        """Raw answer text, or None if no backend answered."""
        content, _ = await self.answer(query)
        return content

    async def search_by_user_profile(self, profile: UserProfile, query: Optional[str] = None) -> List[SearchResult]:
        """Run the role-tailored prompt for a profile. Never raises; failures give []."""
        prompt = QueryBuilder.build_search_query(profile, query)
        content, source = await self.answer(prompt)
        if not content:
            return []
        try:
            results = parse_search_results(content, profile, source)
        except Exception as e:
            logger.error(f"Error parsing search results: {str(e)}")
            return []
        logger.info(f"{source} returned {len(results)} results for {profile.role}")
        return results

    async def search(self, query: str, profile: Optional[UserProfile] = None) -> Dict[str, List[SearchResult]]:
        """Run a raw query. Results are typed as for a founder unless a profile is given."""
        profile = profile or UserProfile(role="FOUNDER")
        content, source = await self.answer(query)
        if not content:
            return {"results": []}
        try:
            return {"results": parse_search_results(content, profile, source)}
        except Exception as e:
            logger.error(f"Error parsing search results: {str(e)}")
            return {"results": []}

    async def get_market_intelligence(self, sector: str, location: Optional[str] = None) -> Dict[str, Any]:
        """Market-trend results for a sector, plus a short plain-text summary."""
        query = QueryBuilder.build_market_query(sector, location)
        response = await self.search(query, UserProfile(role="ADMIN", sector=sector, location=location))
        results = response["results"]
        return {
            "sector": sector,
            "location": location,
            "results": results,
            "summary": " ".join(r.description for r in results)[:300],
        }

    async def summarize(self, text: str) -> Optional[str]:
        """80-word summary via OpenAI; None when OpenAI is unavailable or fails."""
        if self.openai_client is None:
            return None
        try:
            response = await self.openai_client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=[
                    {"role": "system", "content": "You are a concise summarizer. Create exactly 80 words or "
                                                  "less summaries that capture the key points of startups and "
                                                  "opportunities. Focus on impact, market, and unique value "
                                                  "proposition."},
                    {"role": "user", "content": f"Summarize this description in 80 words or less:\n\n{text}"},
                ],
                max_tokens=150,
            )
            return response.choices[0].message.content or None
        except Exception as e:
            logger.error(f"Failed to generate summary: {str(e)}")
            return None

    async def test_connection(self) -> bool:
        """True if the primary backend answers a trivial prompt."""
        if self.perplexity_client is None:
            return False
        try:
            content = await self._perplexity_completion("Test connection to startup ecosystem in Malaysia")
            return bool(content)
        except Exception as e:
            logger.error(f"Perplexity connection test failed: {str(e)}")
            return False
