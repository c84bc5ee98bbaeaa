"""
Web Search Module

Scrapes a search engine's HTML results page for Malaysian startup ecosystem
pages, fetches the most promising ones and pulls opportunity details out of
their readable text with regex heuristics.

Key Features:
- DuckDuckGo HTML results parsing (redirect links decoded from ``uddg``)
- Domain blocklist and stable priority ordering
- Concurrent page fetches with per-page timeout
- Deadline, funding amount, sector and opportunity type extraction
"""

import asyncio
from contextlib import asynccontextmanager
import re
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

import httpx
import trafilatura
from bs4 import BeautifulSoup

from ..db.schemas import SearchMetadata, SearchResult
from ..utils.config import settings
from ..utils.logger import search_logger as logger

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
MAX_RESULT_URLS = 8
MAX_PAGE_CHARS = 10000
MAX_HTML_CHARS = 2_000_000

# relevance_score for pages that pass the domain filter; priority domains rank higher
WEB_RELEVANCE = 70
PRIORITY_WEB_RELEVANCE = 80

URL_PRIORITY_LIST = [
    "gov.my",
    "cradle.com.my",
    "mosti.gov.my",
    "sidec.com.my",
    "mdec.my",
    "avpn.asia",
    "techcrunch.com",
    "startupmalaysia.com",
]

EXCLUDED_DOMAINS = [
    "medium.com", "linkedin.com", "naukri.com", "akamai.com", "x.com",
    "reuters.com", "cbinsights.com", "openai.com", "sp-edge.com",
    "accuweather.com", "blockchain-council.org", "youtube.com",
]

RELEVANT_DOMAIN_KEYWORDS = [
    "gov.my", "cradle", "mosti", "sidec", "mdec", "malaysia", "startup",
    "funding", "grant", "accelerator", "venture", "capital", "entrepreneur",
]

RELEVANT_SENTENCE_KEYWORDS = [
    "fund", "grant", "startup", "entrepreneur", "malaysia", "rm ",
    "million", "thousand", "capital",
]

DEADLINE_PATTERNS = [
    re.compile(r"deadline[:\s]+([^.]+)", re.I),
    re.compile(r"apply by[:\s]+([^.]+)", re.I),
    re.compile(r"submission[:\s]+([^.]+)", re.I),
    re.compile(r"closes?[:\s]+([^.]+)", re.I),
]

AMOUNT_PATTERNS = [
    re.compile(r"rm\s+[\d,]+(?:\s*(?:million|thousand))?", re.I),
    re.compile(r"usd?\s+[\d,]+(?:\s*(?:million|thousand))?", re.I),
    re.compile(r"\$[\d,]+(?:\s*(?:million|thousand))?", re.I),
    re.compile(r"up to\s+[\d,]+", re.I),
]

SECTOR_KEYWORDS = [
    "fintech", "healthtech", "edtech", "agtech", "cleantech", "blockchain",
    "ai", "artificial intelligence", "machine learning", "iot", "cybersecurity",
    "e-commerce", "logistics", "transportation", "energy", "sustainability",
]

OPPORTUNITY_TYPES = [
    ("grant", "Grant"),
    ("accelerator", "Accelerator"),
    ("incubator", "Incubator"),
    ("competition", "Competition"),
    ("fund", "Fund"),
]


def _domain(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def is_excluded_domain(domain: str) -> bool:
    return any(excluded in domain for excluded in EXCLUDED_DOMAINS)


def is_relevant_domain(domain: str) -> bool:
    return any(keyword in domain for keyword in RELEVANT_DOMAIN_KEYWORDS)


def sort_urls_by_priority(urls: List[str], priority_domains: List[str]) -> List[str]:
    """
    Stable partition: URLs on a priority domain first, everything else after,
    each group keeping the order it was encountered in.
    """
    priority_urls = []
    other_urls = []
    for url in urls:
        domain = _domain(url)
        if any(priority in domain for priority in priority_domains):
            priority_urls.append(url)
        else:
            other_urls.append(url)
    return priority_urls + other_urls


def extract_relevant_content(content: str) -> str:
    """First three funding-related sentences, or the first 300 characters."""
    sentences = [s for s in re.split(r"[.!?]+", content) if len(s.strip()) > 20]
    relevant = [
        s for s in sentences
        if any(keyword in s.lower() for keyword in RELEVANT_SENTENCE_KEYWORDS)
    ]
    result = ". ".join(relevant[:3]).strip()
    return result if len(result) > 50 else content[:300]


def extract_opportunity_type(content: str) -> str:
    lower = content.lower()
    for keyword, label in OPPORTUNITY_TYPES:
        if keyword in lower:
            return label
    return "Opportunity"


def extract_deadline(content: str) -> Optional[str]:
    for pattern in DEADLINE_PATTERNS:
        match = pattern.search(content)
        if match and match.group(1):
            return match.group(1).strip()[:50]
    return None


def extract_funding_amount(content: str) -> Optional[str]:
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(0).strip()
    return None


def extract_sector(content: str) -> Optional[str]:
    lower = content.lower()
    for sector in SECTOR_KEYWORDS:
        if sector in lower:
            return sector[0].upper() + sector[1:]
    return None


def parse_result_links(html: str) -> List[Dict[str, str]]:
    """
    Recover target URLs (and anchor text) from a DuckDuckGo HTML results page.

    Only http(s) targets are kept, duplicates dropped, capped at 8.
    """
    soup = BeautifulSoup(html, "html.parser")
    links = []
    seen = set()
    for anchor in soup.select("a[href*='uddg=']"):
        match = re.search(r"uddg=([^&]+)", anchor.get("href", ""))
        if not match:
            continue
        url = unquote(match.group(1))
        if not url.startswith("http") or url in seen:
            continue
        seen.add(url)
        links.append({"url": url, "title": anchor.get_text(" ", strip=True)})
        if len(links) >= MAX_RESULT_URLS:
            break
    return links


class WebSearchClient:
    """
    Search-engine scraper for startup opportunities.

    Every search opens its own ``httpx.AsyncClient`` so one instance can serve
    overlapping searches. A client passed in is shared by all calls and its
    lifetime stays with the caller.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.WEB_SEARCH_BASE_URL
        self.timeout = settings.WEB_SEARCH_TIMEOUT
        self.max_pages = settings.WEB_SEARCH_MAX_PAGES
        self.client = client
        self.transport = transport

    @asynccontextmanager
    async def _http(self):
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True,
                                     transport=self.transport) as client:
            yield client

    async def _fetch_result_links(self, http: httpx.AsyncClient, query: str) -> List[Dict[str, str]]:
        response = await http.get(
            self.base_url,
            params={"q": query},
            headers={"Accept": "text/html", "User-Agent": USER_AGENT},
            timeout=self.timeout,
        )
        response.raise_for_status()
        links = parse_result_links(response.text)
        logger.info(f"Extracted URLs: {', '.join(link['url'] for link in links)}")
        return links

    async def fetch_article_content(self, http: httpx.AsyncClient, url: str) -> Optional[str]:
        """Readable text of a page, or None if it could not be fetched."""
        try:
            response = await http.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
            response.raise_for_status()
            # HTML parsing is CPU bound; keep it off the event loop
            loop = asyncio.get_running_loop()
            text = await loop.run_in_executor(None, trafilatura.extract, response.text[:MAX_HTML_CHARS])
            return (text or "").strip()[:MAX_PAGE_CHARS]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch {url}: {str(e)}")
            return None

    async def search(self, query: str) -> Dict[str, Any]:
        """
        Search for startup opportunities related to ``query``.

        Returns:
            {"results": [SearchResult], "total": int}; an empty result set if the
            results page itself cannot be fetched
        """
        enhanced_query = f"{query} Malaysia startup grants funding opportunities"
        async with self._http() as http:
            try:
                links = await self._fetch_result_links(http, enhanced_query)
            except httpx.HTTPError as e:
                logger.error(f"Error searching startup opportunities: {str(e)}")
                return {"results": [], "total": 0}

            titles = {link["url"]: link["title"] for link in links}
            candidates = [
                link["url"] for link in links
                if not is_excluded_domain(_domain(link["url"])) and is_relevant_domain(_domain(link["url"]))
            ]
            urls = sort_urls_by_priority(candidates, URL_PRIORITY_LIST)[:self.max_pages]
            pages = await asyncio.gather(*(self.fetch_article_content(http, url) for url in urls))

        results = []
        for url, content in zip(urls, pages):
            if not content or len(content) <= 50:
                continue
            domain = _domain(url)
            priority = any(p in domain for p in URL_PRIORITY_LIST)
            results.append(SearchResult(
                title=titles.get(url) or f"Startup Opportunity: {query}",
                description=extract_relevant_content(content),
                source="Web Search",
                url=url,
                type="opportunity",
                relevance_score=PRIORITY_WEB_RELEVANCE if priority else WEB_RELEVANCE,
                metadata=SearchMetadata(
                    deadline=extract_deadline(content),
                    amount=extract_funding_amount(content),
                    sector=extract_sector(content),
                    opportunity_type=extract_opportunity_type(content),
                    provider=domain,
                ),
            ))

        logger.info(f"Found {len(results)} startup opportunities for query: {query}")
        return {"results": results, "total": len(results)}

    async def run(self, query: str) -> str:
        """Readable text of the top three non-blocked result pages, joined."""
        if not query or len(query.strip()) < 2:
            return ""
        async with self._http() as http:
            try:
                links = await self._fetch_result_links(http, query)
            except httpx.HTTPError as e:
                logger.info(f"search error: {str(e)}")
                return ""
            urls = [link["url"] for link in links if not is_excluded_domain(_domain(link["url"]))]
            urls = sort_urls_by_priority(urls, URL_PRIORITY_LIST)[:3]
            pages = await asyncio.gather(*(self.fetch_article_content(http, url) for url in urls))
        return "\n\n".join(page for page in pages if page)

    async def get_market_intelligence(self, sector: str, location: str = "Malaysia") -> Dict[str, List[str]]:
        query = f"{sector} market trends startup opportunities {location} 2024 2025"
        content = await self.run(query)

        if len(content) > 50:
            return {
                "insights": [content[:200] + "..."],
                "trends": [f"{sector} sector showing growth in {location}"],
                "opportunities": [f"Multiple opportunities available in {sector} sector"],
            }
        return {
            "insights": ["Market data available through web search"],
            "trends": ["Growing ecosystem in Malaysia"],
            "opportunities": ["Various funding opportunities available"],
        }
