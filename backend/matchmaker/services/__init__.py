"""
Services package for the Startup Ecosystem Matcher.
Contains the discovery pipeline and shared infrastructure clients.
"""

from .query_builder import QueryBuilder
from .ai_search import AISearchClient
from .web_search import WebSearchClient
from .embeddings import EmbeddingService, EmbeddingDimensionMismatch
from .scorer import Scorer
from .intelligent_scraper import IntelligentScrapingService

__all__ = [
    'QueryBuilder',                 # Role-specific query construction
    'AISearchClient',               # Perplexity / OpenAI search
    'WebSearchClient',              # Search-engine scraping
    'EmbeddingService',             # Tagged embeddings
    'EmbeddingDimensionMismatch',   # Cross-generator comparison error
    'Scorer',                       # Confidence and match scoring
    'IntelligentScrapingService',   # Discovery orchestrator and import
]
