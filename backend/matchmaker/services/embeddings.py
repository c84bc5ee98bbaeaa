"""
Embedding Service Module

Turns listing descriptions into vectors for similarity lookups.

Vectors come from OpenAI's embedding endpoint when a key is configured, and
from a deterministic hashed bag-of-words generator otherwise. Every vector is
tagged with the generator that produced it and its dimension so that vectors
from different generators are never compared with each other.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from openai import AsyncOpenAI
from tenacity import retry, stop_after_attempt, wait_fixed

from ..utils.config import settings
from ..utils.logger import nlp_logger as logger

HASHED_GENERATOR = "hashed-bow-v1"
HASHED_DIMENSION = 384


class EmbeddingDimensionMismatch(ValueError):
    """Raised when two vectors come from different generators or dimensions."""


@dataclass(frozen=True)
class EmbeddingVector:
    vector: List[float]
    generator: str
    dimension: int


def _string_hash(word: str) -> int:
    """32-bit rolling hash ((h << 5) - h + c), returned as a non-negative int."""
    h = 0
    for char in word:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def hashed_embedding(text: str, dimension: int = HASHED_DIMENSION) -> EmbeddingVector:
    """Deterministic L2-normalised bag-of-words vector."""
    vector = np.zeros(dimension, dtype=float)
    for word in re.findall(r"\w+", (text or "").lower()):
        vector[_string_hash(word) % dimension] += 1.0
    norm = np.linalg.norm(vector)
    if norm > 0:
        vector = vector / norm
    return EmbeddingVector(vector=vector.tolist(), generator=HASHED_GENERATOR, dimension=dimension)


def cosine_similarity(a: EmbeddingVector, b: EmbeddingVector) -> float:
    """
    Cosine similarity of two tagged vectors.

    Raises:
        EmbeddingDimensionMismatch: if the vectors were produced by different
            generators or have different lengths
    """
    if a.generator != b.generator or a.dimension != b.dimension or len(a.vector) != len(b.vector):
        raise EmbeddingDimensionMismatch(
            f"Cannot compare {a.generator}/{a.dimension} with {b.generator}/{b.dimension}"
        )
    va = np.asarray(a.vector, dtype=float)
    vb = np.asarray(b.vector, dtype=float)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class EmbeddingService:
    """Generates tagged embeddings, preferring OpenAI when it is configured."""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.model = settings.OPENAI_EMBEDDING_MODEL
        if client is None and settings.OPENAI_API_KEY:
            client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT,
                max_retries=0,
            )
        self.client = client

    @retry(stop=stop_after_attempt(2), wait=wait_fixed(1), reraise=True)
    async def _openai_embedding(self, text: str) -> EmbeddingVector:
        response = await self.client.embeddings.create(model=self.model, input=text)
        vector = list(response.data[0].embedding)
        return EmbeddingVector(vector=vector, generator=f"openai:{self.model}", dimension=len(vector))

    async def generate(self, text: str) -> EmbeddingVector:
        """Embed text; OpenAI failures fall back to the hashed generator."""
        if self.client is not None:
            try:
                return await self._openai_embedding(text)
            except Exception as e:
                logger.warning(f"OpenAI embedding failed, using hashed embedding: {str(e)}")
        return hashed_embedding(text)
