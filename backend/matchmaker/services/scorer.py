from typing import Any, Optional

from ..db.schemas import SearchResult, UserProfile, clamp_confidence
from ..utils.logger import scorer_logger as logger


def _contains(haystack: Optional[str], needle: Optional[str]) -> bool:
    return bool(haystack and needle and needle.lower() in haystack.lower())


class Scorer:
    """
    Heuristic scores for discovery results and stored listings.

    Confidence decides whether a freshly discovered item is kept; match score
    ranks stored opportunities and startups for a particular user.
    """

    def __init__(self):
        # Sources whose reporting is trusted enough to boost confidence
        self.trusted_sources = ["techcrunch", "crunchbase", "reuters", "bloomberg", "pitchbook"]

        # Early stages rank higher for founders browsing opportunities
        self.stage_weights = {
            "pre-seed": 10,
            "seed": 10,
            "early stage": 8,
            "series a": 6,
            "series b": 4,
        }

        logger.info("Scorer initialized")

    def calculate_confidence(self, item: SearchResult, profile: UserProfile) -> float:
        """
        Confidence for a discovered item.

        Starts from the item's relevance score (as a fraction) or 0.5, then adds
        0.2 for a sector match, 0.1 for a location match and 0.15 for a trusted
        source. Clamped to [0, 1].
        """
        confidence = item.relevance_score / 100 if item.relevance_score else 0.5

        if profile.sector and _contains(item.metadata.sector, profile.sector):
            confidence += 0.2
        if profile.location and _contains(item.metadata.location, profile.location):
            confidence += 0.1
        if any(source in (item.source or "").lower() for source in self.trusted_sources):
            confidence += 0.15

        return clamp_confidence(confidence)

    def calculate_match_score(self, row: Any, profile: UserProfile) -> int:
        """
        Deterministic 0-100 match between a stored listing and a profile.

        Args:
            row: Opportunity or Startup ORM object (sector, location and optionally stage)
            profile: The viewing user's profile

        Returns:
            Integer score, higher is a better fit
        """
        score = 50
        if profile.sector and _contains(getattr(row, "sector", None), profile.sector):
            score += 25
        if profile.location and _contains(getattr(row, "location", None), profile.location):
            score += 15

        stage = (getattr(row, "stage", None) or "").lower()
        if profile.stage and stage and profile.stage.lower() in stage:
            score += 10
        else:
            score += next((w for name, w in self.stage_weights.items() if name in stage), 0) // 2

        text = f"{getattr(row, 'title', '') or getattr(row, 'name', '')} {getattr(row, 'description', '') or ''}"
        if any(_contains(text, interest) for interest in profile.interests):
            score += 5

        return max(0, min(100, score))
