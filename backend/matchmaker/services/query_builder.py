"""
Query Builder Module

Builds the natural-language search strings sent to the AI and web search
clients. Queries are tailored to the user's role and carry the profile's
sector and location verbatim.
"""

from typing import List, Optional

from ..db.schemas import UserProfile


def _join(*parts: Optional[str]) -> str:
    """Join non-empty fragments with single spaces."""
    return " ".join(part.strip() for part in parts if part and part.strip())


class QueryBuilder:
    """
    Utility for building role-specific discovery queries.
    All methods are pure string construction.
    """

    @staticmethod
    def build_search_query(profile: UserProfile, query: Optional[str] = None) -> str:
        """
        Build the single search prompt for a profile.

        Args:
            profile: Role, sector, location, stage and investment range drive the wording
            query: Optional free text; appended when longer than 3 characters

        Returns:
            Search string
        """
        if profile.role == "FOUNDER":
            text = (f"Find startup funding opportunities, accelerators, grants, and competitions "
                    f"in Malaysia for {profile.sector or 'startups'}")
            if profile.location:
                text += f" based in {profile.location}"
            if profile.stage:
                text += f" at {profile.stage} stage"
            text += ". Include application deadlines, funding amounts, and requirements. " \
                    "Focus on recent programs in 2024-2025."
        elif profile.role == "FUNDER":
            text = "Find promising startups and investment opportunities in Malaysia"
            if profile.sector:
                text += f" in {profile.sector} sector"
            if profile.location:
                text += f" located in {profile.location}"
            if profile.investment_range:
                text += f" with investment range {profile.investment_range}"
            text += ". Include information about funding rounds, traction, team, and growth metrics. " \
                    "Focus on seed to Series A companies."
        else:
            text = ("Find startup ecosystem updates, accelerator programs, and partnership "
                    "opportunities in Malaysia")
            if profile.sector:
                text += f" related to {profile.sector}"
            if profile.location:
                text += f" around {profile.location}"
            text += ". Include information about new programs, government initiatives, and industry trends."

        if query and len(query) > 3:
            text += f" Additionally, {query}"
        return text

    @staticmethod
    def generate_search_queries(profile: UserProfile) -> List[str]:
        """
        Generate the 1-3 focused sub-queries run for one discovery pass.

        FOUNDER: funding, mentorship and (when interests are set) events.
        FUNDER: startups, funding rounds and deal flow.
        Everyone else: two ecosystem-wide queries.
        """
        if profile.role == "FOUNDER":
            queries = [
                _join("funding opportunities grants accelerators for", profile.sector,
                      "startups", profile.location, profile.stage),
                _join("partnerships mentorship programs for", profile.sector, "founders"),
            ]
            if profile.interests:
                queries.append(_join("startup competitions events conferences", *profile.interests))
            return queries

        if profile.role == "FUNDER":
            return [
                _join("promising startups investment opportunities", profile.sector, profile.location),
                _join("startup funding rounds series A seed", profile.sector, profile.investment_range),
                _join("venture capital deal flow", profile.sector, "emerging companies"),
            ]

        return [
            "startup ecosystem Malaysia funding opportunities new companies",
            "venture capital activity Southeast Asia startup trends",
        ]

    @staticmethod
    def build_market_query(sector: str, location: Optional[str] = None) -> str:
        text = f"Current market trends and opportunities in {sector} sector"
        if location:
            text += f" in {location}"
        return text
