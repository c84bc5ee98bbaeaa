"""
Database Schemas Module

This module defines Pydantic models for request/response validation and serialization.
Includes the discovery pipeline's value types (profiles, search results, scraping
results, import reports) and the request/response models of the HTTP API.

Key Features:
- Input validation
- Response serialization
- Confidence clamping and provenance tagging
- Optional and required field definitions
"""
from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any, Literal
from datetime import datetime
import re

ROLES = ("FOUNDER", "FUNDER", "ADMIN", "ECOSYSTEM_BUILDER")
APPLICATION_STATUSES = ("SUBMITTED", "UNDER_REVIEW", "ACCEPTED", "REJECTED")

Role = Literal["FOUNDER", "FUNDER", "ADMIN", "ECOSYSTEM_BUILDER"]
Provenance = Literal["live", "fallback"]
ResultType = Literal["opportunity", "startup", "event", "insight"]


def clamp_confidence(value: float) -> float:
    """Clamp a heuristic confidence score into [0, 1]."""
    if value is None:
        return 0.0
    return max(0.0, min(1.0, float(value)))


# Discovery pipeline value types
class UserProfile(BaseModel):
    """Read-only view of a user that drives query building and scoring."""
    id: Optional[int] = None
    role: Role = "FOUNDER"
    sector: Optional[str] = None
    location: Optional[str] = None
    interests: List[str] = Field(default_factory=list)
    experience: Optional[str] = None
    stage: Optional[str] = None
    investment_range: Optional[str] = None

    @validator('interests', pre=True)
    def split_interests(cls, v):
        """Accept either a list or a comma-separated string."""
        if v is None:
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @classmethod
    def from_user(cls, user) -> "UserProfile":
        """Build a profile from a User row."""
        return cls(
            id=user.id,
            role=user.role if user.role in ROLES else "FOUNDER",
            sector=user.sector,
            location=user.location,
            interests=user.interests,
            experience=user.experience,
            stage=user.stage,
            investment_range=user.investment_range,
        )


class SearchMetadata(BaseModel):
    sector: Optional[str] = None
    location: Optional[str] = None
    deadline: Optional[str] = None
    amount: Optional[str] = None
    stage: Optional[str] = None
    provider: Optional[str] = None
    opportunity_type: Optional[str] = None


class SearchResult(BaseModel):
    """One candidate item returned by the AI search, web search or fallback provider."""
    title: str
    description: str = ""
    source: str
    confidence: float = 0.5
    type: ResultType = "insight"
    url: Optional[str] = None
    relevance_score: Optional[float] = None
    metadata: SearchMetadata = Field(default_factory=SearchMetadata)

    @validator('confidence', pre=True, always=True)
    def clamp(cls, v):
        return clamp_confidence(v)


class ScrapedStartup(BaseModel):
    name: str
    description: str = ""
    sector: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    stage: Optional[str] = None
    funding_amount: Optional[str] = None
    founded_year: Optional[int] = None
    source: str
    confidence: float
    provenance: Provenance = "live"

    @validator('confidence', pre=True, always=True)
    def clamp(cls, v):
        return clamp_confidence(v)


class ScrapedOpportunity(BaseModel):
    title: str
    description: str = ""
    provider: Optional[str] = None
    type: str = "Grant"
    deadline: Optional[datetime] = None
    amount: Optional[str] = None
    link: Optional[str] = None
    sector: Optional[str] = None
    location: Optional[str] = None
    source: str
    confidence: float
    provenance: Provenance = "live"

    @validator('confidence', pre=True, always=True)
    def clamp(cls, v):
        return clamp_confidence(v)


class ScrapedEvent(BaseModel):
    name: str
    description: str = ""
    date: Optional[datetime] = None
    venue: Optional[str] = None
    link: Optional[str] = None
    source: str
    confidence: float
    provenance: Provenance = "live"

    @validator('confidence', pre=True, always=True)
    def clamp(cls, v):
        return clamp_confidence(v)


class Insights(BaseModel):
    market_trends: List[str] = Field(default_factory=list)
    key_findings: str = ""
    recommendations: List[str] = Field(default_factory=list)


class ScrapingResult(BaseModel):
    """Request-scoped aggregate produced by one discovery run. Never persisted as a unit."""
    startups: List[ScrapedStartup] = Field(default_factory=list)
    opportunities: List[ScrapedOpportunity] = Field(default_factory=list)
    events: List[ScrapedEvent] = Field(default_factory=list)
    insights: Insights = Field(default_factory=Insights)
    generated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def provenance(self) -> str:
        """'live', 'fallback' or 'mixed' depending on where the items came from."""
        kinds = {item.provenance for item in [*self.startups, *self.opportunities, *self.events]}
        if not kinds:
            return "live"
        if len(kinds) > 1:
            return "mixed"
        return kinds.pop()


class ScrapingResultResponse(ScrapingResult):
    """ScrapingResult with its provenance serialized for API clients."""
    provenance: str = "live"

    @classmethod
    def from_result(cls, result: ScrapingResult) -> "ScrapingResultResponse":
        return cls(**result.model_dump(), provenance=result.provenance)


class ImportCounts(BaseModel):
    startups: int = 0
    opportunities: int = 0
    events: int = 0


class ImportReport(BaseModel):
    imported: ImportCounts = Field(default_factory=ImportCounts)
    errors: List[str] = Field(default_factory=list)


# User schemas
class UserCreate(BaseModel):
    """Registration payload."""
    email: str
    password: str
    role: Role = "FOUNDER"
    name: Optional[str] = None

    @validator('email')
    def validate_email(cls, v):
        if not re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', v):
            raise ValueError('Invalid email format')
        return v.lower()

    @validator('password')
    def validate_password(cls, v):
        """Require 8+ characters with lowercase, uppercase and a digit."""
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        if not re.search(r'[a-z]', v):
            raise ValueError('Password must contain lowercase letter')
        if not re.search(r'[A-Z]', v):
            raise ValueError('Password must contain uppercase letter')
        if not re.search(r'\d', v):
            raise ValueError('Password must contain number')
        return v


class UserLogin(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    sector: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    interests: Optional[List[str]] = None
    experience: Optional[str] = None
    stage: Optional[str] = None
    website: Optional[str] = None
    funding_stage: Optional[str] = None
    investment_focus: Optional[str] = None
    investment_range: Optional[str] = None
    onboarding_completed: Optional[bool] = None


class UserResponse(BaseModel):
    id: int
    email: str
    role: str
    name: Optional[str] = None
    company: Optional[str] = None
    sector: Optional[str] = None
    location: Optional[str] = None
    interests: Optional[List[str]] = None
    stage: Optional[str] = None
    investment_range: Optional[str] = None
    profile_completed: Optional[bool] = None
    onboarding_completed: Optional[bool] = None

    class Config:
        from_attributes = True


class RoleUpdate(BaseModel):
    role: Role


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# Listing schemas
class StartupBase(BaseModel):
    name: str
    description: Optional[str] = None
    sector: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    social_enterprise_flag: bool = True
    stage: Optional[str] = None
    employee_count: Optional[int] = None
    founded_year: Optional[int] = None
    funding_amount: Optional[str] = None


class StartupCreate(StartupBase):
    source: Optional[str] = None
    confidence: Optional[float] = None
    owner_user_id: Optional[int] = None


class StartupResponse(StartupBase):
    id: int
    source: Optional[str] = None
    confidence: Optional[float] = None
    owner_user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OpportunityBase(BaseModel):
    title: str
    description: Optional[str] = None
    provider: Optional[str] = None
    type: str
    criteria: Optional[str] = None
    deadline: Optional[datetime] = None
    amount: Optional[str] = None
    link: Optional[str] = None
    sector: Optional[str] = None
    location: Optional[str] = None


class OpportunityCreate(OpportunityBase):
    source: Optional[str] = None
    confidence: Optional[float] = None
    creator_user_id: Optional[int] = None


class OpportunityResponse(OpportunityBase):
    id: int
    source: Optional[str] = None
    confidence: Optional[float] = None
    creator_user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EventBase(BaseModel):
    name: str
    description: Optional[str] = None
    date: Optional[datetime] = None
    venue: Optional[str] = None
    link: Optional[str] = None


class EventCreate(EventBase):
    source: Optional[str] = None
    confidence: Optional[float] = None
    creator_user_id: Optional[int] = None


class EventResponse(EventBase):
    id: int
    source: Optional[str] = None
    confidence: Optional[float] = None
    creator_user_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Application schemas
class ApplicationCreate(BaseModel):
    opportunity_id: int = Field(..., gt=0)
    cover_letter: str = Field(..., min_length=50)
    project_description: str = Field(..., min_length=100)
    funding_requested: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = None


class ApplicationStatusUpdate(BaseModel):
    status: str

    @validator('status')
    def validate_status(cls, v):
        if v not in APPLICATION_STATUSES:
            raise ValueError(f"status must be one of {list(APPLICATION_STATUSES)}")
        return v


class ApplicationResponse(BaseModel):
    id: int
    user_id: int
    opportunity_id: int
    status: str
    cover_letter: Optional[str] = None
    funding_requested: Optional[str] = None
    project_description: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Discovery request schemas
class ImportRequest(BaseModel):
    results: ScrapingResult


class PersonalizedSearchRequest(BaseModel):
    query: Optional[str] = None
    sector: Optional[str] = None
    location: Optional[str] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)


class OnboardingRequest(BaseModel):
    """Questionnaire answers keyed by question id; values are text, numbers, booleans or lists."""
    responses: Dict[str, Any] = Field(default_factory=dict)
