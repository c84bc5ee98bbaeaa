"""
Database Models Module

This module defines SQLAlchemy ORM models for the application's database schema.
Models cover platform users, the startups / opportunities / events they browse,
vector embeddings for similarity lookups, applications and saved opportunities.
"""
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Text, JSON, Float
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class User(Base):
    """
    Platform account with the profile fields that drive discovery.
    Role is one of FOUNDER, FUNDER, ADMIN, ECOSYSTEM_BUILDER.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="FOUNDER")
    name = Column(String, nullable=True)
    profile_completed = Column(Boolean, default=False)
    onboarding_completed = Column(Boolean, default=False)
    # Profile fields
    company = Column(String, nullable=True)
    sector = Column(String, nullable=True)
    location = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    interests = Column(JSON, nullable=True)
    experience = Column(String, nullable=True)
    stage = Column(String, nullable=True)
    website = Column(String, nullable=True)
    funding_stage = Column(String, nullable=True)
    investment_focus = Column(String, nullable=True)
    investment_range = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    startups = relationship("Startup", back_populates="owner")


class Startup(Base):
    """Startup company listing, owned by a founder or imported from scraping."""
    __tablename__ = "startups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    sector = Column(String, nullable=True)
    location = Column(String, nullable=True)
    website = Column(String, nullable=True)
    social_enterprise_flag = Column(Boolean, default=True)
    stage = Column(String, nullable=True)
    employee_count = Column(Integer, nullable=True)
    founded_year = Column(Integer, nullable=True)
    funding_amount = Column(String, nullable=True)
    source = Column(String, nullable=True)
    confidence = Column(Float, nullable=True)
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    owner = relationship("User", back_populates="startups")


class Opportunity(Base):
    """Funding program, grant, accelerator or investor listing."""
    __tablename__ = "opportunities"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    provider = Column(String, nullable=True)
    type = Column(String, nullable=False)
    criteria = Column(Text, nullable=True)
    deadline = Column(DateTime, nullable=True)
    amount = Column(String, nullable=True)
    link = Column(String, nullable=True)
    sector = Column(String, nullable=True)
    location = Column(String, nullable=True)
    source = Column(String, nullable=True)
    confidence = Column(Float, nullable=True)
    creator_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Event(Base):
    """Ecosystem event such as a demo day or conference."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime, nullable=True)
    venue = Column(String, nullable=True)
    link = Column(String, nullable=True)
    source = Column(String, nullable=True)
    confidence = Column(Float, nullable=True)
    creator_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Embedding(Base):
    """
    Vector for a (row_type, row_id) pair.

    Vectors are tagged with the generator that produced them and their
    dimension; similarity is only computed between matching tags.
    """
    __tablename__ = "embeddings"

    id = Column(Integer, primary_key=True, index=True)
    row_type = Column(String, nullable=False, index=True)
    row_id = Column(Integer, nullable=False)
    generator = Column(String, nullable=False)
    dimension = Column(Integer, nullable=False)
    vector = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class SavedOpportunity(Base):
    """Bookmark linking a user to an opportunity."""
    __tablename__ = "saved_opportunities"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    opportunity_id = Column(Integer, ForeignKey("opportunities.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Application(Base):
    """
    Application submitted by a user to an opportunity.
    Status moves through SUBMITTED, UNDER_REVIEW, ACCEPTED, REJECTED.
    """
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    opportunity_id = Column(Integer, ForeignKey("opportunities.id"), nullable=False)
    status = Column(String, nullable=False, default="SUBMITTED")
    cover_letter = Column(Text, nullable=True)
    funding_requested = Column(String, nullable=True)
    project_description = Column(Text, nullable=True)
    additional_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class OnboardingResponse(Base):
    """One answer from the onboarding questionnaire. List answers are kept in response_data."""
    __tablename__ = "onboarding_responses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    question_id = Column(String, nullable=False)
    response = Column(Text, nullable=True)
    response_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
