"""Request models for persona operations."""

import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


def split_topics(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [t.strip() for t in value if t and t.strip()]


class PersonalityTraits(BaseModel):
    openness: Optional[float] = Field(default=None, ge=0, le=1)
    conscientiousness: Optional[float] = Field(default=None, ge=0, le=1)
    extraversion: Optional[float] = Field(default=None, ge=0, le=1)
    agreeableness: Optional[float] = Field(default=None, ge=0, le=1)
    neuroticism: Optional[float] = Field(default=None, ge=0, le=1)


class ToneStyle(BaseModel):
    frequency: Optional[float] = Field(default=None, ge=0, le=1)
    humor: Optional[float] = Field(default=None, ge=0, le=1)
    formality: Optional[float] = Field(default=None, ge=0, le=1)
    controversy: Optional[float] = Field(default=None, ge=0, le=1)
    topics: Optional[List[str]] = None

    @field_validator("topics", mode="before")
    @classmethod
    def parse_topics(cls, v):
        return split_topics(v) if v is not None else None


class PersonaCreate(ToneStyle):
    name: str = Field(min_length=1, max_length=50)
    username: str = Field(min_length=3, max_length=30)
    bio: Optional[str] = Field(default=None, max_length=500)
    archetype: str = Field(min_length=1, max_length=32)
    risk_level: float = Field(default=0.3, ge=0, le=1)
    personality: PersonalityTraits = Field(default_factory=PersonalityTraits)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not USERNAME_RE.match(v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v


class PersonaUpdate(ToneStyle):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bio: Optional[str] = Field(default=None, max_length=500)
    archetype: Optional[str] = Field(default=None, min_length=1, max_length=32)
    risk_level: Optional[float] = Field(default=None, ge=0, le=1)
    is_active: Optional[bool] = None
    personality: Optional[PersonalityTraits] = None


class PersonaDelete(BaseModel):
    confirm_username: str
