"""
Member profile as supplied by the identity layer.
The engine reads it and never persists it.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNSPECIFIED = "unspecified"


class MemberProfile(BaseModel):
    id: int = Field(..., gt=0)
    gender: Gender = Gender.UNSPECIFIED
    tier: str = Field(..., min_length=1, max_length=50)

    model_config = {"frozen": True}

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value: Optional[str]):
        # Profiles that never filled the field arrive as null or ""
        if value is None or (isinstance(value, str) and not value.strip()):
            return Gender.UNSPECIFIED
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("tier")
    @classmethod
    def _normalize_tier(cls, value: str) -> str:
        return value.strip().lower()
