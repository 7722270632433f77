from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING

from .base import BaseDoc
from .enums import BadgeCriteriaType


class BadgeCriteria(BaseModel):
    type: BadgeCriteriaType
    value: float = Field(ge=0)
    activity_type: Optional[str] = None


class Badge(BaseDoc):
    name: str = Field(min_length=1, max_length=50)
    description: str = Field(default="", max_length=200)
    icon: str = ""
    criteria: BadgeCriteria
    points_reward: int = Field(default=0, ge=0)
    is_active: bool = True

    class Settings:
        name = "badges"
        indexes = [
            IndexModel([("name", ASCENDING)], unique=True),
            IndexModel([("criteria.type", ASCENDING)]),
        ]
