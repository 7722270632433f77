from __future__ import annotations

from pymongo.asynchronous.database import AsyncDatabase
from beanie import init_beanie
from .db import db, client
from .users import User, WellnessProfile, MonthlyPoints, WeeklyYoga
from .challenges import Challenge, ChallengeRules, ChallengeRewards, Participant, DailyProgress
from .activities import Activity, ActivityPhoto, ActivityMetadata, PhotoEntry, calculate_points
from .badges import Badge, BadgeCriteria
from .health import UserHealthIntegration

ALL_MODELS = [
    User,
    Challenge,
    Activity,
    Badge,
    UserHealthIntegration,
]


async def init_models(db: AsyncDatabase) -> None:
    await init_beanie(database=db, document_models=ALL_MODELS)
