from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from beanie.odm.fields import PydanticObjectId
from pydantic import BaseModel, Field, model_validator
from pymongo import IndexModel, ASCENDING, DESCENDING

from services.errors import (
    ChallengeClosed,
    ChallengeFull,
    DailyCreationLimit,
    DuplicateParticipant,
    NotAParticipant,
    OneChallengePerType,
)
from utils.dates import day_bounds, day_end, day_start, utcnow

from .base import BaseDoc
from .enums import ChallengeStatus, ChallengeType, ChallengeUnit

DAILY_WINDOW = timedelta(hours=24)


class ChallengeRules(BaseModel):
    target_value: float = Field(gt=0)
    unit: ChallengeUnit
    point_multiplier: float = Field(default=1, ge=0)
    requires_photo: bool = False
    min_photos: int = Field(default=1, ge=0)
    max_photos: int = Field(default=5, ge=1)
    time_gap: Optional[float] = Field(default=None, gt=0)  # hours, hydration only

    @model_validator(mode="after")
    def validate_photo_bounds(self):
        if self.min_photos > self.max_photos:
            raise ValueError("min_photos cannot exceed max_photos")
        return self

    def bonus_points(self) -> int:
        return math.floor(self.target_value * self.point_multiplier)


class ChallengeRewards(BaseModel):
    participation_points: int = Field(default=0, ge=0)


class DailyProgress(BaseModel):
    date: datetime  # midnight of the day
    value: float = 0
    completed: bool = False
    completed_at: Optional[datetime] = None


class Participant(BaseModel):
    user_id: PydanticObjectId
    joined_at: datetime = Field(default_factory=utcnow)
    progress: float = Field(default=0, ge=0)
    points: int = Field(default=0, ge=0)
    daily_progress: List[DailyProgress] = Field(default_factory=list)
    total_days_completed: int = 0
    challenge_completed: bool = False
    challenge_completed_at: Optional[datetime] = None
    points_lost: int = Field(default=0, ge=0)
    penalty_applied_at: Optional[datetime] = None

    @property
    def penalized(self) -> bool:
        return self.penalty_applied_at is not None or self.points_lost > 0

    def day_entry(self, when: datetime, create: bool = False) -> Optional[DailyProgress]:
        key = day_start(when)
        for d in self.daily_progress:
            if day_start(d.date) == key:
                return d
        if not create:
            return None
        entry = DailyProgress(date=key)
        self.daily_progress.append(entry)
        return entry


class Challenge(BaseDoc):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    type: ChallengeType
    start_date: datetime
    end_date: datetime
    is_daily_challenge: bool = True
    expires_at: Optional[datetime] = None
    status: ChallengeStatus = ChallengeStatus.upcoming
    rules: ChallengeRules
    rewards: ChallengeRewards = Field(default_factory=ChallengeRewards)
    max_participants: Optional[int] = Field(default=None, ge=1)
    participants: List[Participant] = Field(default_factory=list)
    created_by: Optional[PydanticObjectId] = None

    class Settings:
        name = "challenges"
        indexes = [
            IndexModel([("status", ASCENDING), ("start_date", ASCENDING)]),
            IndexModel([("type", ASCENDING)]),
            IndexModel([("participants.user_id", ASCENDING)]),
            IndexModel([("created_by", ASCENDING), ("created_at", DESCENDING)]),
        ]

    @model_validator(mode="after")
    def validate_window(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        if self.expires_at is None:
            self.expires_at = self.start_date + DAILY_WINDOW
        return self

    # ---------- roster ----------

    def get_participant(self, user_id: PydanticObjectId) -> Optional[Participant]:
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def add_participant(self, user_id: PydanticObjectId, now: Optional[datetime] = None) -> Participant:
        if self.get_participant(user_id):
            raise DuplicateParticipant("User is already a participant")
        if self.max_participants and len(self.participants) >= self.max_participants:
            raise ChallengeFull("Challenge is full")

        participant = Participant(user_id=user_id, joined_at=now or utcnow())
        self.participants.append(participant)
        return participant

    def remove_participant(self, user_id: PydanticObjectId) -> Participant:
        participant = self.get_participant(user_id)
        if not participant:
            raise NotAParticipant("You are not a participant in this challenge")
        self.participants.remove(participant)
        return participant

    # ---------- progress ----------

    def update_participant_progress(
        self,
        user_id: PydanticObjectId,
        progress: float,
        points: int,
        activity_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        participant = self.get_participant(user_id)
        if not participant:
            raise NotAParticipant("User is not a participant")

        now = now or utcnow()
        entry = participant.day_entry(activity_date or now, create=True)

        entry.value += progress
        participant.progress += progress
        participant.points += points

        bonus_points = 0
        target = self.rules.target_value
        # fires at most once per day
        if not entry.completed and entry.value >= target:
            entry.completed = True
            entry.completed_at = now
            participant.total_days_completed += 1

            bonus_points = self.rules.bonus_points()
            participant.points += bonus_points

            if not participant.challenge_completed:
                participant.challenge_completed = True
                participant.challenge_completed_at = now

        return {
            "daily_completed": entry.completed,
            "daily_progress": entry.value,
            "target_value": target,
            "total_days_completed": participant.total_days_completed,
            "bonus_points": bonus_points,
            "challenge_completed": participant.challenge_completed,
        }

    def get_today_progress(self, user_id: PydanticObjectId, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        participant = self.get_participant(user_id)
        if not participant:
            return None

        entry = participant.day_entry(now or utcnow())
        value = entry.value if entry else 0
        target = self.rules.target_value
        return {
            "value": value,
            "completed": entry.completed if entry else False,
            "target": target,
            "remaining": max(0, target - value),
        }

    def get_leaderboard(self) -> List[Dict[str, Any]]:
        # ties keep roster order
        ranked = sorted(self.participants, key=lambda p: p.progress, reverse=True)
        return [
            {"rank": i + 1, "user_id": p.user_id, "progress": p.progress, "points": p.points}
            for i, p in enumerate(ranked)
        ]

    # ---------- lifecycle ----------

    def is_open_window(self, now: datetime) -> bool:
        return day_start(self.start_date) <= now <= day_end(self.end_date)

    def activate_if_due(self, now: datetime) -> bool:
        if self.status != ChallengeStatus.upcoming or self.start_date > now:
            return False
        self.status = ChallengeStatus.active
        if self.expires_at is None:
            self.expires_at = self.start_date + DAILY_WINDOW
        return True

    @staticmethod
    def initial_state(start_date: datetime, now: datetime) -> tuple[ChallengeStatus, datetime]:
        if day_start(start_date) > day_start(now):
            return ChallengeStatus.upcoming, start_date + DAILY_WINDOW
        return ChallengeStatus.active, now + DAILY_WINDOW

    # ---------- cross-entity preconditions ----------

    @classmethod
    def active_same_type_query(cls, type: str, user_id: PydanticObjectId, now: datetime) -> Dict[str, Any]:
        today, tomorrow = day_bounds(now)
        return {
            "type": getattr(type, "value", type),
            "status": ChallengeStatus.active.value,
            "start_date": {"$lte": tomorrow},
            "end_date": {"$gte": today},
            "participants.user_id": user_id,
        }

    @classmethod
    async def find_active_for_user(
        cls, type: str, user_id: PydanticObjectId, now: Optional[datetime] = None
    ) -> Optional["Challenge"]:
        return await cls.find_one(cls.active_same_type_query(type, user_id, now or utcnow()))

    async def ensure_joinable(self, user_id: PydanticObjectId, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        if self.status in (ChallengeStatus.completed, ChallengeStatus.cancelled):
            raise ChallengeClosed("Cannot join a completed or cancelled challenge")

        existing = await Challenge.find_active_for_user(self.type, user_id, now)
        if existing and existing.id != self.id:
            raise OneChallengePerType(
                f"You already have an active {self.type.value} challenge today. "
                "Only one challenge per day is allowed."
            )

    @classmethod
    async def ensure_creation_quota(cls, created_by: PydanticObjectId, now: Optional[datetime] = None) -> None:
        start, end = day_bounds(now or utcnow())
        existing = await cls.find_one(
            {"created_by": created_by, "created_at": {"$gte": start, "$lt": end}}
        )
        if existing:
            raise DailyCreationLimit(
                "You can only create 1 challenge per day. "
                "Please create the next challenge for tomorrow or later."
            )
