from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from models.challenges import ChallengeRewards, ChallengeRules
from models.enums import Bucket, ChallengeStatus, ChallengeType


class ChallengeCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    type: ChallengeType
    start_date: datetime
    end_date: datetime
    is_daily_challenge: bool = True
    rules: ChallengeRules
    rewards: ChallengeRewards = Field(default_factory=ChallengeRewards)
    max_participants: Optional[int] = Field(default=None, ge=1)


class ChallengeUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[ChallengeStatus] = None
    rules: Optional[ChallengeRules] = None
    rewards: Optional[ChallengeRewards] = None
    max_participants: Optional[int] = Field(default=None, ge=1)


class TodayProgressOut(BaseModel):
    value: float = 0
    completed: bool = False
    target: float
    remaining: float


class ParticipantOut(BaseModel):
    user_id: str
    joined_at: datetime
    progress: float
    points: int
    total_days_completed: int
    challenge_completed: bool
    points_lost: int


class ChallengeOut(BaseModel):
    id: str
    name: str
    description: str
    type: ChallengeType
    start_date: datetime
    end_date: datetime
    expires_at: Optional[datetime] = None
    is_daily_challenge: bool
    status: ChallengeStatus
    rules: ChallengeRules
    rewards: ChallengeRewards
    max_participants: Optional[int] = None
    participant_count: int
    participants: List[ParticipantOut] = Field(default_factory=list)
    created_by: Optional[str] = None


class ChallengeView(ChallengeOut):
    category: Bucket
    is_expired: bool = False
    time_remaining_seconds: Optional[int] = None
    user_progress: Optional[TodayProgressOut] = None


class ChallengeListOut(BaseModel):
    today: List[ChallengeView] = Field(default_factory=list)
    upcoming: List[ChallengeView] = Field(default_factory=list)
    expired: List[ChallengeView] = Field(default_factory=list)
    completed: List[ChallengeView] = Field(default_factory=list)
    points_lost: int = 0


class JoinOut(BaseModel):
    success: bool = True
    message: str
    participation_points: int = 0
    data: ChallengeOut


class LeaderboardEntryOut(BaseModel):
    rank: int
    user_id: str
    name: Optional[str] = None
    department: Optional[str] = None
    progress: float
    points: int


class LeaderboardOut(BaseModel):
    challenge_id: str
    items: List[LeaderboardEntryOut]


class MyProgressOut(BaseModel):
    total_progress: float
    total_points: int
    total_days_completed: int
    today_progress: TodayProgressOut
    joined_at: datetime


class SettleOut(BaseModel):
    success: bool = True
    challenges_scanned: int
    participants_penalized: int
    points_deducted: int
