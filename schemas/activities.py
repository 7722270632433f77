from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from models.activities import ActivityMetadata, ActivityPhoto
from models.enums import ActivityType, ActivityUnit


class PhotoUrlIn(BaseModel):
    url: str = Field(min_length=1)
    description: Optional[str] = Field(default=None, max_length=200)


class PhotoIn(BaseModel):
    url: Optional[str] = None
    urls: List[Union[str, PhotoUrlIn]] = Field(default_factory=list)

    def entries(self) -> List[PhotoUrlIn]:
        out: List[PhotoUrlIn] = []
        for p in self.urls:
            if isinstance(p, str):
                if p:
                    out.append(PhotoUrlIn(url=p))
            else:
                out.append(p)
        if not out and self.url:
            out.append(PhotoUrlIn(url=self.url))
        return out


class ActivityLogIn(BaseModel):
    # type and value are checked by the recorder so the caller gets a domain error
    type: Optional[str] = None
    value: Optional[Union[float, str]] = None
    unit: Optional[ActivityUnit] = None
    title: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    challenge_id: Optional[str] = None
    activity_date: Optional[datetime] = None
    metadata: Optional[ActivityMetadata] = None
    auto_fetch: bool = False
    photo: Optional[PhotoIn] = None


class ActivityUpdateIn(BaseModel):
    type: Optional[ActivityType] = None
    title: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    value: Optional[float] = Field(default=None, ge=0)
    unit: Optional[ActivityUnit] = None
    activity_date: Optional[datetime] = None
    metadata: Optional[ActivityMetadata] = None


class ActivityOut(BaseModel):
    id: str
    user_id: str
    type: ActivityType
    title: Optional[str] = None
    description: Optional[str] = None
    value: float
    unit: ActivityUnit
    points: int
    challenge_id: Optional[str] = None
    activity_date: datetime
    photo: Optional[ActivityPhoto] = None
    metadata: ActivityMetadata
    verified: bool
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ChallengeUpdateOut(BaseModel):
    challenge_id: str
    daily_completed: bool
    daily_progress: float
    target_value: float
    remaining: float
    total_days_completed: int
    bonus_points: int
    challenge_completed: bool


class YogaWarningOut(BaseModel):
    warning: bool = True
    message: str
    days_remaining: int
    sessions_needed: int
    points: int


class ActivityLogOut(BaseModel):
    success: bool = True
    data: ActivityOut
    challenge_update: Optional[ChallengeUpdateOut] = None
    yoga_warning: Optional[YogaWarningOut] = None
    badges_awarded: List[str] = Field(default_factory=list)


class ActivityListOut(BaseModel):
    items: List[ActivityOut]
    total: int
    skip: int
    limit: int


class RejectIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class RejectOut(BaseModel):
    success: bool = True
    message: str
    points_deducted: int
    user_total_points: int


class VerifyOut(BaseModel):
    success: bool = True
    message: str
    data: ActivityOut

