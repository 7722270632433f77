from __future__ import annotations

import math
from datetime import datetime
from typing import List, Optional

from beanie.odm.fields import PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING

from utils.dates import utcnow

from .base import BaseDoc
from .enums import ActivityType, ActivityUnit, PhotoKind

PER_MINUTE_20 = {
    ActivityType.workout,
    ActivityType.yoga,
    ActivityType.walking,
    ActivityType.running,
    ActivityType.cycling,
}
PER_SERVING_15 = {ActivityType.nutrition, ActivityType.healthy_eating}


def calculate_points(type: ActivityType | str, value: float, unit: Optional[str] = None) -> int:
    try:
        t = ActivityType(type)
    except ValueError:
        t = ActivityType.other

    if t == ActivityType.steps:
        points = math.floor(value / 100)
    elif t == ActivityType.meditation:
        points = math.floor(value) * 10
    elif t in PER_MINUTE_20:
        points = math.floor(value) * 20
    elif t == ActivityType.hydration:
        points = math.floor(value * 5)
    elif t == ActivityType.sleep:
        points = math.floor(value) * 2
    elif t in PER_SERVING_15:
        points = math.floor(value * 15)
    else:
        points = math.floor(value) * 10

    return max(0, points)


class PhotoEntry(BaseModel):
    url: str
    description: Optional[str] = Field(default=None, max_length=200)
    filename: Optional[str] = None
    original_name: Optional[str] = None
    mimetype: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    uploaded_at: datetime = Field(default_factory=utcnow)


class ActivityPhoto(BaseModel):
    kind: PhotoKind = PhotoKind.single
    url: Optional[str] = None
    urls: List[PhotoEntry] = Field(default_factory=list)
    uploaded_at: datetime = Field(default_factory=utcnow)
    verified: bool = False
    min_photos: Optional[int] = None
    max_photos: Optional[int] = None


class ActivityMetadata(BaseModel):
    duration: Optional[float] = None  # minutes
    distance: Optional[float] = None  # km
    calories: Optional[float] = None
    heart_rate: Optional[float] = None
    device: Optional[str] = Field(default=None, max_length=64)
    device_id: Optional[str] = Field(default=None, max_length=128)
    time_gap: Optional[float] = None  # hours since previous hydration log


class Activity(BaseDoc):
    user_id: PydanticObjectId
    type: ActivityType
    title: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    value: float = Field(ge=0)
    unit: ActivityUnit
    points: int = Field(default=0, ge=0)
    challenge_id: Optional[PydanticObjectId] = None
    activity_date: datetime = Field(default_factory=utcnow)
    photo: Optional[ActivityPhoto] = None
    metadata: ActivityMetadata = Field(default_factory=ActivityMetadata)

    verified: bool = False
    verified_by: Optional[PydanticObjectId] = None
    verified_at: Optional[datetime] = None

    class Settings:
        name = "activities"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("activity_date", DESCENDING)]),
            IndexModel([("type", ASCENDING)]),
            IndexModel([("challenge_id", ASCENDING)]),
            IndexModel([("verified", ASCENDING), ("created_at", DESCENDING)]),
        ]
