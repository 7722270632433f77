from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    employee = "employee"
    admin = "admin"
    hr = "hr"


STAFF_ROLES = (UserRole.admin, UserRole.hr)


class ActivityType(str, Enum):
    steps = "steps"
    meditation = "meditation"
    workout = "workout"
    hydration = "hydration"
    sleep = "sleep"
    yoga = "yoga"
    walking = "walking"
    running = "running"
    cycling = "cycling"
    nutrition = "nutrition"
    healthy_eating = "healthy-eating"
    other = "other"


class ChallengeType(str, Enum):
    steps = "steps"
    meditation = "meditation"
    workout = "workout"
    hydration = "hydration"
    sleep = "sleep"
    yoga = "yoga"
    walking = "walking"
    running = "running"
    cycling = "cycling"
    nutrition = "nutrition"
    healthy_eating = "healthy-eating"
    custom = "custom"


class ActivityUnit(str, Enum):
    steps = "steps"
    minutes = "minutes"
    hours = "hours"
    sessions = "sessions"
    glasses = "glasses"
    km = "km"
    calories = "calories"
    meals = "meals"
    servings = "servings"
    items = "items"


class ChallengeUnit(str, Enum):
    steps = "steps"
    minutes = "minutes"
    sessions = "sessions"
    glasses = "glasses"
    hours = "hours"
    km = "km"
    meals = "meals"
    servings = "servings"
    items = "items"


class ChallengeStatus(str, Enum):
    upcoming = "upcoming"
    active = "active"
    completed = "completed"
    expired = "expired"
    cancelled = "cancelled"


class Bucket(str, Enum):
    today = "today"
    upcoming = "upcoming"
    expired = "expired"
    completed = "completed"


class HealthStatus(str, Enum):
    excellent = "excellent"
    good = "good"
    fair = "fair"
    needs_attention = "needs-attention"
    critical = "critical"


class PhotoKind(str, Enum):
    single = "single"
    multiple = "multiple"


class BadgeCriteriaType(str, Enum):
    points = "points"
    streak = "streak"
    activities = "activities"
    challenges = "challenges"
    custom = "custom"


class HealthProvider(str, Enum):
    apple_health = "apple_health"
    google_fit = "google_fit"
