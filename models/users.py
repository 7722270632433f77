from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from beanie.odm.fields import PydanticObjectId
from pydantic import BaseModel, EmailStr, Field
from pymongo import IndexModel, ASCENDING, DESCENDING

import config
from utils.dates import day_start, days_left_in_iso_week, iso_week_key, month_key, same_day, utcnow

from .base import BaseDoc
from .enums import HealthStatus, UserRole, STAFF_ROLES


def level_for(total_points: int) -> int:
    return total_points // config.POINTS_PER_LEVEL + 1


class MonthlyPoints(BaseModel):
    month: str  # YYYY-MM
    points: int = 0
    target_points: int = Field(default_factory=lambda: config.MONTHLY_TARGET_POINTS)
    counseling_required: bool = False


class WeeklyYoga(BaseModel):
    week: str  # YYYY-W##
    sessions: int = 0
    target_sessions: int = Field(default_factory=lambda: config.WEEKLY_YOGA_TARGET)
    last_warning_date: Optional[datetime] = None


class WellnessProfile(BaseModel):
    """Per-user points ledger.

    Every mutation is keyed on a time bucket (day, ISO week, calendar month) so
    the same call path can run several times per request without corrupting
    the bucketed aggregates.
    """

    total_points: int = Field(default=0, ge=0)
    level: int = 1
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[datetime] = None
    monthly_points: List[MonthlyPoints] = Field(default_factory=list)
    weekly_yoga: List[WeeklyYoga] = Field(default_factory=list)
    health_status: HealthStatus = HealthStatus.good
    badges: List[PydanticObjectId] = Field(default_factory=list)

    def month_entry(self, now: datetime, create: bool = True) -> Optional[MonthlyPoints]:
        key = month_key(now)
        for m in self.monthly_points:
            if m.month == key:
                return m
        if not create:
            return None
        entry = MonthlyPoints(month=key)
        self.monthly_points.append(entry)
        return entry

    def week_entry(self, now: datetime, create: bool = True) -> Optional[WeeklyYoga]:
        key = iso_week_key(now)
        for w in self.weekly_yoga:
            if w.week == key:
                return w
        if not create:
            return None
        entry = WeeklyYoga(week=key)
        self.weekly_yoga.append(entry)
        return entry

    def add_points(self, amount: int, now: Optional[datetime] = None) -> None:
        if amount < 0:
            raise ValueError("add_points expects a non-negative amount; use deduct_points")
        now = now or utcnow()

        self.total_points += amount
        self.level = level_for(self.total_points)

        entry = self.month_entry(now)
        entry.points += amount
        # end-of-month check
        if now.day >= 28:
            entry.counseling_required = entry.points < entry.target_points

        self.update_health_status(now)

    def deduct_points(self, amount: int, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        amount = max(0, amount)

        removed = min(amount, self.total_points)
        self.total_points = max(0, self.total_points - amount)
        self.level = level_for(self.total_points)

        entry = self.month_entry(now, create=False)
        if entry:
            entry.points = max(0, entry.points - amount)

        self.update_health_status(now)
        return removed

    def update_streak(self, now: Optional[datetime] = None) -> None:
        today = day_start(now or utcnow())

        if self.last_activity_date is not None:
            days_diff = (today - day_start(self.last_activity_date)).days
            if days_diff <= 0:
                return
            if days_diff == 1:
                self.current_streak += 1
            else:
                self.current_streak = 1
        else:
            self.current_streak = 1

        self.longest_streak = max(self.longest_streak, self.current_streak)
        self.last_activity_date = today
        self.level = level_for(self.total_points)

    def track_yoga_session(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self.week_entry(now).sessions += 1
        self.update_health_status(now)

    def check_yoga_warning(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        entry = self.week_entry(now)

        days_remaining = days_left_in_iso_week(now)
        sessions_needed = entry.target_sessions - entry.sessions

        if days_remaining <= 3 and sessions_needed > 0 and not same_day(entry.last_warning_date, now):
            entry.last_warning_date = now
            return {
                "warning": True,
                "days_remaining": days_remaining,
                "sessions_needed": sessions_needed,
                "points": config.YOGA_WARNING_POINTS,
                "message": (
                    f"You have {days_remaining} days left to complete {sessions_needed} yoga session(s). "
                    f"This carries {config.YOGA_WARNING_POINTS} points!"
                ),
            }

        return {
            "warning": False,
            "days_remaining": days_remaining,
            "sessions_needed": max(0, sessions_needed),
            "sessions_completed": entry.sessions,
        }

    def health_score(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        score = 0

        total = self.total_points
        if total >= 5000:
            score += 40
        elif total >= 3000:
            score += 30
        elif total >= 1500:
            score += 20
        elif total >= 500:
            score += 10

        month = self.month_entry(now, create=False)
        monthly = month.points if month else 0
        monthly_target = month.target_points if month else config.MONTHLY_TARGET_POINTS
        if monthly >= monthly_target:
            score += 30
        elif monthly >= monthly_target * 0.7:
            score += 20
        elif monthly >= monthly_target * 0.5:
            score += 10

        week = self.week_entry(now, create=False)
        sessions = week.sessions if week else 0
        yoga_target = week.target_sessions if week else config.WEEKLY_YOGA_TARGET
        if sessions >= yoga_target:
            score += 20
        elif sessions >= yoga_target * 0.5:
            score += 10

        if self.current_streak >= 30:
            score += 10
        elif self.current_streak >= 14:
            score += 7
        elif self.current_streak >= 7:
            score += 5

        return score

    def update_health_status(self, now: Optional[datetime] = None) -> HealthStatus:
        score = self.health_score(now)
        if score >= 80:
            status = HealthStatus.excellent
        elif score >= 60:
            status = HealthStatus.good
        elif score >= 40:
            status = HealthStatus.fair
        elif score >= 20:
            status = HealthStatus.needs_attention
        else:
            status = HealthStatus.critical
        self.health_status = status
        return status


class User(BaseDoc):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    role: UserRole = UserRole.employee
    department: Optional[str] = Field(default=None, max_length=80)
    employee_id: Optional[str] = Field(default=None, max_length=64)
    is_active: bool = True
    wellness: WellnessProfile = Field(default_factory=WellnessProfile)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("email", ASCENDING)], unique=True),
            IndexModel([("employee_id", ASCENDING)], unique=True, sparse=True),
            IndexModel([("wellness.total_points", DESCENDING)]),
        ]
