from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from models.enums import HealthStatus, UserRole
from models.users import MonthlyPoints, WeeklyYoga


class WellnessOut(BaseModel):
    user_id: str
    name: str
    role: UserRole
    total_points: int
    level: int
    current_streak: int
    longest_streak: int
    health_status: HealthStatus
    health_score: int
    current_month: Optional[MonthlyPoints] = None
    current_week: Optional[WeeklyYoga] = None
    badges: List[str] = []
