from __future__ import annotations

from fastapi import APIRouter, Depends

from api.auth.config import get_current_user
from models.users import User
from schemas.users import WellnessOut
from utils.dates import utcnow

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/wellness", response_model=WellnessOut)
async def my_wellness(current_user: User = Depends(get_current_user)):
    now = utcnow()
    w = current_user.wellness
    return WellnessOut(
        user_id=str(current_user.id),
        name=current_user.name,
        role=current_user.role,
        total_points=w.total_points,
        level=w.level,
        current_streak=w.current_streak,
        longest_streak=w.longest_streak,
        health_status=w.health_status,
        health_score=w.health_score(now),
        current_month=w.month_entry(now, create=False),
        current_week=w.week_entry(now, create=False),
        badges=[str(b) for b in w.badges],
    )
