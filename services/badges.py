from __future__ import annotations

import logging
from typing import List, Optional

from beanie.odm.fields import PydanticObjectId

from models import Activity, Badge, User
from models.enums import BadgeCriteriaType

logger = logging.getLogger(__name__)


async def _criteria_met(badge: Badge, user: User) -> bool:
    c = badge.criteria
    if c.type == BadgeCriteriaType.points:
        return user.wellness.total_points >= c.value
    if c.type == BadgeCriteriaType.streak:
        return user.wellness.current_streak >= c.value
    if c.type == BadgeCriteriaType.activities:
        flt = {"user_id": user.id}
        if c.activity_type:
            flt["type"] = c.activity_type
        return await Activity.find(flt).count() >= c.value
    return False


async def check_badge_achievements(user_id: PydanticObjectId, activity_type: str, points: int) -> List[str]:
    """Award any newly earned badges. Returns the names awarded."""
    user = await User.get(user_id)
    if not user:
        return []

    owned = set(user.wellness.badges)
    awarded: List[str] = []

    for badge in await Badge.find(Badge.is_active == True).to_list():  # noqa: E712
        if badge.id in owned:
            continue
        if not await _criteria_met(badge, user):
            continue

        user.wellness.badges.append(badge.id)
        if badge.points_reward > 0:
            user.wellness.add_points(badge.points_reward)
        awarded.append(badge.name)

    if awarded:
        await user.save()
        logger.info("badges awarded user=%s badges=%s after %s (+%s)", user_id, awarded, activity_type, points)
    return awarded


async def evaluate_badges_safely(user_id: PydanticObjectId, activity_type: str, points: int) -> Optional[List[str]]:
    try:
        return await check_badge_achievements(user_id, activity_type, points)
    except Exception:
        logger.warning("badge evaluation failed for user=%s", user_id, exc_info=True)
        return None
