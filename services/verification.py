from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from beanie.odm.fields import PydanticObjectId

from models import Activity, User
from utils.dates import utcnow

from .errors import AlreadyVerifiedConflict, NotFoundError

logger = logging.getLogger(__name__)


async def _load(activity_id: Any) -> Activity:
    try:
        oid = PydanticObjectId(str(activity_id))
    except Exception:
        raise NotFoundError("Activity not found")
    activity = await Activity.get(oid)
    if not activity:
        raise NotFoundError("Activity not found")
    return activity


async def verify_activity(activity_id: Any, verifier: User, now: Optional[datetime] = None) -> Activity:
    activity = await _load(activity_id)
    if activity.verified:
        raise AlreadyVerifiedConflict("Activity is already verified")

    activity.verified = True
    activity.verified_by = verifier.id
    activity.verified_at = now or utcnow()
    if activity.photo:
        activity.photo.verified = True
    await activity.save()
    return activity


async def reject_activity(
    activity_id: Any, reason: Optional[str], reviewer: User, now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Reverse the activity's ledger credit and delete it."""
    activity = await _load(activity_id)
    if activity.verified:
        raise AlreadyVerifiedConflict("Cannot reject an already verified activity")

    owner = await User.get(activity.user_id)
    total = 0
    if owner:
        owner.wellness.deduct_points(activity.points, now or utcnow())
        await owner.save()
        total = owner.wellness.total_points
    else:
        logger.warning("rejecting activity=%s of missing user=%s", activity.id, activity.user_id)

    await activity.delete()
    logger.info(
        "activity rejected id=%s user=%s by=%s points=%s reason=%r",
        activity.id, activity.user_id, reviewer.id, activity.points, reason,
    )
    return {"points_deducted": activity.points, "user_total_points": total}


async def list_unverified(skip: int = 0, limit: int = 50) -> Tuple[List[Activity], int]:
    query = Activity.find({"verified": False, "photo": {"$ne": None}}).sort("-created_at")
    total = await query.count()
    items = await query.skip(max(0, skip)).limit(min(max(limit, 1), 100)).to_list()
    return items, total
