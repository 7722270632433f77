from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from beanie.odm.fields import PydanticObjectId

from models import Challenge, User
from models.challenges import DAILY_WINDOW
from models.enums import ChallengeStatus
from schemas.challenges import ChallengeCreateIn, ChallengeUpdateIn
from utils.dates import ensure_naive_utc, utcnow

from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _oid(raw: Any) -> PydanticObjectId:
    try:
        return PydanticObjectId(str(raw))
    except Exception:
        raise NotFoundError("Challenge not found")


async def get_challenge(challenge_id: Any) -> Challenge:
    challenge = await Challenge.get(_oid(challenge_id))
    if not challenge:
        raise NotFoundError("Challenge not found")
    return challenge


async def create_challenge(user: User, payload: ChallengeCreateIn, now: Optional[datetime] = None) -> Challenge:
    now = now or utcnow()
    start = ensure_naive_utc(payload.start_date)
    end = ensure_naive_utc(payload.end_date)
    if end <= start:
        raise ValidationError("End date must be after start date")

    await Challenge.ensure_creation_quota(user.id, now)

    status, expires_at = Challenge.initial_state(start, now)
    challenge = Challenge(
        name=payload.name,
        description=payload.description,
        type=payload.type,
        start_date=start,
        end_date=end,
        is_daily_challenge=payload.is_daily_challenge,
        expires_at=expires_at,
        status=status,
        rules=payload.rules,
        rewards=payload.rewards,
        max_participants=payload.max_participants,
        created_by=user.id,
        created_at=now,
        updated_at=now,
    )
    await challenge.insert()

    logger.info("challenge created id=%s by=%s type=%s status=%s", challenge.id, user.id, challenge.type.value, status.value)
    return challenge


async def update_challenge(challenge_id: Any, patch: ChallengeUpdateIn) -> Challenge:
    challenge = await get_challenge(challenge_id)
    data = patch.model_dump(exclude_unset=True)

    for key in ("name", "description", "status", "rules", "rewards", "max_participants"):
        if data.get(key) is not None:
            setattr(challenge, key, getattr(patch, key))

    if patch.start_date is not None:
        challenge.start_date = ensure_naive_utc(patch.start_date)
        if challenge.status == ChallengeStatus.upcoming:
            challenge.expires_at = challenge.start_date + DAILY_WINDOW
    if patch.end_date is not None:
        challenge.end_date = ensure_naive_utc(patch.end_date)
    if challenge.end_date <= challenge.start_date:
        raise ValidationError("End date must be after start date")

    await challenge.touch()
    return challenge


async def delete_challenge(challenge_id: Any) -> None:
    challenge = await get_challenge(challenge_id)
    await challenge.delete()
    logger.info("challenge deleted id=%s participants=%s", challenge.id, len(challenge.participants))


async def join_challenge(user: User, challenge_id: Any, now: Optional[datetime] = None) -> Tuple[Challenge, int]:
    now = now or utcnow()
    challenge = await get_challenge(challenge_id)

    await challenge.ensure_joinable(user.id, now)
    challenge.add_participant(user.id, now)
    await challenge.save()

    reward = challenge.rewards.participation_points
    if reward:
        user.wellness.add_points(reward, now)
        await user.save()
    return challenge, reward


async def leave_challenge(user: User, challenge_id: Any) -> Challenge:
    challenge = await get_challenge(challenge_id)
    challenge.remove_participant(user.id)
    await challenge.save()
    return challenge


async def get_challenge_leaderboard(challenge_id: Any) -> Tuple[Challenge, List[Dict[str, Any]]]:
    challenge = await get_challenge(challenge_id)
    board = challenge.get_leaderboard()

    ids = [e["user_id"] for e in board]
    users = {u.id: u for u in await User.find({"_id": {"$in": ids}}).to_list()} if ids else {}
    for entry in board:
        u = users.get(entry["user_id"])
        entry["name"] = u.name if u else None
        entry["department"] = u.department if u else None
    return challenge, board


async def get_my_progress(user: User, challenge_id: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    challenge = await get_challenge(challenge_id)

    participant = challenge.get_participant(user.id)
    if not participant:
        raise NotFoundError("You are not a participant in this challenge")

    return {
        "total_progress": participant.progress,
        "total_points": participant.points,
        "total_days_completed": participant.total_days_completed,
        "today_progress": challenge.get_today_progress(user.id, now),
        "joined_at": participant.joined_at,
    }
