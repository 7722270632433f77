"""Buckets challenges for a viewer and settles expiry penalties.

Categorisation is pure: it only reads the challenge and the viewer's
participant record and *stages* penalties. Writing them is a separate step
(``apply_penalties`` for the viewer, ``settle_expired_challenges`` for the
operator sweep), both guarded by ``Participant.penalty_applied_at`` so a
participant is penalised at most once.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from beanie.odm.fields import PydanticObjectId

import config
from models import Challenge, Participant, User
from models.challenges import DAILY_WINDOW
from models.enums import Bucket, ChallengeStatus
from utils.dates import day_start, utcnow

logger = logging.getLogger(__name__)

TERMINAL = (ChallengeStatus.completed, ChallengeStatus.expired, ChallengeStatus.cancelled)


@dataclass
class StagedPenalty:
    challenge: Challenge
    user_id: PydanticObjectId
    amount: int


@dataclass
class CategorizedChallenge:
    challenge: Challenge
    bucket: Bucket
    is_expired: bool = False
    time_remaining_seconds: Optional[int] = None
    user_progress: Optional[Dict[str, Any]] = None


@dataclass
class Categorization:
    today: List[CategorizedChallenge] = field(default_factory=list)
    upcoming: List[CategorizedChallenge] = field(default_factory=list)
    expired: List[CategorizedChallenge] = field(default_factory=list)
    completed: List[CategorizedChallenge] = field(default_factory=list)
    penalties: List[StagedPenalty] = field(default_factory=list)
    points_lost: int = 0

    def bucket(self, b: Bucket) -> List[CategorizedChallenge]:
        return getattr(self, b.value)


@dataclass
class SettleResult:
    challenges_scanned: int = 0
    participants_penalized: int = 0
    points_deducted: int = 0


def expiry_of(challenge: Challenge) -> datetime:
    return challenge.expires_at or challenge.start_date + DAILY_WINDOW


def is_old_expired(challenge: Challenge, now: datetime) -> bool:
    return expiry_of(challenge) < now - timedelta(days=config.EXPIRY_GRACE_DAYS)


def penalty_for(participant: Participant) -> int:
    return math.floor(participant.points * config.EXPIRY_PENALTY_RATE)


def needs_penalty(participant: Optional[Participant]) -> bool:
    return participant is not None and not participant.challenge_completed and not participant.penalized


def categorize_challenge(challenge: Challenge, participant: Optional[Participant], now: datetime) -> Bucket:
    expires_at = expiry_of(challenge)
    tomorrow = day_start(now) + timedelta(days=1)

    if participant is not None and participant.challenge_completed:
        return Bucket.completed
    if is_old_expired(challenge, now) and challenge.status != ChallengeStatus.completed:
        return Bucket.expired
    if challenge.status == ChallengeStatus.upcoming and day_start(challenge.start_date) >= tomorrow:
        return Bucket.upcoming
    if challenge.status == ChallengeStatus.active:
        if challenge.is_open_window(now) and expires_at >= now:
            return Bucket.today
        if expires_at < now:
            return Bucket.expired

    # nothing above matched; place by the calendar
    if challenge.end_date < now or expires_at < now or challenge.status in TERMINAL:
        return Bucket.expired
    if challenge.start_date > now:
        return Bucket.upcoming
    return Bucket.today


def categorize_challenges(challenges: Iterable[Challenge], user: User, now: Optional[datetime] = None) -> Categorization:
    now = now or utcnow()
    out = Categorization()

    for challenge in challenges:
        participant = challenge.get_participant(user.id)
        bucket = categorize_challenge(challenge, participant, now)

        item = CategorizedChallenge(
            challenge=challenge,
            bucket=bucket,
            is_expired=bucket == Bucket.expired,
            user_progress=challenge.get_today_progress(user.id, now),
        )
        if bucket == Bucket.today:
            remaining = (expiry_of(challenge) - now).total_seconds()
            item.time_remaining_seconds = max(0, int(remaining))

        if bucket == Bucket.expired and is_old_expired(challenge, now) and needs_penalty(participant):
            out.penalties.append(StagedPenalty(challenge, user.id, penalty_for(participant)))

        out.bucket(bucket).append(item)

    return out


async def apply_penalties(user: User, staged: List[StagedPenalty], now: Optional[datetime] = None) -> int:
    """Persist staged penalties and deduct their sum from the ledger once."""
    now = now or utcnow()
    total = 0

    for s in staged:
        participant = s.challenge.get_participant(s.user_id)
        if not needs_penalty(participant):
            continue
        participant.points_lost = s.amount
        participant.penalty_applied_at = now
        await s.challenge.save()
        total += s.amount
        logger.info("expiry penalty user=%s challenge=%s points=%s", s.user_id, s.challenge.id, s.amount)

    if not total:
        return 0

    removed = user.wellness.deduct_points(total, now)
    await user.save()
    return removed


async def promote_due_challenges(challenges: Iterable[Challenge], now: datetime) -> int:
    promoted = 0
    for c in challenges:
        if c.activate_if_due(now):
            await c.save()
            promoted += 1
    return promoted


async def list_challenges(user: User, now: Optional[datetime] = None) -> Categorization:
    now = now or utcnow()

    challenges = await Challenge.find_all().sort("-start_date").to_list()
    await promote_due_challenges(challenges, now)

    result = categorize_challenges(challenges, user, now)
    result.points_lost = await apply_penalties(user, result.penalties, now)

    # employees never see upcoming challenges
    if not user.is_staff:
        result.upcoming = []
    return result


async def settle_expired_challenges(now: Optional[datetime] = None) -> SettleResult:
    now = now or utcnow()
    cutoff = now - timedelta(days=config.EXPIRY_GRACE_DAYS)
    result = SettleResult()

    upcoming = await Challenge.find({"status": ChallengeStatus.upcoming.value, "start_date": {"$lte": now}}).to_list()
    await promote_due_challenges(upcoming, now)

    expired = await Challenge.find(
        {"expires_at": {"$lt": cutoff}, "status": {"$ne": ChallengeStatus.completed.value}}
    ).to_list()

    owed: Dict[PydanticObjectId, int] = defaultdict(int)
    for challenge in expired:
        result.challenges_scanned += 1
        changed = False
        for p in challenge.participants:
            if not needs_penalty(p):
                continue
            p.points_lost = penalty_for(p)
            p.penalty_applied_at = now
            owed[p.user_id] += p.points_lost
            result.participants_penalized += 1
            changed = True
        if changed:
            await challenge.save()

    for user_id, amount in owed.items():
        if not amount:
            continue
        user = await User.get(user_id)
        if not user:
            logger.warning("penalty owed by missing user=%s", user_id)
            continue
        result.points_deducted += user.wellness.deduct_points(amount, now)
        await user.save()

    logger.info(
        "settlement sweep scanned=%s penalized=%s points=%s",
        result.challenges_scanned, result.participants_penalized, result.points_deducted,
    )
    return result
