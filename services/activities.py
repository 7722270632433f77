"""Activity recorder: validates a log, credits the ledger and settles challenge progress."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from beanie.odm.fields import PydanticObjectId

import config
from models import Activity, Challenge, User, UserHealthIntegration, calculate_points
from models.activities import ActivityMetadata, ActivityPhoto, PhotoEntry
from models.challenges import ChallengeRules
from models.enums import ActivityType, ActivityUnit, ChallengeStatus, ChallengeType, PhotoKind
from schemas.activities import ActivityLogIn, ActivityUpdateIn, PhotoUrlIn
from utils.dates import day_start, ensure_naive_utc, utcnow

from .badges import evaluate_badges_safely
from .errors import (
    AuthorizationError,
    ExternalSourceError,
    NotFoundError,
    PhotoRequirementNotMet,
    TimeGapViolation,
    ValidationError,
)
from .google_fit import FitnessProviderError, TokenExpired, get_fitness_provider

logger = logging.getLogger(__name__)

DEFAULT_UNITS = {
    ActivityType.steps: ActivityUnit.steps,
    ActivityType.meditation: ActivityUnit.minutes,
    ActivityType.workout: ActivityUnit.minutes,
    ActivityType.yoga: ActivityUnit.minutes,
    ActivityType.walking: ActivityUnit.minutes,
    ActivityType.running: ActivityUnit.minutes,
    ActivityType.cycling: ActivityUnit.minutes,
    ActivityType.hydration: ActivityUnit.glasses,
    ActivityType.sleep: ActivityUnit.hours,
    ActivityType.nutrition: ActivityUnit.servings,
    ActivityType.healthy_eating: ActivityUnit.servings,
    ActivityType.other: ActivityUnit.items,
}


@dataclass
class LogResult:
    activity: Activity
    challenge_update: Optional[Dict[str, Any]] = None
    yoga_warning: Optional[Dict[str, Any]] = None
    badges_awarded: List[str] = field(default_factory=list)


def clamp_limit(limit: int) -> int:
    return min(max(limit, 1), 100)


def parse_object_id(raw: Any, what: str) -> PydanticObjectId:
    try:
        return PydanticObjectId(str(raw))
    except Exception:
        raise NotFoundError(f"{what} not found")


def parse_activity_type(raw: Optional[str]) -> ActivityType:
    if not raw:
        raise ValidationError("Activity type is required")
    try:
        return ActivityType(str(raw).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown activity type: {raw}")


def parse_value(raw: Any) -> float:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError("Activity value is required")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError("Activity value must be a valid number")
    if not math.isfinite(value) or value < 0:
        raise ValidationError("Activity value must be a non-negative number")
    if value > config.MAX_ACTIVITY_VALUE:
        raise ValidationError(f"Activity value must not exceed {config.MAX_ACTIVITY_VALUE:g}")
    return value


def can_access(user: User, activity: Activity) -> bool:
    return activity.user_id == user.id or user.is_staff


# ---------- external step source ----------

async def fetch_steps(user: User, day: datetime, provider: Any) -> float:
    integration = await UserHealthIntegration.for_user(user.id)
    if not integration or not integration.usable:
        raise ExternalSourceError("Google Fit is not connected. Please connect it or enter your steps manually.")

    try:
        steps = await provider.fetch_value_for_date(integration.access_token, day)
    except TokenExpired:
        if not integration.refresh_token:
            raise ExternalSourceError("Google Fit connection expired. Please reconnect.", reconnect_required=True)
        try:
            token = await provider.refresh(integration.refresh_token)
            await integration.store_access_token(token)
            steps = await provider.fetch_value_for_date(token, day)
        except FitnessProviderError:
            logger.warning("Google Fit refresh failed for user=%s", user.id)
            raise ExternalSourceError("Google Fit connection expired. Please reconnect.", reconnect_required=True)
    except FitnessProviderError as e:
        raise ExternalSourceError(str(e) or "Failed to fetch steps from Google Fit. Please try manual entry.")

    if not steps:
        raise ExternalSourceError("No steps data found in Google Fit for the selected date. Please try manual entry.")
    return float(steps)


# ---------- challenge rules ----------

def check_photo_quota(rules: ChallengeRules, photo_count: int) -> None:
    if not rules.requires_photo:
        return

    if photo_count < rules.min_photos:
        missing = rules.min_photos - photo_count
        raise PhotoRequirementNotMet(
            f"This challenge requires at least {rules.min_photos} photo(s). "
            f"Please upload {missing} more photo(s)."
        )
    if photo_count > rules.max_photos:
        raise PhotoRequirementNotMet(f"Maximum {rules.max_photos} photos allowed for this challenge.")


async def check_time_gap(
    user: User, challenge: Challenge, activity_type: ActivityType, now: datetime
) -> Optional[float]:
    """Returns hours since the previous same-day log, or None when the rule doesn't apply."""
    gap = challenge.rules.time_gap
    if not gap or challenge.type != ChallengeType.hydration or activity_type != ActivityType.hydration:
        return None

    last = await Activity.find(
        {
            "user_id": user.id,
            "type": activity_type.value,
            "challenge_id": challenge.id,
            "activity_date": {"$gte": day_start(now)},
        }
    ).sort("-activity_date").first_or_none()
    if not last:
        return None

    elapsed = (now - last.activity_date).total_seconds() / 3600
    if elapsed < gap:
        next_at = last.activity_date + timedelta(hours=gap)
        raise TimeGapViolation(
            f"Wait! Log your next glass after {gap:g} hours. Next glass at {next_at.strftime('%H:%M')} UTC.",
            next_allowed_at=next_at,
        )
    return round(elapsed, 2)


def build_photo(
    uploads: List[PhotoEntry], url_entries: List[PhotoUrlIn], rules: Optional[ChallengeRules], now: datetime
) -> Optional[ActivityPhoto]:
    entries = list(uploads)
    for p in url_entries:
        entries.append(PhotoEntry(url=p.url, description=p.description, uploaded_at=now))
    if not entries:
        return None

    # uploaded files come first, so they own the canonical url
    return ActivityPhoto(
        kind=PhotoKind.multiple if len(entries) > 1 else PhotoKind.single,
        url=entries[0].url,
        urls=entries,
        uploaded_at=now,
        verified=False,
        min_photos=rules.min_photos if rules else None,
        max_photos=rules.max_photos if rules else None,
    )


async def load_challenge(raw_id: Any) -> Challenge:
    challenge = await Challenge.get(parse_object_id(raw_id, "Challenge"))
    if not challenge:
        raise NotFoundError("Challenge not found")
    return challenge


# ---------- settlement ----------

async def settle_challenge_progress(
    user: User, activity: Activity, challenge: Optional[Challenge], now: datetime
) -> Optional[Dict[str, Any]]:
    if challenge is not None:
        if challenge.status != ChallengeStatus.active or challenge.type.value != activity.type.value:
            logger.info(
                "settlement skipped: challenge=%s status=%s type=%s activity_type=%s",
                challenge.id, challenge.status.value, challenge.type.value, activity.type.value,
            )
            return None
        target = challenge
    else:
        target = await Challenge.find_active_for_user(activity.type.value, user.id, now)
        if not target:
            return None
        activity.challenge_id = target.id
        await activity.save()

    if not target.get_participant(user.id):
        logger.warning("settlement skipped: user=%s is not a participant of challenge=%s", user.id, target.id)
        return None

    update = target.update_participant_progress(
        user.id, activity.value, activity.points, activity.activity_date, now=now
    )
    await target.save()

    update["challenge_id"] = str(target.id)
    update["remaining"] = max(0, update["target_value"] - update["daily_progress"])
    return update


# ---------- operations ----------

async def log_activity(
    user: User,
    payload: ActivityLogIn,
    uploads: Optional[List[PhotoEntry]] = None,
    provider: Any = None,
    now: Optional[datetime] = None,
) -> LogResult:
    now = now or utcnow()
    uploads = list(uploads or [])

    activity_type = parse_activity_type(payload.type)
    activity_date = ensure_naive_utc(payload.activity_date) if payload.activity_date else now

    verified = False
    if activity_type == ActivityType.steps and payload.auto_fetch:
        value = await fetch_steps(user, activity_date, provider or get_fitness_provider())
        verified = True
    else:
        value = parse_value(payload.value)

    unit = payload.unit or DEFAULT_UNITS[activity_type]
    metadata = payload.metadata or ActivityMetadata()
    url_entries = payload.photo.entries() if payload.photo else []

    challenge: Optional[Challenge] = None
    if payload.challenge_id:
        challenge = await load_challenge(payload.challenge_id)
        check_photo_quota(challenge.rules, len(uploads) + len(url_entries))
        gap = await check_time_gap(user, challenge, activity_type, now)
        if gap is not None:
            metadata.time_gap = gap

    points = calculate_points(activity_type, value, unit)

    activity = Activity(
        user_id=user.id,
        type=activity_type,
        title=payload.title,
        description=payload.description,
        value=value,
        unit=unit,
        points=points,
        challenge_id=challenge.id if challenge else None,
        activity_date=activity_date,
        photo=build_photo(uploads, url_entries, challenge.rules if challenge else None, now),
        metadata=metadata,
        verified=verified,
    )
    await activity.insert()

    ledger = user.wellness
    ledger.add_points(points, now)
    ledger.update_streak(now)
    if activity_type == ActivityType.yoga:
        ledger.track_yoga_session(now)
    yoga = ledger.check_yoga_warning(now)
    await user.save()

    update = await settle_challenge_progress(user, activity, challenge, now)
    if update and update["bonus_points"] > 0:
        ledger.add_points(update["bonus_points"], now)
        await user.save()
        logger.info(
            "daily target hit user=%s challenge=%s bonus=%s",
            user.id, update["challenge_id"], update["bonus_points"],
        )

    badges = await evaluate_badges_safely(user.id, activity_type.value, points)

    return LogResult(
        activity=activity,
        challenge_update=update,
        yoga_warning=yoga if yoga.get("warning") else None,
        badges_awarded=badges or [],
    )


def _activity_filter(
    type: Optional[str], start_date: Optional[datetime], end_date: Optional[datetime]
) -> Dict[str, Any]:
    flt: Dict[str, Any] = {}
    if type:
        flt["type"] = parse_activity_type(type).value
    if start_date or end_date:
        flt["activity_date"] = {}
        if start_date:
            flt["activity_date"]["$gte"] = ensure_naive_utc(start_date)
        if end_date:
            flt["activity_date"]["$lte"] = ensure_naive_utc(end_date)
    return flt


async def _page(flt: Dict[str, Any], skip: int, limit: int) -> Tuple[List[Activity], int]:
    query = Activity.find(flt).sort("-activity_date")
    total = await query.count()
    items = await query.skip(max(0, skip)).limit(clamp_limit(limit)).to_list()
    return items, total


async def list_my_activities(
    user: User,
    type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[Activity], int]:
    flt = _activity_filter(type, start_date, end_date)
    flt["user_id"] = user.id
    return await _page(flt, skip, limit)


async def list_all_activities(
    user_id: Optional[str] = None,
    type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[Activity], int]:
    flt = _activity_filter(type, start_date, end_date)
    if user_id:
        flt["user_id"] = parse_object_id(user_id, "User")
    return await _page(flt, skip, limit)


async def get_activity(user: User, activity_id: Any) -> Activity:
    activity = await Activity.get(parse_object_id(activity_id, "Activity"))
    if not activity:
        raise NotFoundError("Activity not found")
    if not can_access(user, activity):
        raise AuthorizationError("Not authorized to access this activity")
    return activity


async def _owner(activity: Activity, fallback: User) -> Optional[User]:
    if activity.user_id == fallback.id:
        return fallback
    return await User.get(activity.user_id)


async def update_activity(user: User, activity_id: Any, patch: ActivityUpdateIn, now: Optional[datetime] = None) -> Activity:
    now = now or utcnow()
    activity = await get_activity(user, activity_id)
    value = parse_value(patch.value) if patch.value is not None else None
    data = patch.model_dump(exclude_unset=True)

    for key in ("type", "title", "description", "unit", "metadata"):
        if data.get(key) is not None:
            setattr(activity, key, getattr(patch, key))
    if value is not None:
        activity.value = value
    if patch.activity_date is not None:
        activity.activity_date = ensure_naive_utc(patch.activity_date)

    old_points = activity.points
    if patch.value is not None or patch.type is not None:
        activity.points = calculate_points(activity.type, activity.value, activity.unit)
    await activity.save()

    delta = activity.points - old_points
    if delta:
        owner = await _owner(activity, user)
        if owner:
            if delta > 0:
                owner.wellness.add_points(delta, now)
            else:
                owner.wellness.deduct_points(-delta, now)
            await owner.save()
    return activity


async def delete_activity(user: User, activity_id: Any, now: Optional[datetime] = None) -> int:
    activity = await get_activity(user, activity_id)

    removed = 0
    owner = await _owner(activity, user)
    if owner:
        removed = owner.wellness.deduct_points(activity.points, now)
        await owner.save()

    await activity.delete()
    logger.info("activity deleted id=%s by=%s points=%s", activity.id, user.id, activity.points)
    return removed
