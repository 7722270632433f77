from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError as PydanticValidationError

from api.auth.config import get_current_user, require_staff
from models import Activity
from models.activities import ActivityMetadata
from models.enums import ActivityUnit
from models.users import User
from schemas.activities import (
    ActivityListOut,
    ActivityLogIn,
    ActivityLogOut,
    ActivityOut,
    ActivityUpdateIn,
    ChallengeUpdateOut,
    PhotoIn,
    RejectIn,
    RejectOut,
    VerifyOut,
    YogaWarningOut,
)
from services import activities as recorder
from services import verification
from services.errors import ValidationError
from services.google_fit import get_fitness_provider
from services.photos import discard_photos, store_photos

router = APIRouter(prefix="/activities", tags=["activities"])


def to_activity_out(a: Activity) -> ActivityOut:
    return ActivityOut(
        id=str(a.id),
        user_id=str(a.user_id),
        type=a.type,
        title=a.title,
        description=a.description,
        value=a.value,
        unit=a.unit,
        points=a.points,
        challenge_id=str(a.challenge_id) if a.challenge_id else None,
        activity_date=a.activity_date,
        photo=a.photo,
        metadata=a.metadata,
        verified=a.verified,
        verified_by=str(a.verified_by) if a.verified_by else None,
        verified_at=a.verified_at,
        created_at=a.created_at,
    )


def _first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ())) or "input"
    return f"Invalid {field}: {err.get('msg', 'invalid value')}"


def _parse_json_field(raw: Optional[str], model, name: str):
    if not raw:
        return None
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError:
        raise ValidationError(f"Invalid {name} field")


@router.post("", response_model=ActivityLogOut, status_code=201)
async def log_activity(
    type: Optional[str] = Form(default=None),
    value: Optional[str] = Form(default=None),
    unit: Optional[ActivityUnit] = Form(default=None),
    title: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    challenge_id: Optional[str] = Form(default=None),
    activity_date: Optional[datetime] = Form(default=None),
    auto_fetch: bool = Form(default=False),
    metadata: Optional[str] = Form(default=None),
    photo: Optional[str] = Form(default=None),
    photos: Optional[List[UploadFile]] = File(default=None),
    current_user: User = Depends(get_current_user),
    provider=Depends(get_fitness_provider),
):
    try:
        payload = ActivityLogIn(
            type=type,
            value=value,
            unit=unit,
            title=title,
            description=description,
            challenge_id=challenge_id or None,
            activity_date=activity_date,
            auto_fetch=auto_fetch,
            metadata=_parse_json_field(metadata, ActivityMetadata, "metadata"),
            photo=_parse_json_field(photo, PhotoIn, "photo"),
        )
    except PydanticValidationError as e:
        raise ValidationError(_first_error(e))

    uploads = await store_photos(photos or [], str(current_user.id))
    try:
        result = await recorder.log_activity(current_user, payload, uploads=uploads, provider=provider)
    except Exception:
        await discard_photos(uploads)
        raise

    return ActivityLogOut(
        data=to_activity_out(result.activity),
        challenge_update=ChallengeUpdateOut(**result.challenge_update) if result.challenge_update else None,
        yoga_warning=YogaWarningOut(**result.yoga_warning) if result.yoga_warning else None,
        badges_awarded=result.badges_awarded,
    )


@router.get("", response_model=ActivityListOut)
async def list_my_activities(
    type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
):
    items, total = await recorder.list_my_activities(current_user, type, start_date, end_date, skip, limit)
    return ActivityListOut(items=[to_activity_out(a) for a in items], total=total, skip=skip, limit=limit)


@router.get("/all", response_model=ActivityListOut)
async def list_all_activities(
    user_id: Optional[str] = None,
    type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    staff: User = Depends(require_staff),
):
    items, total = await recorder.list_all_activities(user_id, type, start_date, end_date, skip, limit)
    return ActivityListOut(items=[to_activity_out(a) for a in items], total=total, skip=skip, limit=limit)


@router.get("/unverified", response_model=ActivityListOut)
async def list_unverified(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    staff: User = Depends(require_staff),
):
    items, total = await verification.list_unverified(skip, limit)
    return ActivityListOut(items=[to_activity_out(a) for a in items], total=total, skip=skip, limit=limit)


@router.get("/{activity_id}", response_model=ActivityOut)
async def get_activity(activity_id: str, current_user: User = Depends(get_current_user)):
    return to_activity_out(await recorder.get_activity(current_user, activity_id))


@router.put("/{activity_id}", response_model=ActivityOut)
async def update_activity(
    activity_id: str,
    payload: ActivityUpdateIn,
    current_user: User = Depends(get_current_user),
):
    return to_activity_out(await recorder.update_activity(current_user, activity_id, payload))


@router.delete("/{activity_id}")
async def delete_activity(activity_id: str, current_user: User = Depends(get_current_user)):
    removed = await recorder.delete_activity(current_user, activity_id)
    return {"success": True, "message": "Activity deleted", "points_deducted": removed}


@router.post("/{activity_id}/verify", response_model=VerifyOut)
async def verify_activity(activity_id: str, staff: User = Depends(require_staff)):
    activity = await verification.verify_activity(activity_id, staff)
    return VerifyOut(message="Activity verified successfully", data=to_activity_out(activity))


@router.post("/{activity_id}/reject", response_model=RejectOut)
async def reject_activity(
    activity_id: str,
    payload: Optional[RejectIn] = None,
    staff: User = Depends(require_staff),
):
    reason = payload.reason if payload else None
    out = await verification.reject_activity(activity_id, reason, staff)
    return RejectOut(
        message=f"Activity rejected. {out['points_deducted']} points deducted from user.",
        points_deducted=out["points_deducted"],
        user_total_points=out["user_total_points"],
    )
