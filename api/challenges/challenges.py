from __future__ import annotations

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header

import config
from api.auth.config import get_current_user, require_staff
from models import Challenge
from models.users import User
from schemas.challenges import (
    ChallengeCreateIn,
    ChallengeListOut,
    ChallengeOut,
    ChallengeUpdateIn,
    ChallengeView,
    JoinOut,
    LeaderboardEntryOut,
    LeaderboardOut,
    MyProgressOut,
    ParticipantOut,
    SettleOut,
    TodayProgressOut,
)
from services import challenges as engine
from services.categorizer import CategorizedChallenge, list_challenges, settle_expired_challenges
from services.errors import AuthorizationError

router = APIRouter(prefix="/challenges", tags=["challenges"])


def to_challenge_out(c: Challenge) -> ChallengeOut:
    return ChallengeOut(
        id=str(c.id),
        name=c.name,
        description=c.description,
        type=c.type,
        start_date=c.start_date,
        end_date=c.end_date,
        expires_at=c.expires_at,
        is_daily_challenge=c.is_daily_challenge,
        status=c.status,
        rules=c.rules,
        rewards=c.rewards,
        max_participants=c.max_participants,
        participant_count=len(c.participants),
        participants=[
            ParticipantOut(
                user_id=str(p.user_id),
                joined_at=p.joined_at,
                progress=p.progress,
                points=p.points,
                total_days_completed=p.total_days_completed,
                challenge_completed=p.challenge_completed,
                points_lost=p.points_lost,
            )
            for p in c.participants
        ],
        created_by=str(c.created_by) if c.created_by else None,
    )


def to_view(item: CategorizedChallenge) -> ChallengeView:
    return ChallengeView(
        **to_challenge_out(item.challenge).model_dump(),
        category=item.bucket,
        is_expired=item.is_expired,
        time_remaining_seconds=item.time_remaining_seconds,
        user_progress=TodayProgressOut(**item.user_progress) if item.user_progress else None,
    )


@router.get("", response_model=ChallengeListOut)
async def get_challenges(current_user: User = Depends(get_current_user)):
    result = await list_challenges(current_user)
    return ChallengeListOut(
        today=[to_view(x) for x in result.today],
        upcoming=[to_view(x) for x in result.upcoming],
        expired=[to_view(x) for x in result.expired],
        completed=[to_view(x) for x in result.completed],
        points_lost=result.points_lost,
    )


@router.post("", response_model=ChallengeOut, status_code=201)
async def create_challenge(payload: ChallengeCreateIn, staff: User = Depends(require_staff)):
    return to_challenge_out(await engine.create_challenge(staff, payload))


@router.post("/settle", response_model=SettleOut)
async def settle_challenges(x_internal_token: Optional[str] = Header(default=None)):
    secret = config.INTERNAL_TOKEN
    if not secret:
        raise AuthorizationError("Settlement sweep is disabled: INTERNAL_TOKEN is not configured")
    if not hmac.compare_digest((x_internal_token or "").strip(), secret):
        raise AuthorizationError("Forbidden")

    result = await settle_expired_challenges()
    return SettleOut(
        challenges_scanned=result.challenges_scanned,
        participants_penalized=result.participants_penalized,
        points_deducted=result.points_deducted,
    )


@router.get("/{challenge_id}", response_model=ChallengeOut)
async def get_challenge(challenge_id: str, current_user: User = Depends(get_current_user)):
    return to_challenge_out(await engine.get_challenge(challenge_id))


@router.put("/{challenge_id}", response_model=ChallengeOut)
async def update_challenge(challenge_id: str, payload: ChallengeUpdateIn, staff: User = Depends(require_staff)):
    return to_challenge_out(await engine.update_challenge(challenge_id, payload))


@router.delete("/{challenge_id}")
async def delete_challenge(challenge_id: str, staff: User = Depends(require_staff)):
    await engine.delete_challenge(challenge_id)
    return {"success": True, "message": "Challenge deleted"}


@router.post("/{challenge_id}/join", response_model=JoinOut)
async def join_challenge(challenge_id: str, current_user: User = Depends(get_current_user)):
    challenge, reward = await engine.join_challenge(current_user, challenge_id)
    return JoinOut(
        message="Successfully joined challenge",
        participation_points=reward,
        data=to_challenge_out(challenge),
    )


@router.delete("/{challenge_id}/leave")
async def leave_challenge(challenge_id: str, current_user: User = Depends(get_current_user)):
    await engine.leave_challenge(current_user, challenge_id)
    return {"success": True, "message": "Successfully left challenge"}


@router.get("/{challenge_id}/leaderboard", response_model=LeaderboardOut)
async def get_leaderboard(challenge_id: str, current_user: User = Depends(get_current_user)):
    challenge, board = await engine.get_challenge_leaderboard(challenge_id)
    return LeaderboardOut(
        challenge_id=str(challenge.id),
        items=[
            LeaderboardEntryOut(
                rank=e["rank"],
                user_id=str(e["user_id"]),
                name=e["name"],
                department=e["department"],
                progress=e["progress"],
                points=e["points"],
            )
            for e in board
        ],
    )


@router.get("/{challenge_id}/my-progress", response_model=MyProgressOut)
async def get_my_progress(challenge_id: str, current_user: User = Depends(get_current_user)):
    out = await engine.get_my_progress(current_user, challenge_id)
    return MyProgressOut(
        total_progress=out["total_progress"],
        total_points=out["total_points"],
        total_days_completed=out["total_days_completed"],
        today_progress=TodayProgressOut(**out["today_progress"]),
        joined_at=out["joined_at"],
    )
