"""Challenge operation tests: create, update, join/leave, leaderboard, my progress"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from beanie import PydanticObjectId

from models import Challenge, User
from models.challenges import ChallengeRewards, ChallengeRules
from models.enums import ChallengeStatus, ChallengeType, ChallengeUnit
from schemas.challenges import ChallengeCreateIn, ChallengeUpdateIn
from services import challenges as engine
from services.errors import DailyCreationLimit, NotAParticipant, NotFoundError, ValidationError

from conftest import NOW, make_user


@pytest.fixture
def challenge_store(persistence, steps_challenge):
    with patch.object(Challenge, "get", new=AsyncMock(return_value=steps_challenge)), \
            patch.object(Challenge, "find_active_for_user", new=AsyncMock(return_value=None)):
        yield steps_challenge


def create_payload(start, end, **extra):
    return ChallengeCreateIn(
        name="Walk 10k",
        type=ChallengeType.steps,
        start_date=start,
        end_date=end,
        rules=ChallengeRules(target_value=10000, unit=ChallengeUnit.steps),
        **extra,
    )


# ============================================
# Create / update
# ============================================

async def test_create_starting_today_is_active(admin, persistence):
    with patch.object(Challenge, "find_one", new=AsyncMock(return_value=None)):
        challenge = await engine.create_challenge(admin, create_payload(NOW, NOW + timedelta(days=7)), now=NOW)

    assert challenge.status == ChallengeStatus.active
    assert challenge.expires_at == NOW + timedelta(hours=24)
    assert challenge.created_by == admin.id
    assert challenge.created_at == NOW
    persistence.insert.assert_awaited_once()


async def test_create_in_the_future_is_upcoming(admin, persistence):
    start = datetime(2024, 3, 16, 7, 0)
    with patch.object(Challenge, "find_one", new=AsyncMock(return_value=None)):
        challenge = await engine.create_challenge(admin, create_payload(start, start + timedelta(days=3)), now=NOW)

    assert challenge.status == ChallengeStatus.upcoming
    assert challenge.expires_at == start + timedelta(hours=24)


async def test_second_creation_on_the_same_day_is_refused(admin, persistence, steps_challenge):
    with patch.object(Challenge, "find_one", new=AsyncMock(return_value=steps_challenge)):
        with pytest.raises(DailyCreationLimit):
            await engine.create_challenge(admin, create_payload(NOW, NOW + timedelta(days=1)), now=NOW)
    persistence.insert.assert_not_awaited()


async def test_create_rejects_inverted_dates(admin, persistence):
    with pytest.raises(ValidationError):
        await engine.create_challenge(admin, create_payload(NOW, NOW - timedelta(days=1)), now=NOW)


async def test_update_revalidates_dates(challenge_store):
    with pytest.raises(ValidationError):
        await engine.update_challenge(challenge_store.id, ChallengeUpdateIn(end_date=datetime(2024, 3, 1)))


async def test_update_applies_fields(challenge_store):
    updated = await engine.update_challenge(
        challenge_store.id,
        ChallengeUpdateIn(name="Walk more", rewards=ChallengeRewards(participation_points=25)),
    )
    assert updated.name == "Walk more"
    assert updated.rewards.participation_points == 25


async def test_unknown_challenge_is_not_found(persistence):
    with patch.object(Challenge, "get", new=AsyncMock(return_value=None)):
        with pytest.raises(NotFoundError):
            await engine.get_challenge(PydanticObjectId())


# ============================================
# Join / leave
# ============================================

async def test_join_credits_participation_points(employee, challenge_store):
    challenge_store.rewards = ChallengeRewards(participation_points=25)

    challenge, reward = await engine.join_challenge(employee, challenge_store.id, now=NOW)

    assert reward == 25
    assert challenge.get_participant(employee.id).joined_at == NOW
    assert employee.wellness.total_points == 25


async def test_leave_challenge(employee, challenge_store):
    await engine.join_challenge(employee, challenge_store.id, now=NOW)
    await engine.leave_challenge(employee, challenge_store.id)

    assert challenge_store.get_participant(employee.id) is None
    with pytest.raises(NotAParticipant):
        await engine.leave_challenge(employee, challenge_store.id)


# ============================================
# Leaderboard / my progress
# ============================================

async def test_leaderboard_carries_names(challenge_store):
    alice = make_user(name="Alice")
    bob = make_user(name="Bob")
    for user, progress in ((alice, 300), (bob, 500)):
        challenge_store.add_participant(user.id, NOW)
        challenge_store.update_participant_progress(user.id, progress, 3, NOW, now=NOW)

    finder = MagicMock()
    finder.return_value.to_list = AsyncMock(return_value=[alice, bob])
    with patch.object(User, "find", new=finder):
        _, board = await engine.get_challenge_leaderboard(challenge_store.id)

    assert [(e["rank"], e["name"], e["progress"]) for e in board] == [(1, "Bob", 500), (2, "Alice", 300)]


async def test_my_progress(employee, challenge_store):
    challenge_store.add_participant(employee.id, NOW)
    challenge_store.update_participant_progress(employee.id, 4000, 40, NOW, now=NOW)

    out = await engine.get_my_progress(employee, challenge_store.id, now=NOW)

    assert out["total_progress"] == 4000
    assert out["total_points"] == 40
    assert out["today_progress"]["remaining"] == 6000
    assert out["joined_at"] == NOW


async def test_my_progress_for_non_member(employee, challenge_store):
    with pytest.raises(NotFoundError):
        await engine.get_my_progress(employee, challenge_store.id, now=NOW)
