"""Global test fixtures for the wellness backend"""
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from beanie import PydanticObjectId, init_beanie

from models import ALL_MODELS, Challenge, User
from models.base import BaseDoc
from models.challenges import ChallengeRules
from models.enums import ChallengeStatus, ChallengeType, ChallengeUnit, UserRole

# Wednesday, mid-morning UTC: no yoga warning is due this early in the ISO week.
NOW = datetime(2024, 3, 13, 10, 0, 0)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_database():
    """Database double with just enough surface for init_beanie"""
    database = MagicMock()
    database.command = AsyncMock(return_value={"version": "7.0.0"})
    database.list_collection_names = AsyncMock(return_value=[])
    return database


@pytest.fixture(autouse=True)
async def beanie_models(mock_database):
    """Register the documents so they can be built without a server"""
    await init_beanie(database=mock_database, document_models=ALL_MODELS, skip_indexes=True)
    yield


@pytest.fixture
def persistence():
    """Stub the write path shared by every document"""
    with patch.object(BaseDoc, "save", new=AsyncMock()) as save, \
            patch.object(BaseDoc, "insert", new=AsyncMock()) as insert, \
            patch.object(BaseDoc, "delete", new=AsyncMock()) as delete:
        yield SimpleNamespace(save=save, insert=insert, delete=delete)


# ============================================================================
# User Fixtures
# ============================================================================

def make_user(role: UserRole = UserRole.employee, name: str = "Test Employee", points: int = 0) -> User:
    user = User(
        id=PydanticObjectId(),
        name=name,
        email=f"{PydanticObjectId()}@acmecorp.com",
        role=role,
        department="Engineering",
    )
    user.wellness.total_points = points
    user.wellness.level = points // 500 + 1
    return user


@pytest.fixture
def employee():
    return make_user()


@pytest.fixture
def admin():
    return make_user(role=UserRole.admin, name="Test Admin")


# ============================================================================
# Challenge Fixtures
# ============================================================================

def make_challenge(
    type: ChallengeType = ChallengeType.steps,
    target: float = 10000,
    unit: ChallengeUnit = ChallengeUnit.steps,
    start: datetime = datetime(2024, 3, 13, 0, 0, 0),
    end: datetime = datetime(2024, 3, 20, 0, 0, 0),
    status: ChallengeStatus = ChallengeStatus.active,
    expires_at: datetime = datetime(2024, 3, 13, 23, 0, 0),
    **rules,
) -> Challenge:
    return Challenge(
        id=PydanticObjectId(),
        name=f"Daily {type.value}",
        type=type,
        start_date=start,
        end_date=end,
        status=status,
        expires_at=expires_at,
        rules=ChallengeRules(target_value=target, unit=unit, **rules),
    )


@pytest.fixture
def steps_challenge():
    return make_challenge()
