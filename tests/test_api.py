"""
HTTP tests

Routing, auth, form parsing and error rendering; domain services are patched
"""

from datetime import datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from beanie import PydanticObjectId

import config
from api.auth.config import create_access_token, get_current_user
from main import app
from models import Activity, User
from models.enums import ActivityType, ActivityUnit, Bucket
from services.activities import LogResult
from services.categorizer import Categorization, CategorizedChallenge, SettleResult
from services.errors import AlreadyVerifiedConflict, PhotoRequirementNotMet, TimeGapViolation

from conftest import NOW, make_challenge


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login


def logged_activity(user, **kw):
    data = dict(
        id=PydanticObjectId(),
        user_id=user.id,
        type=ActivityType.steps,
        value=6000,
        unit=ActivityUnit.steps,
        points=60,
        activity_date=NOW,
    )
    data.update(kw)
    return Activity(**data)


# ============================================
# Auth
# ============================================

async def test_missing_token_is_unauthorized(client):
    r = await client.get("/api/v1/activities")

    assert r.status_code == 401
    assert r.json() == {"success": False, "code": "unauthorized", "message": "Not authorized, no token"}


async def test_bearer_token_resolves_user(client, employee):
    token = create_access_token(str(employee.id))
    with patch.object(User, "get", new=AsyncMock(return_value=employee)):
        r = await client.get("/api/v1/users/me/wellness", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200
    assert r.json()["user_id"] == str(employee.id)
    assert r.json()["level"] == 1


async def test_garbage_token_is_unauthorized(client):
    r = await client.get("/api/v1/users/me/wellness", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


async def test_employees_cannot_verify(client, login, employee):
    login(employee)
    r = await client.post(f"/api/v1/activities/{PydanticObjectId()}/verify")

    assert r.status_code == 403
    assert r.json()["code"] == "forbidden"


# ============================================
# Activities
# ============================================

async def test_log_activity_parses_form_fields(client, login, employee):
    login(employee)
    activity = logged_activity(employee)
    log = AsyncMock(return_value=LogResult(
        activity=activity,
        challenge_update={
            "challenge_id": str(PydanticObjectId()),
            "daily_completed": False,
            "daily_progress": 6000,
            "target_value": 10000,
            "remaining": 4000,
            "total_days_completed": 0,
            "bonus_points": 0,
            "challenge_completed": False,
        },
    ))

    with patch("services.activities.log_activity", new=log):
        r = await client.post(
            "/api/v1/activities",
            data={
                "type": "steps",
                "value": "6000",
                "metadata": '{"device": "pixel-watch"}',
                "photo": '{"urls": ["https://cdn.acmecorp.com/walk.jpg"]}',
            },
        )

    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["points"] == 60
    assert body["challenge_update"]["remaining"] == 4000
    assert body["yoga_warning"] is None

    user, payload = log.call_args.args
    assert user is employee
    assert payload.type == "steps"
    assert payload.value == "6000"
    assert payload.metadata.device == "pixel-watch"
    assert payload.photo.entries()[0].url == "https://cdn.acmecorp.com/walk.jpg"
    assert log.call_args.kwargs["uploads"] == []


async def test_log_activity_stores_uploaded_photos(client, login, employee, tmp_path, monkeypatch):
    login(employee)
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))
    log = AsyncMock(return_value=LogResult(activity=logged_activity(employee)))

    with patch("services.activities.log_activity", new=log):
        r = await client.post(
            "/api/v1/activities",
            data={"type": "steps", "value": "6000"},
            files=[("photos", ("walk.jpg", b"\xff\xd8\xff-jpeg-bytes", "image/jpeg"))],
        )

    assert r.status_code == 201
    uploads = log.call_args.kwargs["uploads"]
    assert len(uploads) == 1
    assert uploads[0].mimetype == "image/jpeg"
    assert (tmp_path / uploads[0].filename).read_bytes() == b"\xff\xd8\xff-jpeg-bytes"


async def test_non_image_upload_is_rejected(client, login, employee, tmp_path, monkeypatch):
    login(employee)
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))

    r = await client.post(
        "/api/v1/activities",
        data={"type": "steps", "value": "10"},
        files=[("photos", ("notes.txt", b"hello", "text/plain"))],
    )

    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"


async def test_invalid_value_is_a_400(client, login, employee):
    login(employee)
    r = await client.post("/api/v1/activities", data={"type": "steps", "value": "lots"})

    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"


@pytest.mark.parametrize("field, size", [("title", 101), ("description", 501)])
async def test_overlong_text_fields_are_a_400(client, login, employee, field, size):
    login(employee)
    r = await client.post("/api/v1/activities", data={"type": "steps", "value": "10", field: "x" * size})

    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"
    assert field in r.json()["message"]


async def test_rejected_log_leaves_no_stored_photos(client, login, employee, tmp_path, monkeypatch):
    login(employee)
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))
    err = PhotoRequirementNotMet("This challenge requires at least 2 photo(s). Please upload 1 more photo(s).")

    with patch("services.activities.log_activity", new=AsyncMock(side_effect=err)):
        r = await client.post(
            "/api/v1/activities",
            data={"type": "steps", "value": "6000"},
            files=[("photos", ("walk.jpg", b"\xff\xd8\xff-jpeg-bytes", "image/jpeg"))],
        )

    assert r.status_code == 400
    assert r.json()["code"] == "photo_requirement_not_met"
    assert list(tmp_path.iterdir()) == []


async def test_bad_file_in_a_batch_discards_the_rest(client, login, employee, tmp_path, monkeypatch):
    login(employee)
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))

    r = await client.post(
        "/api/v1/activities",
        data={"type": "steps", "value": "10"},
        files=[
            ("photos", ("walk.jpg", b"\xff\xd8\xff-jpeg-bytes", "image/jpeg")),
            ("photos", ("notes.txt", b"hello", "text/plain")),
        ],
    )

    assert r.status_code == 400
    assert list(tmp_path.iterdir()) == []


async def test_time_gap_violation_carries_next_allowed_at(client, login, employee):
    login(employee)
    err = TimeGapViolation("Wait! Log your next glass after 2 hours.", next_allowed_at=datetime(2024, 3, 13, 11, 0))

    with patch("services.activities.log_activity", new=AsyncMock(side_effect=err)):
        r = await client.post("/api/v1/activities", data={"type": "hydration", "value": "1"})

    assert r.status_code == 400
    assert r.json()["code"] == "time_gap_violation"
    assert r.json()["nextAllowedAt"] == "2024-03-13T11:00:00"


async def test_reject_activity(client, login, admin):
    login(admin)
    out = {"points_deducted": 50, "user_total_points": 450}

    with patch("services.verification.reject_activity", new=AsyncMock(return_value=out)) as reject:
        r = await client.post(f"/api/v1/activities/{PydanticObjectId()}/reject", json={"reason": "Blurry"})

    assert r.status_code == 200
    assert r.json()["points_deducted"] == 50
    assert r.json()["user_total_points"] == 450
    assert reject.call_args.args[1] == "Blurry"


async def test_reject_verified_activity_is_a_conflict(client, login, admin):
    login(admin)
    err = AlreadyVerifiedConflict("Cannot reject an already verified activity")

    with patch("services.verification.reject_activity", new=AsyncMock(side_effect=err)):
        r = await client.post(f"/api/v1/activities/{PydanticObjectId()}/reject")

    assert r.status_code == 409
    assert r.json()["code"] == "already_verified"


async def test_unexpected_errors_render_as_500(client, login, employee):
    login(employee)
    with patch("services.activities.get_activity", new=AsyncMock(side_effect=RuntimeError("boom"))):
        r = await client.get(f"/api/v1/activities/{PydanticObjectId()}")

    assert r.status_code == 500
    assert r.json()["code"] == "internal_error"


# ============================================
# Challenges
# ============================================

async def test_list_challenges_returns_buckets(client, login, employee):
    login(employee)
    challenge = make_challenge()
    result = Categorization(
        today=[CategorizedChallenge(
            challenge=challenge,
            bucket=Bucket.today,
            time_remaining_seconds=3600,
            user_progress={"value": 0, "completed": False, "target": 10000, "remaining": 10000},
        )],
        points_lost=20,
    )

    with patch("api.challenges.challenges.list_challenges", new=AsyncMock(return_value=result)):
        r = await client.get("/api/v1/challenges")

    assert r.status_code == 200
    body = r.json()
    assert body["points_lost"] == 20
    assert body["upcoming"] == [] and body["expired"] == [] and body["completed"] == []
    today = body["today"][0]
    assert today["id"] == str(challenge.id)
    assert today["category"] == "today"
    assert today["time_remaining_seconds"] == 3600
    assert today["user_progress"]["remaining"] == 10000


async def test_settle_requires_internal_token(client, monkeypatch):
    monkeypatch.setattr(config, "INTERNAL_TOKEN", "s3cret")
    sweep = AsyncMock(return_value=SettleResult(challenges_scanned=2, participants_penalized=3, points_deducted=45))

    with patch("api.challenges.challenges.settle_expired_challenges", new=sweep):
        denied = await client.post("/api/v1/challenges/settle", headers={"X-Internal-Token": "wrong"})
        allowed = await client.post("/api/v1/challenges/settle", headers={"X-Internal-Token": "s3cret"})

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["points_deducted"] == 45
    sweep.assert_awaited_once()


async def test_settle_is_refused_without_configured_token(client, monkeypatch):
    monkeypatch.setattr(config, "INTERNAL_TOKEN", "")
    sweep = AsyncMock(return_value=SettleResult())

    with patch("api.challenges.challenges.settle_expired_challenges", new=sweep):
        r = await client.post("/api/v1/challenges/settle")

    assert r.status_code == 403
    assert r.json()["code"] == "forbidden"
    sweep.assert_not_awaited()


async def test_create_challenge_requires_staff(client, login, employee):
    login(employee)
    r = await client.post("/api/v1/challenges", json={
        "name": "Walk",
        "type": "steps",
        "start_date": "2024-03-13T00:00:00",
        "end_date": "2024-03-20T00:00:00",
        "rules": {"target_value": 10000, "unit": "steps"},
    })
    assert r.status_code == 403


async def test_my_progress_for_non_member_is_404(client, login, employee):
    login(employee)
    with patch("services.challenges.get_challenge", new=AsyncMock(return_value=make_challenge())):
        r = await client.get(f"/api/v1/challenges/{PydanticObjectId()}/my-progress")

    assert r.status_code == 404
    assert r.json()["code"] == "not_found"
