"""Domain error hierarchy rendered by the handlers registered in main.py."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional


class WellnessError(Exception):
    code = "wellness_error"
    status_code = 500

    def __init__(self, message: str, *, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "code": self.code, "message": self.message, **self.extra}


class ValidationError(WellnessError, ValueError):
    code = "validation_error"
    status_code = 400


class PreconditionFailed(WellnessError):
    code = "precondition_failed"
    status_code = 400


class DuplicateParticipant(PreconditionFailed):
    code = "duplicate_participant"


class ChallengeFull(PreconditionFailed):
    code = "challenge_full"


class NotAParticipant(PreconditionFailed):
    code = "not_a_participant"


class ChallengeClosed(PreconditionFailed):
    code = "challenge_closed"


class OneChallengePerType(PreconditionFailed):
    code = "one_challenge_per_type"


class DailyCreationLimit(PreconditionFailed):
    code = "daily_creation_limit"


class PhotoRequirementNotMet(PreconditionFailed):
    code = "photo_requirement_not_met"


class TimeGapViolation(PreconditionFailed):
    code = "time_gap_violation"

    def __init__(self, message: str, *, next_allowed_at: datetime):
        super().__init__(message, extra={"nextAllowedAt": next_allowed_at.isoformat()})
        self.next_allowed_at = next_allowed_at


class ExternalSourceError(WellnessError):
    code = "external_source_error"
    status_code = 400

    def __init__(self, message: str, *, reconnect_required: bool = False):
        extra: Dict[str, Any] = {"allowManual": True}
        if reconnect_required:
            extra["reconnectRequired"] = True
        super().__init__(message, extra=extra)
        self.reconnect_required = reconnect_required


class NotFoundError(WellnessError, LookupError):
    code = "not_found"
    status_code = 404


class AuthenticationError(WellnessError):
    code = "unauthorized"
    status_code = 401


class AuthorizationError(WellnessError):
    code = "forbidden"
    status_code = 403


class ConflictError(WellnessError):
    code = "conflict"
    status_code = 409


class AlreadyVerifiedConflict(ConflictError):
    code = "already_verified"
