from __future__ import annotations

from datetime import datetime
from typing import Optional

from beanie.odm.fields import PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel

from utils.dates import utcnow

from .base import BaseDoc
from .enums import HealthProvider


class UserHealthIntegration(BaseDoc):
    """OAuth credential for an external step source (Google Fit)."""

    user_id: PydanticObjectId
    provider: HealthProvider = HealthProvider.google_fit
    is_connected: bool = False
    connected_at: Optional[datetime] = None
    access_token: Optional[str] = Field(default=None, max_length=4096)
    refresh_token: Optional[str] = Field(default=None, max_length=4096)
    token_refreshed_at: Optional[datetime] = None

    @property
    def usable(self) -> bool:
        return self.is_connected and bool(self.access_token)

    @classmethod
    async def for_user(
        cls, user_id: PydanticObjectId, provider: HealthProvider = HealthProvider.google_fit
    ) -> Optional["UserHealthIntegration"]:
        return await cls.find_one(cls.user_id == user_id, cls.provider == provider)

    async def store_access_token(self, token: str, now: Optional[datetime] = None) -> None:
        self.access_token = token
        self.token_refreshed_at = now or utcnow()
        await self.touch()

    class Settings:
        name = "user_health_integrations"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("provider", ASCENDING)], unique=True),
        ]
