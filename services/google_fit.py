"""Google Fit step source used by auto-fetched step logs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict

import httpx

import config
from utils.dates import day_bounds

logger = logging.getLogger(__name__)

AGGREGATE_URL = "https://www.googleapis.com/fitness/v1/users/me/dataset:aggregate"
TOKEN_URL = "https://oauth2.googleapis.com/token"
STEP_DATA_TYPE = "com.google.step_count.delta"


class FitnessProviderError(Exception):
    pass


class TokenExpired(FitnessProviderError):
    pass


def _epoch_ms(dt: datetime) -> int:
    return int((dt - datetime(1970, 1, 1)).total_seconds() * 1000)


def sum_steps(payload: Dict[str, Any]) -> int:
    buckets = payload.get("bucket") or []
    if not buckets:
        return 0
    datasets = buckets[0].get("dataset") or []
    if not datasets:
        return 0

    total = 0
    for point in datasets[0].get("point") or []:
        for val in point.get("value") or []:
            if val.get("intVal") is not None:
                total += int(val["intVal"])
    return total


class GoogleFitClient:
    def __init__(self, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout or config.GOOGLE_FIT_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def fetch_value_for_date(self, access_token: str, day: datetime) -> int:
        start, end = day_bounds(day)
        body = {
            "aggregateBy": [{"dataTypeName": STEP_DATA_TYPE}],
            "bucketByTime": {"durationMillis": 86400000},
            "startTimeMillis": _epoch_ms(start),
            "endTimeMillis": _epoch_ms(end) - 1,
        }

        try:
            async with self._client() as client:
                r = await client.post(AGGREGATE_URL, json=body, headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as e:
            logger.warning("Google Fit request failed: %s", e)
            raise FitnessProviderError("Failed to fetch steps from Google Fit") from e

        if r.status_code == 401:
            raise TokenExpired("Google Fit token expired. Please reconnect.")
        if r.status_code == 403:
            raise FitnessProviderError("Google Fit access denied. Please check permissions.")
        if not 200 <= r.status_code < 300:
            logger.warning("Google Fit returned status=%s body=%s", r.status_code, r.text[:500])
            raise FitnessProviderError("Failed to fetch steps from Google Fit")

        return sum_steps(r.json())

    async def refresh(self, refresh_token: str) -> str:
        data = {
            "client_id": config.GOOGLE_CLIENT_ID,
            "client_secret": config.GOOGLE_CLIENT_SECRET,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            async with self._client() as client:
                r = await client.post(TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            raise FitnessProviderError("Failed to refresh Google Fit token") from e

        if not 200 <= r.status_code < 300:
            logger.warning("Google Fit token refresh failed status=%s", r.status_code)
            raise FitnessProviderError("Failed to refresh Google Fit token")

        token = (r.json() or {}).get("access_token")
        if not token:
            raise FitnessProviderError("Failed to refresh Google Fit token")
        return token


def get_fitness_provider() -> GoogleFitClient:
    return GoogleFitClient()
