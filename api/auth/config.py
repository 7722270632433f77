from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from beanie.odm.fields import PydanticObjectId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
from models import User
from services.errors import AuthenticationError, AuthorizationError

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(sub: str, extra: Optional[dict] = None) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": sub,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=config.ACCESS_MINUTES)).timestamp()),
        "jti": secrets.token_hex(16),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Not authorized, no token")

    decoded = decode_token(credentials.credentials)
    if not decoded or decoded.get("type") != "access" or not decoded.get("sub"):
        raise AuthenticationError("Invalid token")

    try:
        user_id = PydanticObjectId(decoded["sub"])
    except Exception:
        raise AuthenticationError("Invalid token")

    user = await User.get(user_id)
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    return user


async def require_staff(user: User = Depends(get_current_user)) -> User:
    if not user.is_staff:
        raise AuthorizationError(f"User role {user.role.value} is not authorized to access this route")
    return user
