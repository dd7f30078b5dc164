"""
Vidtube API dependencies — actor resolution, id parsing, session cookies.

The access token is read from the ``accessToken`` cookie first, then from an
``Authorization: Bearer`` header.
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Cookie, Depends, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.core.config import get_settings
from vidtube.core.database import get_db
from vidtube.core.exceptions import InvalidArgument
from vidtube.models.models import User
from vidtube.schemas.schemas import TokenPair
from vidtube.services.auth.guard import authenticate

settings = get_settings()

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

bearer = HTTPBearer(auto_error=False)


def extract_access_token(
    access_cookie: Optional[str] = Cookie(None, alias=ACCESS_COOKIE),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[str]:
    if access_cookie:
        return access_cookie
    if credentials is not None:
        return credentials.credentials
    return None


async def get_current_user(
    token: Optional[str] = Depends(extract_access_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    return await authenticate(db, token)


async def get_optional_user(
    token: Optional[str] = Depends(extract_access_token),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Anonymous when no token is presented; a bad token is still a 401."""
    if not token:
        return None
    return await authenticate(db, token)


def actor_id(user: Optional[User]) -> Optional[uuid.UUID]:
    return user.id if user is not None else None


def parse_object_id(value: Optional[str], label: str = "id") -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid {label}")


# ── Cookies ──────────────────────────────────────────────────────────────

def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.cookie_samesite,
    }


def set_session_cookies(response: Response, tokens: TokenPair) -> None:
    opts = _cookie_options()
    response.set_cookie(
        ACCESS_COOKIE, tokens.access_token,
        max_age=settings.access_token_expiry_minutes * 60, **opts,
    )
    response.set_cookie(
        REFRESH_COOKIE, tokens.refresh_token,
        max_age=settings.refresh_token_expiry_days * 24 * 3600, **opts,
    )


def clear_session_cookies(response: Response) -> None:
    opts = _cookie_options()
    response.delete_cookie(ACCESS_COOKIE, **opts)
    response.delete_cookie(REFRESH_COOKIE, **opts)
