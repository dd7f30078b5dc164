"""
Vidtube credential primitives — password hashing and JWT encode/decode.

Access tokens are stateless (signature + expiry). Refresh tokens are signed
the same way but are only honoured when they equal the value stored on the
account; that check lives in the session service.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from vidtube.core.config import get_settings
from vidtube.core.exceptions import Unauthenticated

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _secret_for(token_type: str) -> str:
    if token_type == ACCESS:
        return settings.access_token_secret
    return settings.refresh_token_secret


def create_access_token(user_id: uuid.UUID, username: str, email: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expiry_minutes)
    payload = {
        "sub": str(user_id),
        "username": username,
        "email": email,
        "type": ACCESS,
        "exp": expire,
    }
    return jwt.encode(payload, _secret_for(ACCESS), algorithm=settings.jwt_algorithm)


def create_refresh_token(user_id: uuid.UUID) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expiry_days)
    payload = {
        "sub": str(user_id),
        "type": REFRESH,
        "jti": uuid.uuid4().hex,
        "exp": expire,
    }
    return jwt.encode(payload, _secret_for(REFRESH), algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str) -> Dict[str, Any]:
    """Verify signature, expiry and token type; return the claims."""
    try:
        payload = jwt.decode(
            token,
            _secret_for(token_type),
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated(f"{token_type.capitalize()} token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated(f"Invalid {token_type} token")

    if payload.get("type") != token_type:
        raise Unauthenticated(f"Invalid {token_type} token")
    return payload


def subject_id(payload: Dict[str, Any]) -> uuid.UUID:
    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise Unauthenticated("Malformed token subject")
