"""
Vidtube Authorization Guard.

``authenticate`` turns a presented access token into an account;
``authorize_owner`` gates every mutation on an owned entity. Both are
plain functions called with an explicit actor, never ambient state.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.core.exceptions import Forbidden, Unauthenticated
from vidtube.core.security import ACCESS, decode_token, subject_id
from vidtube.models.models import Playlist, User

logger = logging.getLogger(__name__)


async def authenticate(db: AsyncSession, token: Optional[str]) -> User:
    if not token:
        raise Unauthenticated("Unauthorized request")

    payload = decode_token(token, ACCESS)
    user = await db.get(User, subject_id(payload))
    if user is None:
        raise Unauthenticated("Invalid access token")
    return user


def authorize_owner(actor: User, entity, action: str = "modify") -> None:
    """Raise ``Forbidden`` unless ``actor`` owns ``entity`` (via ``owner_id``)."""
    if entity.owner_id != actor.id:
        logger.info(f"Ownership check failed: {actor.id} cannot {action} {type(entity).__name__} {entity.id}")
        raise Forbidden(f"Only the owner can {action} this {type(entity).__name__.lower()}")


def authorize_playlist_change(actor: User, playlist: Playlist) -> None:
    """Membership changes are allowed to the playlist owner only; the video's owner is irrelevant."""
    authorize_owner(actor, playlist, action="change videos of")
