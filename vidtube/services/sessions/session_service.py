"""
Vidtube Session Manager — access/refresh pair issuance and rotation.

Per account:  LoggedOut → LoggedIn (one live refresh token) → LoggedOut

The account row holds the only refresh token that will be honoured.
Login overwrites it, rotation swaps it with a compare-and-swap UPDATE
(``WHERE refresh_token = :presented``), logout clears it. A superseded
token therefore fails rotation even while its signature is still valid.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.core.exceptions import InvalidArgument, Unauthenticated
from vidtube.core.security import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    subject_id,
    verify_password,
)
from vidtube.models.models import User
from vidtube.schemas.schemas import TokenPair

logger = logging.getLogger(__name__)


class SessionManager:

    @staticmethod
    def _mint(user: User) -> TokenPair:
        return TokenPair(
            access_token=create_access_token(user.id, user.username, user.email),
            refresh_token=create_refresh_token(user.id),
        )

    async def login(
        self,
        db: AsyncSession,
        password: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Tuple[User, TokenPair]:
        if not (username or email):
            raise InvalidArgument("username or email is required")

        criteria = []
        if username:
            criteria.append(User.username == username.strip().lower())
        if email:
            criteria.append(User.email == email.strip().lower())
        user = await db.scalar(select(User).where(or_(*criteria)))

        if user is None or not verify_password(password, user.hashed_password):
            logger.info(f"Login rejected for {username or email}")
            raise Unauthenticated("Invalid user credentials")

        tokens = self._mint(user)
        # Unconditional overwrite: any previously issued refresh token dies here
        user.refresh_token = tokens.refresh_token
        await db.commit()
        logger.info(f"Session opened: {user.id}")
        return user, tokens

    async def rotate(self, db: AsyncSession, presented: Optional[str]) -> Tuple[User, TokenPair]:
        if not presented:
            raise Unauthenticated("Refresh token is required")

        payload = decode_token(presented, REFRESH)
        user = await db.get(User, subject_id(payload))
        if user is None:
            raise Unauthenticated("Invalid refresh token")
        user_id = user.id

        tokens = self._mint(user)
        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.refresh_token == presented)
            .values(refresh_token=tokens.refresh_token)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.rollback()
            logger.warning(f"Refresh token reuse rejected for {user_id}")
            raise Unauthenticated("Refresh token is expired or used")

        await db.commit()
        await db.refresh(user)
        logger.info(f"Session rotated: {user.id}")
        return user, tokens

    async def logout(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(refresh_token=None)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        logger.info(f"Session closed: {user_id}")


session_manager = SessionManager()
