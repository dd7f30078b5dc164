"""
Vidtube Account Service — registration and profile maintenance.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import UploadFile
from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.core.exceptions import Conflict, InvalidArgument, MediaStorageError
from vidtube.core.security import hash_password, verify_password
from vidtube.models.models import MediaKind, User
from vidtube.services.media.storage import MediaStorage
from vidtube.workers.tasks import schedule_media_purge

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


def _valid_email(raw: str) -> str:
    try:
        return _email_adapter.validate_python(raw.strip()).lower()
    except ValidationError:
        raise InvalidArgument("A valid email is required")


class AccountService:

    async def register(
        self,
        db: AsyncSession,
        storage: MediaStorage,
        full_name: Optional[str],
        email: Optional[str],
        username: Optional[str],
        password: Optional[str],
        avatar: Optional[UploadFile],
        cover_image: Optional[UploadFile] = None,
    ) -> User:
        if any(not (field or "").strip() for field in (full_name, email, username, password)):
            raise InvalidArgument("All fields are required")
        email = _valid_email(email)
        username = username.strip().lower()
        if avatar is None:
            raise InvalidArgument("Avatar file is required")

        existing = await db.scalar(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if existing is not None:
            raise Conflict("User with email or username already exists")

        uploaded_avatar = await storage.upload(avatar, MediaKind.IMAGE, "avatars")
        uploaded_cover = None
        if cover_image is not None:
            try:
                uploaded_cover = await storage.upload(cover_image, MediaKind.IMAGE, "covers")
            except MediaStorageError:
                schedule_media_purge([uploaded_avatar.public_id])
                raise

        user = User(
            full_name=full_name.strip(),
            email=email,
            username=username,
            hashed_password=hash_password(password),
            avatar_url=uploaded_avatar.url,
            avatar_public_id=uploaded_avatar.public_id,
            cover_image_url=uploaded_cover.url if uploaded_cover else None,
            cover_image_public_id=uploaded_cover.public_id if uploaded_cover else None,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            schedule_media_purge([
                uploaded_avatar.public_id,
                uploaded_cover.public_id if uploaded_cover else None,
            ])
            raise Conflict("User with email or username already exists")

        logger.info(f"Account registered: {user.id} ({user.username})")
        return user

    async def change_password(self, db: AsyncSession, user: User, old_password: str, new_password: str) -> None:
        if not verify_password(old_password, user.hashed_password):
            raise InvalidArgument("Invalid old password")
        user.hashed_password = hash_password(new_password)
        await db.commit()
        logger.info(f"Password changed for {user.id}")

    async def update_account(self, db: AsyncSession, user: User, full_name: str, email: str) -> User:
        full_name = (full_name or "").strip()
        if not full_name or not (email or "").strip():
            raise InvalidArgument("All fields are required")
        email = _valid_email(email)

        taken = await db.scalar(select(User.id).where(User.email == email, User.id != user.id))
        if taken is not None:
            raise Conflict("Email is already in use")

        user.full_name = full_name
        user.email = email
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise Conflict("Email is already in use")
        return user

    async def replace_avatar(self, db: AsyncSession, storage: MediaStorage, user: User, avatar: Optional[UploadFile]) -> User:
        if avatar is None:
            raise InvalidArgument("Avatar file is missing")
        uploaded = await storage.upload(avatar, MediaKind.IMAGE, "avatars")
        superseded = user.avatar_public_id
        user.avatar_url = uploaded.url
        user.avatar_public_id = uploaded.public_id
        await db.commit()
        schedule_media_purge([superseded])
        return user

    async def replace_cover_image(
        self, db: AsyncSession, storage: MediaStorage, user: User, cover_image: Optional[UploadFile]
    ) -> User:
        if cover_image is None:
            raise InvalidArgument("Cover image file is missing")
        uploaded = await storage.upload(cover_image, MediaKind.IMAGE, "covers")
        superseded = user.cover_image_public_id
        user.cover_image_url = uploaded.url
        user.cover_image_public_id = uploaded.public_id
        await db.commit()
        schedule_media_purge([superseded])
        return user


account_service = AccountService()
