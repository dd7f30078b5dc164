"""
Vidtube API — Account and session routes.
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Cookie, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import (
    REFRESH_COOKIE,
    actor_id,
    clear_session_cookies,
    get_current_user,
    get_optional_user,
    set_session_cookies,
)
from vidtube.core.database import get_db
from vidtube.models.models import User
from vidtube.schemas.schemas import (
    ApiResponse,
    ChangePasswordRequest,
    ChannelProfile,
    LoginData,
    LoginRequest,
    RefreshRequest,
    TokenPair,
    UpdateAccountRequest,
    UserPublic,
    VideoFeedItem,
)
from vidtube.services.accounts.account_service import account_service
from vidtube.services.media.storage import MediaStorage, get_media_storage
from vidtube.services.sessions.session_service import session_manager
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=ApiResponse[UserPublic], status_code=status.HTTP_201_CREATED)
async def register(
    full_name: Optional[str] = Form(None, alias="fullName"),
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    db: AsyncSession = Depends(get_db),
    storage: MediaStorage = Depends(get_media_storage),
):
    user = await account_service.register(
        db, storage, full_name, email, username, password, avatar, cover_image,
    )
    return ApiResponse.build(
        UserPublic.model_validate(user), "User registered successfully", status.HTTP_201_CREATED,
    )


@router.post("/login", response_model=ApiResponse[LoginData])
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user, tokens = await session_manager.login(
        db, payload.password, username=payload.username, email=payload.email,
    )
    set_session_cookies(response, tokens)
    data = LoginData(
        user=UserPublic.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )
    return ApiResponse.build(data, "User logged in successfully")


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await session_manager.logout(db, user.id)
    clear_session_cookies(response)
    return ApiResponse.build({}, "User logged out")


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
async def refresh_access_token(
    response: Response,
    payload: Optional[RefreshRequest] = Body(None),
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    db: AsyncSession = Depends(get_db),
):
    presented = refresh_cookie or (payload.refresh_token if payload else None)
    _, tokens = await session_manager.rotate(db, presented)
    set_session_cookies(response, tokens)
    return ApiResponse.build(tokens, "Access token refreshed")


@router.post("/change-password", response_model=ApiResponse[dict])
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await account_service.change_password(db, user, payload.old_password, payload.new_password)
    return ApiResponse.build({}, "Password changed successfully")


@router.get("/current-user", response_model=ApiResponse[UserPublic])
async def current_user(user: User = Depends(get_current_user)):
    return ApiResponse.build(UserPublic.model_validate(user), "User fetched successfully")


@router.patch("/update-account", response_model=ApiResponse[UserPublic])
async def update_account(
    payload: UpdateAccountRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await account_service.update_account(db, user, payload.full_name, payload.email)
    return ApiResponse.build(UserPublic.model_validate(user), "Account details updated successfully")


@router.patch("/avatar", response_model=ApiResponse[UserPublic])
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: MediaStorage = Depends(get_media_storage),
):
    user = await account_service.replace_avatar(db, storage, user, avatar)
    return ApiResponse.build(UserPublic.model_validate(user), "Avatar updated successfully")


@router.patch("/cover-image", response_model=ApiResponse[UserPublic])
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: MediaStorage = Depends(get_media_storage),
):
    user = await account_service.replace_cover_image(db, storage, user, cover_image)
    return ApiResponse.build(UserPublic.model_validate(user), "Cover image updated successfully")


@router.get("/channel/{username}", response_model=ApiResponse[ChannelProfile])
async def channel_profile(
    username: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await view_engine.channel_profile(db, username, actor_id(viewer))
    return ApiResponse.build(profile, "User channel fetched successfully")


@router.get("/watch-history", response_model=ApiResponse[List[VideoFeedItem]])
async def watch_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    history = await view_engine.watch_history(db, user.id)
    return ApiResponse.build(history, "Watch history fetched successfully")
