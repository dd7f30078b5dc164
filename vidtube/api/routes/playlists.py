"""
Vidtube API — Playlist routes.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import get_current_user, get_optional_user, parse_object_id
from vidtube.core.database import get_db
from vidtube.models.models import User
from vidtube.schemas.schemas import ApiResponse, PlaylistDetail, PlaylistRecord, PlaylistRequest, PlaylistSummary
from vidtube.services.content.content_service import content_service, load_or_404
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/playlist", tags=["Playlists"])


@router.post("", response_model=ApiResponse[PlaylistRecord], status_code=status.HTTP_201_CREATED)
async def create_playlist(
    payload: PlaylistRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    playlist = await content_service.create_playlist(db, user, payload.name, payload.description)
    record = await content_service.playlist_record(db, playlist)
    return ApiResponse.build(record, "Playlist created successfully", status.HTTP_201_CREATED)


@router.get(
    "/user/{user_id}", response_model=ApiResponse[List[PlaylistSummary]], dependencies=[Depends(get_optional_user)],
)
async def user_playlists(
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    owner = await load_or_404(db, User, parse_object_id(user_id, "userId"), "User")
    playlists = await view_engine.user_playlists(db, owner.id)
    return ApiResponse.build(playlists, "User playlists fetched successfully")


@router.get(
    "/{playlist_id}", response_model=ApiResponse[PlaylistDetail], dependencies=[Depends(get_optional_user)],
)
async def get_playlist(
    playlist_id: str,
    db: AsyncSession = Depends(get_db),
):
    detail = await view_engine.playlist_detail(db, parse_object_id(playlist_id, "playlistId"))
    return ApiResponse.build(detail, "Playlist fetched successfully")


@router.patch("/add/{video_id}/{playlist_id}", response_model=ApiResponse[PlaylistRecord])
async def add_video_to_playlist(
    video_id: str,
    playlist_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    playlist = await content_service.add_to_playlist(
        db, user, parse_object_id(video_id, "videoId"), parse_object_id(playlist_id, "playlistId"),
    )
    record = await content_service.playlist_record(db, playlist)
    return ApiResponse.build(record, "Video added to playlist")


@router.patch("/remove/{video_id}/{playlist_id}", response_model=ApiResponse[PlaylistRecord])
async def remove_video_from_playlist(
    video_id: str,
    playlist_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    playlist = await content_service.remove_from_playlist(
        db, user, parse_object_id(video_id, "videoId"), parse_object_id(playlist_id, "playlistId"),
    )
    record = await content_service.playlist_record(db, playlist)
    return ApiResponse.build(record, "Video removed from playlist")


@router.patch("/{playlist_id}", response_model=ApiResponse[PlaylistRecord])
async def update_playlist(
    playlist_id: str,
    payload: PlaylistRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    playlist = await content_service.update_playlist(
        db, user, parse_object_id(playlist_id, "playlistId"), payload.name, payload.description,
    )
    record = await content_service.playlist_record(db, playlist)
    return ApiResponse.build(record, "Playlist updated successfully")


@router.delete("/{playlist_id}", response_model=ApiResponse[dict])
async def delete_playlist(
    playlist_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await content_service.delete_playlist(db, user, parse_object_id(playlist_id, "playlistId"))
    return ApiResponse.build({}, "Playlist deleted successfully")
