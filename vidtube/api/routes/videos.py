"""
Vidtube API — Video routes.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import actor_id, get_current_user, get_optional_user, parse_object_id
from vidtube.core.database import get_db
from vidtube.models.models import User
from vidtube.schemas.schemas import ApiResponse, Page, PublishToggle, VideoDetail, VideoFeedItem, VideoRecord
from vidtube.services.content.content_service import content_service
from vidtube.services.media.storage import MediaStorage, get_media_storage
from vidtube.services.views.pipeline import PageRequest
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/videos", tags=["Videos"])


@router.get(
    "", response_model=ApiResponse[Page[VideoFeedItem]], dependencies=[Depends(get_optional_user)],
)
async def video_feed(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    query: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_type: Optional[str] = Query(None, alias="sortType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    db: AsyncSession = Depends(get_db),
):
    """Published videos, newest first unless a sort is given."""
    owner_id = parse_object_id(user_id, "userId") if user_id else None
    result = await view_engine.video_feed(
        db,
        PageRequest.parse(page, limit),
        query=query,
        owner_id=owner_id,
        sort_by=sort_by,
        sort_type=sort_type,
    )
    return ApiResponse.build(Page(docs=result.docs, **result.meta()), "Videos fetched successfully")


@router.post("", response_model=ApiResponse[VideoRecord], status_code=status.HTTP_201_CREATED)
async def publish_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    video_file: Optional[UploadFile] = File(None, alias="videoFile"),
    thumbnail: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: MediaStorage = Depends(get_media_storage),
):
    video = await content_service.publish_video(db, storage, user, title, description, video_file, thumbnail)
    return ApiResponse.build(VideoRecord.model_validate(video), "Video published successfully", status.HTTP_201_CREATED)


@router.get("/{video_id}", response_model=ApiResponse[VideoDetail])
async def get_video(
    video_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    detail = await view_engine.video_detail(db, parse_object_id(video_id, "videoId"), actor_id(viewer))
    return ApiResponse.build(detail, "Video fetched successfully")


@router.patch("/{video_id}", response_model=ApiResponse[VideoRecord])
async def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: MediaStorage = Depends(get_media_storage),
):
    video = await content_service.update_video(
        db, storage, user, parse_object_id(video_id, "videoId"),
        title=title, description=description, thumbnail=thumbnail,
    )
    return ApiResponse.build(VideoRecord.model_validate(video), "Video updated successfully")


@router.delete("/{video_id}", response_model=ApiResponse[dict])
async def delete_video(
    video_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await content_service.delete_video(db, user, parse_object_id(video_id, "videoId"))
    return ApiResponse.build({}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}", response_model=ApiResponse[PublishToggle])
async def toggle_publish(
    video_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    video = await content_service.toggle_publish(db, user, parse_object_id(video_id, "videoId"))
    return ApiResponse.build(PublishToggle(is_published=video.is_published), "Video publish status toggled")
