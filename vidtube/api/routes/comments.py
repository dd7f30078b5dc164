"""
Vidtube API — Comment routes.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import actor_id, get_current_user, get_optional_user, parse_object_id
from vidtube.core.database import get_db
from vidtube.models.models import User
from vidtube.schemas.schemas import ApiResponse, CommentRecord, CommentView, ContentRequest, Page
from vidtube.services.content.content_service import content_service
from vidtube.services.views.pipeline import PageRequest
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/comments", tags=["Comments"])


@router.get("/{video_id}", response_model=ApiResponse[Page[CommentView]])
async def video_comments(
    video_id: str,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    result = await view_engine.comment_thread(
        db, parse_object_id(video_id, "videoId"), actor_id(viewer), PageRequest.parse(page, limit),
    )
    return ApiResponse.build(Page(docs=result.docs, **result.meta()), "Comments fetched successfully")


@router.post("/{video_id}", response_model=ApiResponse[CommentRecord], status_code=status.HTTP_201_CREATED)
async def add_comment(
    video_id: str,
    payload: ContentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await content_service.add_comment(db, user, parse_object_id(video_id, "videoId"), payload.content)
    return ApiResponse.build(CommentRecord.model_validate(comment), "Comment added successfully", status.HTTP_201_CREATED)


@router.patch("/c/{comment_id}", response_model=ApiResponse[CommentRecord])
async def update_comment(
    comment_id: str,
    payload: ContentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await content_service.update_comment(
        db, user, parse_object_id(comment_id, "commentId"), payload.content,
    )
    return ApiResponse.build(CommentRecord.model_validate(comment), "Comment updated successfully")


@router.delete("/c/{comment_id}", response_model=ApiResponse[dict])
async def delete_comment(
    comment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await content_service.delete_comment(db, user, parse_object_id(comment_id, "commentId"))
    return ApiResponse.build({}, "Comment deleted successfully")
