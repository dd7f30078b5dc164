"""
Vidtube API — Like toggles and the liked-videos list.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import get_current_user, parse_object_id
from vidtube.core.database import get_db
from vidtube.models.models import Comment, LikeTarget, Tweet, User, Video
from vidtube.schemas.schemas import ApiResponse, LikedVideo, LikeToggle
from vidtube.services.content.content_service import load_or_404, load_visible_video
from vidtube.services.relations.toggle_service import toggle_manager
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/likes", tags=["Likes"])

_TARGETS = {
    LikeTarget.VIDEO: (Video, "videoId"),
    LikeTarget.COMMENT: (Comment, "commentId"),
    LikeTarget.TWEET: (Tweet, "tweetId"),
}


async def _toggle(db: AsyncSession, user: User, target: LikeTarget, raw_id: str) -> ApiResponse:
    model, label = _TARGETS[target]
    target_id = parse_object_id(raw_id, label)
    if target is LikeTarget.VIDEO:
        await load_visible_video(db, target_id, user.id)
    else:
        entity = await load_or_404(db, model, target_id)
        if target is LikeTarget.COMMENT:
            # Comments on a hidden video are hidden with it
            await load_visible_video(db, entity.video_id, user.id)
    result = await toggle_manager.toggle_like(db, user.id, target, target_id)
    message = f"{model.__name__} liked" if result.active else f"{model.__name__} unliked"
    return ApiResponse.build(LikeToggle(is_liked=result.active), message)


@router.post("/toggle/v/{video_id}", response_model=ApiResponse[LikeToggle])
async def toggle_video_like(
    video_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, user, LikeTarget.VIDEO, video_id)


@router.post("/toggle/c/{comment_id}", response_model=ApiResponse[LikeToggle])
async def toggle_comment_like(
    comment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, user, LikeTarget.COMMENT, comment_id)


@router.post("/toggle/t/{tweet_id}", response_model=ApiResponse[LikeToggle])
async def toggle_tweet_like(
    tweet_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _toggle(db, user, LikeTarget.TWEET, tweet_id)


@router.get("/videos", response_model=ApiResponse[List[LikedVideo]])
async def liked_videos(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    videos = await view_engine.liked_videos(db, user.id)
    return ApiResponse.build(videos, "Liked videos fetched successfully")
