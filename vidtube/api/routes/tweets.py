"""
Vidtube API — Tweet routes.
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import actor_id, get_current_user, get_optional_user, parse_object_id
from vidtube.core.database import get_db
from vidtube.models.models import User
from vidtube.schemas.schemas import ApiResponse, ContentRequest, TweetRecord, TweetView
from vidtube.services.content.content_service import content_service, load_or_404
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/tweets", tags=["Tweets"])


@router.post("", response_model=ApiResponse[TweetRecord], status_code=status.HTTP_201_CREATED)
async def create_tweet(
    payload: ContentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweet = await content_service.create_tweet(db, user, payload.content)
    return ApiResponse.build(TweetRecord.model_validate(tweet), "Tweet created successfully", status.HTTP_201_CREATED)


@router.get("/user/{user_id}", response_model=ApiResponse[List[TweetView]])
async def user_tweets(
    user_id: str,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    owner = await load_or_404(db, User, parse_object_id(user_id, "userId"), "User")
    tweets = await view_engine.user_tweets(db, owner.id, actor_id(viewer))
    return ApiResponse.build(tweets, "Tweets fetched successfully")


@router.patch("/{tweet_id}", response_model=ApiResponse[TweetRecord])
async def update_tweet(
    tweet_id: str,
    payload: ContentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tweet = await content_service.update_tweet(db, user, parse_object_id(tweet_id, "tweetId"), payload.content)
    return ApiResponse.build(TweetRecord.model_validate(tweet), "Tweet updated successfully")


@router.delete("/{tweet_id}", response_model=ApiResponse[dict])
async def delete_tweet(
    tweet_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await content_service.delete_tweet(db, user, parse_object_id(tweet_id, "tweetId"))
    return ApiResponse.build({}, "Tweet deleted successfully")
