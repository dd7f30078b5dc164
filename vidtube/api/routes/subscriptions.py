"""
Vidtube API — Subscription toggle and subscriber / subscribed-channel lists.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import get_current_user, get_optional_user, parse_object_id
from vidtube.core.database import get_db
from vidtube.models.models import User
from vidtube.schemas.schemas import ApiResponse, SubscribedChannelEntry, SubscriberEntry, SubscriptionToggle
from vidtube.services.content.content_service import load_or_404
from vidtube.services.relations.toggle_service import toggle_manager
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.post("/c/{channel_id}", response_model=ApiResponse[SubscriptionToggle])
async def toggle_subscription(
    channel_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    channel = await load_or_404(db, User, parse_object_id(channel_id, "channelId"), "Channel")
    result = await toggle_manager.toggle_subscription(db, user.id, channel.id)
    message = "Subscribed successfully" if result.active else "Unsubscribed successfully"
    return ApiResponse.build(SubscriptionToggle(is_subscribed=result.active), message)


@router.get(
    "/c/{channel_id}", response_model=ApiResponse[List[SubscriberEntry]], dependencies=[Depends(get_optional_user)],
)
async def channel_subscribers(
    channel_id: str,
    db: AsyncSession = Depends(get_db),
):
    channel = await load_or_404(db, User, parse_object_id(channel_id, "channelId"), "Channel")
    subscribers = await view_engine.subscribers(db, channel.id)
    return ApiResponse.build(subscribers, "Subscribers fetched successfully")


@router.get(
    "/u/{subscriber_id}", response_model=ApiResponse[List[SubscribedChannelEntry]], dependencies=[Depends(get_optional_user)],
)
async def subscribed_channels(
    subscriber_id: str,
    db: AsyncSession = Depends(get_db),
):
    subscriber = await load_or_404(db, User, parse_object_id(subscriber_id, "subscriberId"), "Subscriber")
    channels = await view_engine.subscribed_channels(db, subscriber.id)
    return ApiResponse.build(channels, "Subscribed channels fetched successfully")
