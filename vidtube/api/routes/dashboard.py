"""
Vidtube API — Channel dashboard routes (actor's own channel).
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.api.deps import get_current_user
from vidtube.core.database import get_db
from vidtube.models.models import User
from vidtube.schemas.schemas import ApiResponse, ChannelStats, DashboardVideo
from vidtube.services.views.view_service import view_engine

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=ApiResponse[ChannelStats])
async def channel_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = await view_engine.channel_stats(db, user.id)
    return ApiResponse.build(stats, "Channel stats fetched successfully")


@router.get("/videos", response_model=ApiResponse[List[DashboardVideo]])
async def channel_videos(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    videos = await view_engine.channel_videos(db, user.id)
    return ApiResponse.build(videos, "Channel videos fetched successfully")
