"""
Vidtube API Schemas — Pydantic v2 models for request/response validation.

One statically defined projection per view type; JSON keys are camelCase.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ═══════════════════════════════════════════════════════════════════════
# Envelope
# ═══════════════════════════════════════════════════════════════════════

class ApiResponse(CamelModel, Generic[T]):
    status_code: int = 200
    data: Optional[T] = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def build(cls, data=None, message: str = "Success", status_code: int = 200):
        return cls(status_code=status_code, data=data, message=message, success=status_code < 400)


class ErrorResponse(CamelModel):
    status_code: int
    data: None = None
    message: str
    success: bool = False
    kind: str
    errors: List[dict] = []


class Page(CamelModel, Generic[T]):
    """Paginated result, mirrors the classic aggregate-paginate shape."""
    docs: List[T]
    total_docs: int
    limit: int
    page: int
    total_pages: int
    paging_counter: int
    has_prev_page: bool
    has_next_page: bool
    prev_page: Optional[int] = None
    next_page: Optional[int] = None


# ═══════════════════════════════════════════════════════════════════════
# Accounts & sessions
# ═══════════════════════════════════════════════════════════════════════

class UserPublic(CamelModel):
    id: uuid.UUID
    username: str
    email: str
    full_name: str
    avatar_url: str
    cover_image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LoginRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class LoginData(TokenPair):
    user: UserPublic


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class UpdateAccountRequest(CamelModel):
    full_name: str = Field(..., min_length=1)
    email: EmailStr


class OwnerSummary(CamelModel):
    id: uuid.UUID
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ChannelProfile(CamelModel):
    id: uuid.UUID
    username: str
    full_name: str
    email: str
    avatar_url: str
    cover_image_url: Optional[str] = None
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool
    created_at: datetime


# ═══════════════════════════════════════════════════════════════════════
# Videos
# ═══════════════════════════════════════════════════════════════════════

class VideoBase(CamelModel):
    id: uuid.UUID
    video_file_url: str
    thumbnail_url: str
    title: str
    description: str
    duration: float
    views: int
    is_published: bool
    created_at: datetime


class VideoRecord(VideoBase):
    owner_id: uuid.UUID
    updated_at: datetime


class VideoFeedItem(VideoBase):
    owner_details: OwnerSummary


class VideoOwnerDetail(CamelModel):
    id: uuid.UUID
    username: str
    avatar_url: Optional[str] = None
    subscribers_count: int
    is_subscribed: bool


class VideoDetail(VideoBase):
    owner: VideoOwnerDetail
    likes_count: int
    is_liked: bool


class DashboardVideo(VideoBase):
    likes_count: int


class LikedVideo(CamelModel):
    liked_video: VideoFeedItem
    liked_at: datetime


class PublishToggle(CamelModel):
    is_published: bool


# ═══════════════════════════════════════════════════════════════════════
# Comments & tweets
# ═══════════════════════════════════════════════════════════════════════

class ContentRequest(CamelModel):
    content: str = Field(..., min_length=1)


class CommentRecord(CamelModel):
    id: uuid.UUID
    content: str
    video_id: uuid.UUID
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class CommentView(CamelModel):
    id: uuid.UUID
    content: str
    created_at: datetime
    likes_count: int
    is_liked: bool
    owner: OwnerSummary


class TweetRecord(CamelModel):
    id: uuid.UUID
    content: str
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class TweetView(CamelModel):
    id: uuid.UUID
    content: str
    created_at: datetime
    likes_count: int
    is_liked: bool
    owner: OwnerSummary


# ═══════════════════════════════════════════════════════════════════════
# Engagement
# ═══════════════════════════════════════════════════════════════════════

class LikeToggle(CamelModel):
    is_liked: bool


class SubscriptionToggle(CamelModel):
    is_subscribed: bool


class SubscriberView(CamelModel):
    id: uuid.UUID
    username: str
    full_name: str
    avatar_url: str
    subscribed_to_subscriber: bool
    subscribers_count: int


class SubscriberEntry(CamelModel):
    subscriber: SubscriberView


class LatestVideo(CamelModel):
    id: uuid.UUID
    video_file_url: str
    thumbnail_url: str
    title: str
    description: str
    duration: float
    views: int
    created_at: datetime


class SubscribedChannelView(CamelModel):
    id: uuid.UUID
    username: str
    full_name: str
    avatar_url: str
    subscribers_count: int
    latest_video: Optional[LatestVideo] = None


class SubscribedChannelEntry(CamelModel):
    subscribed_channel: SubscribedChannelView


class ChannelStats(CamelModel):
    total_videos: int
    total_views: int
    total_likes: int
    total_subscribers: int


# ═══════════════════════════════════════════════════════════════════════
# Playlists
# ═══════════════════════════════════════════════════════════════════════

class PlaylistRequest(CamelModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class PlaylistRecord(CamelModel):
    id: uuid.UUID
    name: str
    description: str
    owner_id: uuid.UUID
    video_ids: List[uuid.UUID] = []
    created_at: datetime
    updated_at: datetime


class PlaylistSummary(CamelModel):
    id: uuid.UUID
    name: str
    description: str
    total_videos: int
    total_views: int
    updated_at: datetime


class PlaylistDetail(PlaylistSummary):
    created_at: datetime
    videos: List[LatestVideo]
    owner: OwnerSummary
