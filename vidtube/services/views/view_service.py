"""
Vidtube View-Composition Engine — denormalized read models.

Each view joins independently owned collections through a ``ViewPipeline``
and computes its aggregates relative to the requesting actor (``None`` for
anonymous callers, whose membership flags are always false). Views may span
several store calls; no cross-call atomicity is assumed.

Views:
  video_feed          Video ⋈ owner, keyword/owner filters, sort, page
  video_detail        Video ⋈ likes ⋈ owner ⋈ owner's subscribers
  comment_thread      Comment ⋈ owner ⋈ likes, newest first, page
  channel_profile     Account ⋈ subscriptions (as channel / as subscriber)
  channel_stats       Account ⋈ videos ⋈ likes ⋈ subscriptions
  subscribers         Subscription ⋈ Account, with mutual-subscription flag
  subscribed_channels Subscription ⋈ Account ⋈ latest video
  liked_videos        Like(video) ⋈ Video ⋈ owner
"""
from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from vidtube.core.exceptions import InvalidArgument, NotFound
from vidtube.models.models import (
    Comment, Like, LikeTarget, Playlist, PlaylistVideo, Subscription,
    Tweet, User, Video, WatchHistoryEntry,
)
from vidtube.schemas.schemas import (
    ChannelProfile,
    ChannelStats,
    CommentView,
    DashboardVideo,
    LatestVideo,
    LikedVideo,
    OwnerSummary,
    PlaylistDetail,
    PlaylistSummary,
    SubscribedChannelEntry,
    SubscribedChannelView,
    SubscriberEntry,
    SubscriberView,
    TweetView,
    VideoDetail,
    VideoFeedItem,
    VideoOwnerDetail,
)
from vidtube.services.views import fields
from vidtube.services.views.pipeline import PageRequest, PageResult, ViewPipeline, split_sort

logger = logging.getLogger(__name__)

FEED_SORT_KEYS = {
    "createdAt": Video.created_at,
    "views": Video.views,
    "duration": Video.duration,
    "title": Video.title,
}


def _owner_summary(user: User) -> OwnerSummary:
    return OwnerSummary(id=user.id, username=user.username, full_name=user.full_name, avatar_url=user.avatar_url)


def _feed_item(video: Video, owner: User) -> VideoFeedItem:
    return VideoFeedItem(
        id=video.id,
        video_file_url=video.video_file_url,
        thumbnail_url=video.thumbnail_url,
        title=video.title,
        description=video.description,
        duration=video.duration,
        views=video.views,
        is_published=video.is_published,
        created_at=video.created_at,
        owner_details=_owner_summary(owner),
    )


class ViewCompositionEngine:

    # ── Video feed ───────────────────────────────────────────────────────

    async def video_feed(
        self,
        db: AsyncSession,
        page: PageRequest,
        query: Optional[str] = None,
        owner_id: Optional[uuid.UUID] = None,
        sort_by: Optional[str] = None,
        sort_type: Optional[str] = None,
    ) -> PageResult[VideoFeedItem]:
        sort_column, descending = split_sort(sort_by, sort_type, FEED_SORT_KEYS, ("createdAt", "desc"))
        if sort_column is None:
            raise InvalidArgument(f"sortBy must be one of {', '.join(FEED_SORT_KEYS)}")

        # Visibility gate is the first stage; nothing unpublished survives it.
        pipe = ViewPipeline.over(Video, User).filter(Video.is_published.is_(True))
        if query and query.strip():
            term = query.strip()
            pipe = pipe.filter(or_(
                Video.title.icontains(term, autoescape=True),
                Video.description.icontains(term, autoescape=True),
            ))
        if owner_id is not None:
            pipe = pipe.filter(Video.owner_id == owner_id)

        pipe = (
            pipe.join(User, User.id == Video.owner_id)
            .sort(sort_column.desc() if descending else sort_column.asc(), Video.id.asc())
        )
        result = await pipe.page(db, page)
        return result.map(lambda row: _feed_item(row.Video, row.User))

    # ── Video detail ─────────────────────────────────────────────────────

    async def video_detail(
        self, db: AsyncSession, video_id: uuid.UUID, actor_id: Optional[uuid.UUID]
    ) -> VideoDetail:
        row = await (
            ViewPipeline.over(Video, User)
            .join(User, User.id == Video.owner_id)
            .filter(Video.id == video_id, fields.video_visible_to(actor_id))
            .compute(
                likes_count=fields.likes_count(LikeTarget.VIDEO, Video.id),
                is_liked=fields.is_liked(LikeTarget.VIDEO, Video.id, actor_id),
                subscribers_count=fields.subscribers_count(User.id),
                is_subscribed=fields.is_subscribed(User.id, actor_id),
            )
            .first(db)
        )
        if row is None:
            raise NotFound("Video not found")

        video, owner = row.Video, row.User
        detail = VideoDetail(
            id=video.id,
            video_file_url=video.video_file_url,
            thumbnail_url=video.thumbnail_url,
            title=video.title,
            description=video.description,
            duration=video.duration,
            views=video.views,
            is_published=video.is_published,
            created_at=video.created_at,
            owner=VideoOwnerDetail(
                id=owner.id,
                username=owner.username,
                avatar_url=owner.avatar_url,
                subscribers_count=row.subscribers_count,
                is_subscribed=bool(row.is_subscribed),
            ),
            likes_count=row.likes_count,
            is_liked=bool(row.is_liked),
        )

        await self.record_view(db, video.id, actor_id)
        return detail

    async def record_view(self, db: AsyncSession, video_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> None:
        """Best-effort side effects of a detail fetch: views += 1, history append."""
        try:
            await db.execute(
                update(Video)
                .where(Video.id == video_id)
                .values(views=Video.views + 1)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.warning(f"View increment skipped for {video_id}", exc_info=True)

        if actor_id is None:
            return

        db.add(WatchHistoryEntry(user_id=actor_id, video_id=video_id))
        try:
            await db.commit()
        except IntegrityError:
            # Already in history; set semantics, position unchanged
            await db.rollback()
        except SQLAlchemyError:
            await db.rollback()
            logger.warning(f"Watch history append skipped for {video_id}", exc_info=True)

    # ── Comment thread ───────────────────────────────────────────────────

    async def comment_thread(
        self,
        db: AsyncSession,
        video_id: uuid.UUID,
        actor_id: Optional[uuid.UUID],
        page: PageRequest,
    ) -> PageResult[CommentView]:
        video_exists = await db.scalar(select(Video.id).where(Video.id == video_id, fields.video_visible_to(actor_id)))
        if video_exists is None:
            raise NotFound("Video not found")

        result = await (
            ViewPipeline.over(Comment, User)
            .filter(Comment.video_id == video_id)
            .join(User, User.id == Comment.owner_id)
            .compute(
                likes_count=fields.likes_count(LikeTarget.COMMENT, Comment.id),
                is_liked=fields.is_liked(LikeTarget.COMMENT, Comment.id, actor_id),
            )
            .sort(Comment.created_at.desc(), Comment.id.asc())
            .page(db, page)
        )
        return result.map(lambda row: CommentView(
            id=row.Comment.id,
            content=row.Comment.content,
            created_at=row.Comment.created_at,
            likes_count=row.likes_count,
            is_liked=bool(row.is_liked),
            owner=_owner_summary(row.User),
        ))

    # ── Channel profile ──────────────────────────────────────────────────

    async def channel_profile(
        self, db: AsyncSession, username: str, actor_id: Optional[uuid.UUID]
    ) -> ChannelProfile:
        if not username or not username.strip():
            raise InvalidArgument("username is missing")

        row = await (
            ViewPipeline.over(User)
            .filter(User.username == username.strip().lower())
            .compute(
                subscribers_count=fields.subscribers_count(User.id),
                channels_subscribed_to_count=fields.subscriptions_count(User.id),
                is_subscribed=fields.is_subscribed(User.id, actor_id),
            )
            .first(db)
        )
        if row is None:
            raise NotFound("Channel does not exist")

        user = row.User
        return ChannelProfile(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            email=user.email,
            avatar_url=user.avatar_url,
            cover_image_url=user.cover_image_url,
            subscribers_count=row.subscribers_count,
            channels_subscribed_to_count=row.channels_subscribed_to_count,
            is_subscribed=bool(row.is_subscribed),
            created_at=user.created_at,
        )

    # ── Channel dashboard ────────────────────────────────────────────────

    async def channel_stats(self, db: AsyncSession, owner_id: uuid.UUID) -> ChannelStats:
        row = await (
            ViewPipeline.over(User.id)
            .filter(User.id == owner_id)
            .compute(
                total_videos=fields.owned_videos_count(User.id),
                total_views=fields.owned_views_total(User.id),
                total_likes=fields.owned_likes_total(User.id),
                total_subscribers=fields.subscribers_count(User.id),
            )
            .first(db)
        )
        if row is None:
            raise NotFound("Channel not found")
        return ChannelStats(
            total_videos=row.total_videos or 0,
            total_views=int(row.total_views or 0),
            total_likes=row.total_likes or 0,
            total_subscribers=row.total_subscribers or 0,
        )

    async def channel_videos(self, db: AsyncSession, owner_id: uuid.UUID) -> List[DashboardVideo]:
        rows = await (
            ViewPipeline.over(Video)
            .filter(Video.owner_id == owner_id)
            .compute(likes_count=fields.likes_count(LikeTarget.VIDEO, Video.id))
            .sort(Video.created_at.desc(), Video.id.asc())
            .all(db)
        )
        return [
            DashboardVideo(
                id=row.Video.id,
                video_file_url=row.Video.video_file_url,
                thumbnail_url=row.Video.thumbnail_url,
                title=row.Video.title,
                description=row.Video.description,
                duration=row.Video.duration,
                views=row.Video.views,
                is_published=row.Video.is_published,
                created_at=row.Video.created_at,
                likes_count=row.likes_count,
            )
            for row in rows
        ]

    # ── Subscriber / subscribed lists ────────────────────────────────────

    async def subscribers(self, db: AsyncSession, channel_id: uuid.UUID) -> List[SubscriberEntry]:
        rows = await (
            ViewPipeline.over(User)
            .join(Subscription, Subscription.subscriber_id == User.id)
            .filter(Subscription.channel_id == channel_id)
            .compute(
                subscribed_to_subscriber=fields.subscribes_back(channel_id, User.id),
                subscribers_count=fields.subscribers_count(User.id),
            )
            .sort(Subscription.created_at.desc(), Subscription.id.asc())
            .all(db)
        )
        return [
            SubscriberEntry(subscriber=SubscriberView(
                id=row.User.id,
                username=row.User.username,
                full_name=row.User.full_name,
                avatar_url=row.User.avatar_url,
                subscribed_to_subscriber=bool(row.subscribed_to_subscriber),
                subscribers_count=row.subscribers_count,
            ))
            for row in rows
        ]

    async def subscribed_channels(self, db: AsyncSession, subscriber_id: uuid.UUID) -> List[SubscribedChannelEntry]:
        rows = await (
            ViewPipeline.over(User)
            .join(Subscription, Subscription.channel_id == User.id)
            .filter(Subscription.subscriber_id == subscriber_id)
            .compute(subscribers_count=fields.subscribers_count(User.id))
            .sort(Subscription.created_at.desc(), Subscription.id.asc())
            .all(db)
        )
        latest = await self._latest_videos(db, [row.User.id for row in rows])
        return [
            SubscribedChannelEntry(subscribed_channel=SubscribedChannelView(
                id=row.User.id,
                username=row.User.username,
                full_name=row.User.full_name,
                avatar_url=row.User.avatar_url,
                subscribers_count=row.subscribers_count,
                latest_video=latest.get(row.User.id),
            ))
            for row in rows
        ]

    async def _latest_videos(self, db: AsyncSession, owner_ids: List[uuid.UUID]) -> Dict[uuid.UUID, LatestVideo]:
        if not owner_ids:
            return {}
        # Newest published video per owner, ranked in the store
        ranked = (
            select(
                Video,
                func.row_number()
                .over(partition_by=Video.owner_id, order_by=(Video.created_at.desc(), Video.id.asc()))
                .label("rank"),
            )
            .where(Video.owner_id.in_(owner_ids), Video.is_published.is_(True))
            .subquery()
        )
        newest = aliased(Video, ranked)
        result = await db.execute(select(newest).where(ranked.c.rank == 1))
        return {video.owner_id: LatestVideo.model_validate(video) for video in result.scalars()}

    # ── Liked videos ─────────────────────────────────────────────────────

    async def liked_videos(self, db: AsyncSession, actor_id: uuid.UUID) -> List[LikedVideo]:
        rows = await (
            ViewPipeline.over(Like.created_at.label("liked_at"), Video, User)
            .join(Video, Video.id == Like.video_id)
            .join(User, User.id == Video.owner_id)
            .filter(Like.liked_by_id == actor_id, Like.video_id.is_not(None), fields.video_visible_to(actor_id))
            .sort(Like.created_at.desc(), Like.id.asc())
            .all(db)
        )
        return [
            LikedVideo(liked_video=_feed_item(row.Video, row.User), liked_at=row.liked_at)
            for row in rows
        ]

    # ── Watch history ────────────────────────────────────────────────────

    async def watch_history(self, db: AsyncSession, user_id: uuid.UUID) -> List[VideoFeedItem]:
        rows = await (
            ViewPipeline.over(Video, User)
            .join(WatchHistoryEntry, WatchHistoryEntry.video_id == Video.id)
            .join(User, User.id == Video.owner_id)
            .filter(WatchHistoryEntry.user_id == user_id)
            .sort(WatchHistoryEntry.watched_at.asc(), WatchHistoryEntry.id.asc())
            .all(db)
        )
        return [_feed_item(row.Video, row.User) for row in rows]

    # ── Tweets ───────────────────────────────────────────────────────────

    async def user_tweets(
        self, db: AsyncSession, owner_id: uuid.UUID, actor_id: Optional[uuid.UUID]
    ) -> List[TweetView]:
        rows = await (
            ViewPipeline.over(Tweet, User)
            .join(User, User.id == Tweet.owner_id)
            .filter(Tweet.owner_id == owner_id)
            .compute(
                likes_count=fields.likes_count(LikeTarget.TWEET, Tweet.id),
                is_liked=fields.is_liked(LikeTarget.TWEET, Tweet.id, actor_id),
            )
            .sort(Tweet.created_at.desc(), Tweet.id.asc())
            .all(db)
        )
        return [
            TweetView(
                id=row.Tweet.id,
                content=row.Tweet.content,
                created_at=row.Tweet.created_at,
                likes_count=row.likes_count,
                is_liked=bool(row.is_liked),
                owner=_owner_summary(row.User),
            )
            for row in rows
        ]

    # ── Playlists ────────────────────────────────────────────────────────

    async def _playlist_videos(self, db: AsyncSession, playlist_ids: List[uuid.UUID], published_only: bool):
        if not playlist_ids:
            return {}
        stmt = (
            select(PlaylistVideo.playlist_id, Video)
            .join(Video, Video.id == PlaylistVideo.video_id)
            .where(PlaylistVideo.playlist_id.in_(playlist_ids))
            .order_by(PlaylistVideo.position.asc(), PlaylistVideo.id.asc())
        )
        if published_only:
            stmt = stmt.where(Video.is_published.is_(True))
        grouped: Dict[uuid.UUID, List[Video]] = {pid: [] for pid in playlist_ids}
        for playlist_id, video in (await db.execute(stmt)).all():
            grouped[playlist_id].append(video)
        return grouped

    async def user_playlists(self, db: AsyncSession, owner_id: uuid.UUID) -> List[PlaylistSummary]:
        playlists = (await db.execute(
            select(Playlist).where(Playlist.owner_id == owner_id).order_by(Playlist.updated_at.desc())
        )).scalars().all()
        videos = await self._playlist_videos(db, [p.id for p in playlists], published_only=False)
        return [
            PlaylistSummary(
                id=p.id,
                name=p.name,
                description=p.description,
                total_videos=len(videos[p.id]),
                total_views=sum(v.views for v in videos[p.id]),
                updated_at=p.updated_at,
            )
            for p in playlists
        ]

    async def playlist_detail(self, db: AsyncSession, playlist_id: uuid.UUID) -> PlaylistDetail:
        row = await (
            ViewPipeline.over(Playlist, User)
            .join(User, User.id == Playlist.owner_id)
            .filter(Playlist.id == playlist_id)
            .first(db)
        )
        if row is None:
            raise NotFound("Playlist not found")

        playlist = row.Playlist
        videos = (await self._playlist_videos(db, [playlist.id], published_only=True))[playlist.id]
        return PlaylistDetail(
            id=playlist.id,
            name=playlist.name,
            description=playlist.description,
            created_at=playlist.created_at,
            updated_at=playlist.updated_at,
            total_videos=len(videos),
            total_views=sum(v.views for v in videos),
            videos=[LatestVideo.model_validate(v) for v in videos],
            owner=_owner_summary(row.User),
        )


view_engine = ViewCompositionEngine()
