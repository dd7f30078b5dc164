"""
Vidtube Content Service — owner-gated mutations of videos, comments,
tweets and playlists.

Every mutation re-loads its entity in the current session and re-checks
ownership against that fresh row before writing. Deletes cascade to the
engagement edges that point at the deleted content; media blobs are purged
asynchronously once the rows are gone.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Type, TypeVar

from fastapi import UploadFile
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.core.exceptions import InvalidArgument, MediaStorageError, NotFound
from vidtube.models.models import (
    Comment, MediaKind, Playlist, PlaylistVideo, Tweet, User, Video, WatchHistoryEntry,
)
from vidtube.schemas.schemas import PlaylistRecord
from vidtube.services.auth.guard import authorize_owner, authorize_playlist_change
from vidtube.services.media.storage import MediaStorage
from vidtube.services.relations.toggle_service import toggle_manager
from vidtube.services.views import fields
from vidtube.workers.tasks import schedule_media_purge

logger = logging.getLogger(__name__)

M = TypeVar("M")


def _required(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise InvalidArgument(f"{field} is required")
    return value.strip()


async def load_or_404(db: AsyncSession, model: Type[M], entity_id: uuid.UUID, label: Optional[str] = None) -> M:
    entity = await db.get(model, entity_id, populate_existing=True)
    if entity is None:
        raise NotFound(f"{label or model.__name__} not found")
    return entity


async def load_visible_video(db: AsyncSession, video_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> Video:
    """Someone else's unpublished video is indistinguishable from a missing one."""
    video = await db.scalar(
        select(Video)
        .where(Video.id == video_id, fields.video_visible_to(actor_id))
        .execution_options(populate_existing=True)
    )
    if video is None:
        raise NotFound("Video not found")
    return video


class ContentService:

    # ═══════════════════════════════════════════════════════════════════
    # Videos
    # ═══════════════════════════════════════════════════════════════════

    async def publish_video(
        self,
        db: AsyncSession,
        storage: MediaStorage,
        actor: User,
        title: Optional[str],
        description: Optional[str],
        video_file: Optional[UploadFile],
        thumbnail: Optional[UploadFile],
    ) -> Video:
        title = _required(title, "title")
        description = _required(description, "description")
        if video_file is None:
            raise InvalidArgument("Video file is required")
        if thumbnail is None:
            raise InvalidArgument("Thumbnail is required")

        uploaded_video = await storage.upload(video_file, MediaKind.VIDEO, "videos")
        try:
            uploaded_thumb = await storage.upload(thumbnail, MediaKind.IMAGE, "thumbnails")
        except MediaStorageError:
            schedule_media_purge([uploaded_video.public_id])
            raise

        video = Video(
            owner_id=actor.id,
            title=title,
            description=description,
            video_file_url=uploaded_video.url,
            video_file_public_id=uploaded_video.public_id,
            thumbnail_url=uploaded_thumb.url,
            thumbnail_public_id=uploaded_thumb.public_id,
            duration=uploaded_video.duration,
            is_published=True,
        )
        db.add(video)
        await db.commit()
        logger.info(f"Video published: {video.id} by {actor.id}")
        return video

    async def update_video(
        self,
        db: AsyncSession,
        storage: MediaStorage,
        actor: User,
        video_id: uuid.UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        thumbnail: Optional[UploadFile] = None,
    ) -> Video:
        if not any([title and title.strip(), description and description.strip(), thumbnail]):
            raise InvalidArgument("Provide a title, description or thumbnail to update")

        video = await load_or_404(db, Video, video_id, "Video")
        authorize_owner(actor, video, "update")

        superseded = None
        if thumbnail is not None:
            uploaded = await storage.upload(thumbnail, MediaKind.IMAGE, "thumbnails")
            superseded = video.thumbnail_public_id
            video.thumbnail_url = uploaded.url
            video.thumbnail_public_id = uploaded.public_id
        if title and title.strip():
            video.title = title.strip()
        if description and description.strip():
            video.description = description.strip()

        await db.commit()
        schedule_media_purge([superseded])
        return video

    async def toggle_publish(self, db: AsyncSession, actor: User, video_id: uuid.UUID) -> Video:
        video = await load_or_404(db, Video, video_id, "Video")
        authorize_owner(actor, video, "publish")
        video.is_published = not video.is_published
        await db.commit()
        logger.info(f"Video {video.id} is_published={video.is_published}")
        return video

    async def delete_video(self, db: AsyncSession, actor: User, video_id: uuid.UUID) -> None:
        """Delete a video and everything that points at it."""
        video = await load_or_404(db, Video, video_id, "Video")
        authorize_owner(actor, video, "delete")
        blobs = [video.video_file_public_id, video.thumbnail_public_id]

        comment_ids = (await db.scalars(select(Comment.id).where(Comment.video_id == video.id))).all()
        likes_removed = await toggle_manager.purge_target_likes(
            db, video_ids=[video.id], comment_ids=comment_ids,
        )
        await db.execute(delete(Comment).where(Comment.video_id == video.id))
        await db.execute(delete(PlaylistVideo).where(PlaylistVideo.video_id == video.id))
        await db.execute(delete(WatchHistoryEntry).where(WatchHistoryEntry.video_id == video.id))
        await db.execute(delete(Video).where(Video.id == video.id))
        await db.commit()

        logger.info(
            f"Video {video_id} deleted: {len(comment_ids)} comments, {likes_removed} likes removed"
        )
        schedule_media_purge(blobs)

    # ═══════════════════════════════════════════════════════════════════
    # Comments
    # ═══════════════════════════════════════════════════════════════════

    async def add_comment(self, db: AsyncSession, actor: User, video_id: uuid.UUID, content: str) -> Comment:
        content = _required(content, "content")
        await load_visible_video(db, video_id, actor.id)

        comment = Comment(content=content, video_id=video_id, owner_id=actor.id)
        db.add(comment)
        await db.commit()
        return comment

    async def update_comment(self, db: AsyncSession, actor: User, comment_id: uuid.UUID, content: str) -> Comment:
        content = _required(content, "content")
        comment = await load_or_404(db, Comment, comment_id, "Comment")
        authorize_owner(actor, comment, "update")
        comment.content = content
        await db.commit()
        return comment

    async def delete_comment(self, db: AsyncSession, actor: User, comment_id: uuid.UUID) -> None:
        comment = await load_or_404(db, Comment, comment_id, "Comment")
        authorize_owner(actor, comment, "delete")
        await toggle_manager.purge_target_likes(db, comment_ids=[comment.id])
        await db.execute(delete(Comment).where(Comment.id == comment.id))
        await db.commit()

    # ═══════════════════════════════════════════════════════════════════
    # Tweets
    # ═══════════════════════════════════════════════════════════════════

    async def create_tweet(self, db: AsyncSession, actor: User, content: str) -> Tweet:
        tweet = Tweet(content=_required(content, "content"), owner_id=actor.id)
        db.add(tweet)
        await db.commit()
        return tweet

    async def update_tweet(self, db: AsyncSession, actor: User, tweet_id: uuid.UUID, content: str) -> Tweet:
        content = _required(content, "content")
        tweet = await load_or_404(db, Tweet, tweet_id, "Tweet")
        authorize_owner(actor, tweet, "update")
        tweet.content = content
        await db.commit()
        return tweet

    async def delete_tweet(self, db: AsyncSession, actor: User, tweet_id: uuid.UUID) -> None:
        tweet = await load_or_404(db, Tweet, tweet_id, "Tweet")
        authorize_owner(actor, tweet, "delete")
        await toggle_manager.purge_target_likes(db, tweet_ids=[tweet.id])
        await db.execute(delete(Tweet).where(Tweet.id == tweet.id))
        await db.commit()

    # ═══════════════════════════════════════════════════════════════════
    # Playlists
    # ═══════════════════════════════════════════════════════════════════

    async def playlist_record(self, db: AsyncSession, playlist: Playlist) -> PlaylistRecord:
        video_ids: List[uuid.UUID] = (await db.scalars(
            select(PlaylistVideo.video_id)
            .where(PlaylistVideo.playlist_id == playlist.id)
            .order_by(PlaylistVideo.position.asc(), PlaylistVideo.id.asc())
        )).all()
        return PlaylistRecord(
            id=playlist.id,
            name=playlist.name,
            description=playlist.description,
            owner_id=playlist.owner_id,
            video_ids=list(video_ids),
            created_at=playlist.created_at,
            updated_at=playlist.updated_at,
        )

    async def create_playlist(self, db: AsyncSession, actor: User, name: str, description: str) -> Playlist:
        playlist = Playlist(
            name=_required(name, "name"),
            description=_required(description, "description"),
            owner_id=actor.id,
        )
        db.add(playlist)
        await db.commit()
        return playlist

    async def update_playlist(
        self, db: AsyncSession, actor: User, playlist_id: uuid.UUID, name: str, description: str
    ) -> Playlist:
        name = _required(name, "name")
        description = _required(description, "description")
        playlist = await load_or_404(db, Playlist, playlist_id, "Playlist")
        authorize_owner(actor, playlist, "update")
        playlist.name = name
        playlist.description = description
        await db.commit()
        return playlist

    async def delete_playlist(self, db: AsyncSession, actor: User, playlist_id: uuid.UUID) -> None:
        playlist = await load_or_404(db, Playlist, playlist_id, "Playlist")
        authorize_owner(actor, playlist, "delete")
        await db.execute(delete(PlaylistVideo).where(PlaylistVideo.playlist_id == playlist.id))
        await db.execute(delete(Playlist).where(Playlist.id == playlist.id))
        await db.commit()

    async def add_to_playlist(
        self, db: AsyncSession, actor: User, video_id: uuid.UUID, playlist_id: uuid.UUID
    ) -> Playlist:
        """Set-semantics append; adding a video already present is a no-op."""
        playlist = await load_or_404(db, Playlist, playlist_id, "Playlist")
        authorize_playlist_change(actor, playlist)
        await load_visible_video(db, video_id, actor.id)

        present = await db.scalar(
            select(PlaylistVideo.id).where(
                PlaylistVideo.playlist_id == playlist.id, PlaylistVideo.video_id == video_id,
            )
        )
        if present is not None:
            return playlist

        last = await db.scalar(
            select(func.max(PlaylistVideo.position)).where(PlaylistVideo.playlist_id == playlist.id)
        )
        db.add(PlaylistVideo(
            playlist_id=playlist.id,
            video_id=video_id,
            position=(last + 1) if last is not None else 0,
        ))
        playlist.updated_at = datetime.now(timezone.utc)
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent add of the same video won
            await db.rollback()
            playlist = await load_or_404(db, Playlist, playlist_id, "Playlist")
        return playlist

    async def remove_from_playlist(
        self, db: AsyncSession, actor: User, video_id: uuid.UUID, playlist_id: uuid.UUID
    ) -> Playlist:
        playlist = await load_or_404(db, Playlist, playlist_id, "Playlist")
        authorize_playlist_change(actor, playlist)
        await load_or_404(db, Video, video_id, "Video")

        result = await db.execute(
            delete(PlaylistVideo).where(
                PlaylistVideo.playlist_id == playlist.id, PlaylistVideo.video_id == video_id,
            )
        )
        if result.rowcount:
            playlist.updated_at = datetime.now(timezone.utc)
        await db.commit()
        return playlist


content_service = ContentService()
