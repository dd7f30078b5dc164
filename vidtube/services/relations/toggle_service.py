"""
Vidtube Toggle-Relation Manager — idempotent flips of engagement edges.

    flip(actor, kind, target) -> FlipResult(active)

An existing edge is deleted (active=False); a missing edge is inserted
(active=True). The at-most-one-edge invariant is carried by the unique
constraints on ``likes`` and ``subscriptions``: when two flips race on a
never-toggled pair, the losing insert hits the constraint, is rolled back,
and reports the edge the winner created. A losing concurrent delete matches
zero rows and is reported as a normal un-flip.
"""
from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.core.exceptions import InvalidArgument
from vidtube.models.models import Like, LikeTarget, Subscription

logger = logging.getLogger(__name__)


class RelationKind(str, enum.Enum):
    VIDEO = "video"
    COMMENT = "comment"
    TWEET = "tweet"
    CHANNEL = "channel"


@dataclass(frozen=True)
class FlipResult:
    active: bool


class ToggleRelationManager:
    """Owns every write to the ``likes`` and ``subscriptions`` tables."""

    @staticmethod
    def _edge_for(kind: RelationKind, actor_id: uuid.UUID, target_id: uuid.UUID):
        if kind is RelationKind.CHANNEL:
            if actor_id == target_id:
                raise InvalidArgument("You cannot subscribe to your own channel")
            return Subscription, {"subscriber_id": actor_id, "channel_id": target_id}
        like_target = LikeTarget(kind.value)
        return Like, {"liked_by_id": actor_id, f"{like_target.value}_id": target_id}

    @staticmethod
    def _match(model, fields: Dict[str, uuid.UUID]):
        return [getattr(model, name) == value for name, value in fields.items()]

    async def flip(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        kind: RelationKind | str,
        target_id: uuid.UUID,
    ) -> FlipResult:
        kind = RelationKind(kind)
        model, fields = self._edge_for(kind, actor_id, target_id)
        clauses = self._match(model, fields)

        existing = await db.scalar(select(model.id).where(*clauses))
        if existing is not None:
            result = await db.execute(delete(model).where(model.id == existing))
            await db.commit()
            if result.rowcount == 0:
                logger.info(f"{kind.value} edge {actor_id} -> {target_id} already removed by a concurrent flip")
            else:
                logger.info(f"{kind.value} edge removed: {actor_id} -> {target_id}")
            return FlipResult(active=False)

        db.add(model(**fields))
        try:
            await db.commit()
        except IntegrityError:
            # Lost the race (or the target does not exist): report the stored state.
            await db.rollback()
            present = await db.scalar(select(model.id).where(*clauses))
            logger.info(f"{kind.value} edge insert rejected (edge present: {present is not None})")
            return FlipResult(active=present is not None)

        logger.info(f"{kind.value} edge created: {actor_id} -> {target_id}")
        return FlipResult(active=True)

    # ── Convenience wrappers ─────────────────────────────────────────────

    async def toggle_like(
        self, db: AsyncSession, actor_id: uuid.UUID, target: LikeTarget, target_id: uuid.UUID
    ) -> FlipResult:
        return await self.flip(db, actor_id, RelationKind(target.value), target_id)

    async def toggle_subscription(
        self, db: AsyncSession, subscriber_id: uuid.UUID, channel_id: uuid.UUID
    ) -> FlipResult:
        return await self.flip(db, subscriber_id, RelationKind.CHANNEL, channel_id)

    # ── Cascades ─────────────────────────────────────────────────────────

    async def purge_target_likes(
        self,
        db: AsyncSession,
        *,
        video_ids: Iterable[uuid.UUID] = (),
        comment_ids: Iterable[uuid.UUID] = (),
        tweet_ids: Iterable[uuid.UUID] = (),
    ) -> int:
        """Delete every like edge pointing at the given targets (any actor)."""
        conditions = []
        for column, ids in (
            (Like.video_id, list(video_ids)),
            (Like.comment_id, list(comment_ids)),
            (Like.tweet_id, list(tweet_ids)),
        ):
            if ids:
                conditions.append(column.in_(ids))
        if not conditions:
            return 0
        result = await db.execute(delete(Like).where(or_(*conditions)))
        return result.rowcount or 0


toggle_manager = ToggleRelationManager()
