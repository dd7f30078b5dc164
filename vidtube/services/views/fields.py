"""
Derived view fields computed from edge collections.

Counts are the cardinality of the joined edge set; "did the actor do X"
flags are set membership of the actor id in that same set. Each helper
aliases its edge table so it can be embedded in any enclosing query, even
one that already selects from the same table.
"""
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import false, func, or_, select
from sqlalchemy.orm import aliased

from vidtube.models.models import Like, LikeTarget, Subscription, Video


def video_visible_to(actor_id: Optional[uuid.UUID]):
    """Published videos, plus the actor's own unpublished ones."""
    if actor_id is None:
        return Video.is_published.is_(True)
    return or_(Video.is_published.is_(True), Video.owner_id == actor_id)


def _like_target(edge, kind: LikeTarget):
    return getattr(edge, f"{kind.value}_id")


def likes_count(kind: LikeTarget, target_col):
    edge = aliased(Like)
    return (
        select(func.count(edge.id))
        .where(_like_target(edge, kind) == target_col)
        .scalar_subquery()
    )


def is_liked(kind: LikeTarget, target_col, actor_id: Optional[uuid.UUID]):
    if actor_id is None:
        return false()
    edge = aliased(Like)
    return (
        select(edge.id)
        .where(_like_target(edge, kind) == target_col, edge.liked_by_id == actor_id)
        .exists()
    )


def subscribers_count(channel_col):
    edge = aliased(Subscription)
    return select(func.count(edge.id)).where(edge.channel_id == channel_col).scalar_subquery()


def subscriptions_count(subscriber_col):
    edge = aliased(Subscription)
    return select(func.count(edge.id)).where(edge.subscriber_id == subscriber_col).scalar_subquery()


def is_subscribed(channel_col, subscriber_id: Optional[uuid.UUID]):
    """True when ``subscriber_id`` is among the channel's subscribers."""
    if subscriber_id is None:
        return false()
    edge = aliased(Subscription)
    return (
        select(edge.id)
        .where(edge.channel_id == channel_col, edge.subscriber_id == subscriber_id)
        .exists()
    )


def subscribes_back(channel_id: uuid.UUID, subscriber_col):
    """True when the channel itself subscribes to the given subscriber."""
    edge = aliased(Subscription)
    return (
        select(edge.id)
        .where(edge.channel_id == subscriber_col, edge.subscriber_id == channel_id)
        .exists()
    )


def owned_videos_count(owner_col):
    v = aliased(Video)
    return select(func.count(v.id)).where(v.owner_id == owner_col).scalar_subquery()


def owned_views_total(owner_col):
    v = aliased(Video)
    return select(func.coalesce(func.sum(v.views), 0)).where(v.owner_id == owner_col).scalar_subquery()


def owned_likes_total(owner_col):
    """Sum over the owner's videos of each video's like edges."""
    v = aliased(Video)
    edge = aliased(Like)
    return (
        select(func.count(edge.id))
        .join(v, edge.video_id == v.id)
        .where(v.owner_id == owner_col)
        .scalar_subquery()
    )
