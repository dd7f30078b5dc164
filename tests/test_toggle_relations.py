from __future__ import annotations

import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_user, make_video
from vidtube.core.exceptions import InvalidArgument
from vidtube.models.models import Comment, Like, LikeTarget, Subscription, Tweet
from vidtube.services.relations.toggle_service import RelationKind, toggle_manager


async def _count(db, model, *where) -> int:
    return await db.scalar(select(func.count(model.id)).where(*where))


def _stale_first_lookup(monkeypatch, first_result=None):
    """Make the next ``AsyncSession.scalar`` call return ``first_result`` (a stale read)."""
    original = AsyncSession.scalar
    state = {"served": False}

    async def scalar(self, statement, *args, **kwargs):
        if not state["served"]:
            state["served"] = True
            return first_result
        return await original(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "scalar", scalar)


async def test_like_toggle_is_an_involution(db):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    video = await make_video(db, bob)
    alice_id, video_id = alice.id, video.id

    first = await toggle_manager.flip(db, alice_id, RelationKind.VIDEO, video_id)
    assert first.active is True
    assert await _count(db, Like, Like.video_id == video_id) == 1

    second = await toggle_manager.flip(db, alice_id, RelationKind.VIDEO, video_id)
    assert second.active is False
    assert await _count(db, Like, Like.video_id == video_id) == 0

    third = await toggle_manager.toggle_like(db, alice_id, LikeTarget.VIDEO, video_id)
    assert third.active is True
    assert await _count(db, Like, Like.video_id == video_id) == 1


async def test_comment_and_tweet_likes_are_independent_edges(db):
    alice = await make_user(db, "alice")
    video = await make_video(db, alice)
    comment = Comment(content="first!", video_id=video.id, owner_id=alice.id)
    tweet = Tweet(content="hello", owner_id=alice.id)
    db.add_all([comment, tweet])
    await db.commit()

    await toggle_manager.flip(db, alice.id, "comment", comment.id)
    await toggle_manager.flip(db, alice.id, RelationKind.TWEET, tweet.id)
    await toggle_manager.flip(db, alice.id, RelationKind.VIDEO, video.id)

    assert await _count(db, Like, Like.liked_by_id == alice.id) == 3
    assert await _count(db, Like, Like.comment_id == comment.id) == 1
    assert await _count(db, Like, Like.tweet_id == tweet.id) == 1


async def test_store_rejects_duplicate_like_edge(db):
    alice = await make_user(db, "alice")
    video = await make_video(db, alice)
    db.add(Like(liked_by_id=alice.id, video_id=video.id))
    await db.commit()

    db.add(Like(liked_by_id=alice.id, video_id=video.id))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


async def test_store_rejects_like_with_two_targets(db):
    alice = await make_user(db, "alice")
    video = await make_video(db, alice)
    tweet = Tweet(content="hello", owner_id=alice.id)
    db.add(tweet)
    await db.commit()

    db.add(Like(liked_by_id=alice.id, video_id=video.id, tweet_id=tweet.id))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


async def test_losing_concurrent_insert_reports_existing_edge(db, session_factory, monkeypatch):
    alice = await make_user(db, "alice")
    video = await make_video(db, alice)
    alice_id, video_id = alice.id, video.id

    # The winning request commits its edge first
    async with session_factory() as winner:
        winner.add(Like(liked_by_id=alice_id, video_id=video_id))
        await winner.commit()

    # The loser read "no edge" before the winner committed
    _stale_first_lookup(monkeypatch)
    result = await toggle_manager.flip(db, alice_id, RelationKind.VIDEO, video_id)

    assert result.active is True
    assert await _count(db, Like, Like.video_id == video_id) == 1


async def test_losing_concurrent_delete_is_a_noop(db, monkeypatch):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    alice_id, bob_id = alice.id, bob.id

    # The loser saw an edge that a concurrent un-flip already removed
    _stale_first_lookup(monkeypatch, first_result=uuid.uuid4())
    result = await toggle_manager.flip(db, alice_id, RelationKind.CHANNEL, bob_id)

    assert result.active is False
    assert await _count(db, Subscription) == 0


async def test_flip_on_missing_target_creates_nothing(db):
    alice = await make_user(db, "alice")
    alice_id = alice.id

    result = await toggle_manager.flip(db, alice_id, RelationKind.VIDEO, uuid.uuid4())

    assert result.active is False
    assert await _count(db, Like) == 0


async def test_subscription_toggle_round_trip(db):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")

    on = await toggle_manager.toggle_subscription(db, alice.id, bob.id)
    assert on.active is True
    assert await _count(db, Subscription, Subscription.channel_id == bob.id) == 1

    off = await toggle_manager.toggle_subscription(db, alice.id, bob.id)
    assert off.active is False
    assert await _count(db, Subscription, Subscription.channel_id == bob.id) == 0


async def test_self_subscription_is_rejected(db):
    alice = await make_user(db, "alice")

    with pytest.raises(InvalidArgument):
        await toggle_manager.toggle_subscription(db, alice.id, alice.id)
    assert await _count(db, Subscription) == 0


async def test_purge_target_likes_removes_every_actor(db):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    video = await make_video(db, alice)
    other = await make_video(db, alice, title="Other")

    for actor in (alice, bob):
        await toggle_manager.flip(db, actor.id, RelationKind.VIDEO, video.id)
    await toggle_manager.flip(db, bob.id, RelationKind.VIDEO, other.id)

    removed = await toggle_manager.purge_target_likes(db, video_ids=[video.id])
    await db.commit()

    assert removed == 2
    assert await _count(db, Like, Like.video_id == video.id) == 0
    assert await _count(db, Like, Like.video_id == other.id) == 1
    assert await toggle_manager.purge_target_likes(db) == 0


async def test_concurrent_flips_from_two_sessions_keep_one_edge(db, session_factory):
    alice = await make_user(db, "alice")
    video = await make_video(db, alice)
    alice_id, video_id = alice.id, video.id

    async def flip_in_own_session():
        async with session_factory() as session:
            return await toggle_manager.flip(session, alice_id, RelationKind.VIDEO, video_id)

    results = await asyncio.gather(flip_in_own_session(), flip_in_own_session())
    stored = await _count(db, Like, Like.video_id == video_id)

    assert stored <= 1
    # Both racing inserts report the surviving edge; a flip that ran after the
    # other committed removed it instead.
    assert stored == (1 if all(r.active for r in results) else 0)
