from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from conftest import make_user, make_video
from vidtube.core.exceptions import InvalidArgument, NotFound
from vidtube.models.models import Comment, Like, Playlist, PlaylistVideo, Tweet, Video, WatchHistoryEntry
from vidtube.services.relations.toggle_service import RelationKind, toggle_manager
from vidtube.services.views.pipeline import PageRequest
from vidtube.services.views.view_service import view_engine

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


async def _views(db, video_id) -> int:
    return await db.scalar(select(Video.views).where(Video.id == video_id))


async def _history(db, user_id):
    return (await db.scalars(
        select(WatchHistoryEntry.video_id)
        .where(WatchHistoryEntry.user_id == user_id)
        .order_by(WatchHistoryEntry.id)
    )).all()


# ── Video feed ───────────────────────────────────────────────────────────

async def test_feed_never_contains_unpublished_videos(db):
    alice = await make_user(db, "alice")
    public = await make_video(db, alice, title="Cooking pasta")
    await make_video(db, alice, title="Cooking secrets", published=False)

    for kwargs in ({}, {"query": "cooking"}, {"owner_id": alice.id}, {"sort_by": "title", "sort_type": "asc"}):
        result = await view_engine.video_feed(db, PageRequest.parse(), **kwargs)
        assert [item.id for item in result.docs] == [public.id]
        assert result.total_docs == 1


async def test_feed_defaults_to_newest_first_and_carries_owner(db):
    alice = await make_user(db, "alice")
    old = await make_video(db, alice, title="Old", created_at=_at(1))
    new = await make_video(db, alice, title="New", created_at=_at(2))

    result = await view_engine.video_feed(db, PageRequest.parse())

    assert [item.id for item in result.docs] == [new.id, old.id]
    assert result.docs[0].owner_details.username == "alice"


async def test_feed_filters_and_sorts(db):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    await make_video(db, alice, title="Guitar basics", views=5)
    await make_video(db, alice, title="Drums", description="guitar free zone", views=50)
    await make_video(db, bob, title="Guitar solos", views=20)

    by_views = await view_engine.video_feed(db, PageRequest.parse(), query="GUITAR", sort_by="views", sort_type="asc")
    assert [v.views for v in by_views.docs] == [5, 20, 50]

    alice_only = await view_engine.video_feed(db, PageRequest.parse(), query="guitar", owner_id=alice.id)
    assert {v.title for v in alice_only.docs} == {"Guitar basics", "Drums"}

    with pytest.raises(InvalidArgument):
        await view_engine.video_feed(db, PageRequest.parse(), sort_by="likes")


async def test_feed_keyword_is_matched_literally(db):
    alice = await make_user(db, "alice")
    await make_video(db, alice, title="100% organic")
    await make_video(db, alice, title="100 percent")

    result = await view_engine.video_feed(db, PageRequest.parse(), query="100%")
    assert [v.title for v in result.docs] == ["100% organic"]


async def test_feed_pagination_after_sort(db):
    alice = await make_user(db, "alice")
    for i in range(5):
        await make_video(db, alice, title=f"Video {i}", created_at=_at(i))

    page2 = await view_engine.video_feed(db, PageRequest.parse(page="2", limit="2"))
    assert [v.title for v in page2.docs] == ["Video 2", "Video 1"]
    meta = page2.meta()
    assert meta["total_docs"] == 5
    assert meta["total_pages"] == 3
    assert meta["has_prev_page"] and meta["has_next_page"]
    assert meta["paging_counter"] == 3

    # Non-numeric and non-positive values fall back to page 1 / size 10
    fallback = await view_engine.video_feed(db, PageRequest.parse(page="abc", limit="-3"))
    assert fallback.request == PageRequest(page=1, limit=10)
    assert len(fallback.docs) == 5


# ── Video detail ─────────────────────────────────────────────────────────

async def test_detail_like_scenario_anonymous_and_liker(db):
    alice = await make_user(db, "alice")
    owner = await make_user(db, "owner")
    video = await make_video(db, owner)
    alice_id, video_id = alice.id, video.id

    assert (await toggle_manager.flip(db, alice_id, RelationKind.VIDEO, video_id)).active

    anonymous = await view_engine.video_detail(db, video_id, None)
    assert anonymous.is_liked is False
    assert anonymous.likes_count == 1

    liker = await view_engine.video_detail(db, video_id, alice_id)
    assert liker.is_liked is True
    assert liker.likes_count == 1


async def test_detail_likes_count_tracks_edges(db):
    owner = await make_user(db, "owner")
    video = await make_video(db, owner)
    actors = [await make_user(db, f"fan{i}") for i in range(4)]
    video_id, actor_ids = video.id, [a.id for a in actors]

    for actor_id in actor_ids:
        await toggle_manager.flip(db, actor_id, RelationKind.VIDEO, video_id)
    await toggle_manager.flip(db, actor_ids[0], RelationKind.VIDEO, video_id)

    edges = await db.scalar(select(func.count(Like.id)).where(Like.video_id == video_id))
    detail = await view_engine.video_detail(db, video_id, None)
    assert detail.likes_count == edges == 3


async def test_detail_reports_owner_subscription_state(db):
    alice = await make_user(db, "alice")
    owner = await make_user(db, "owner")
    video = await make_video(db, owner)
    alice_id, owner_id, video_id = alice.id, owner.id, video.id

    await toggle_manager.toggle_subscription(db, alice_id, owner_id)

    detail = await view_engine.video_detail(db, video_id, alice_id)
    assert detail.owner.subscribers_count == 1
    assert detail.owner.is_subscribed is True
    assert (await view_engine.video_detail(db, video_id, None)).owner.is_subscribed is False


async def test_detail_records_view_and_history_once(db):
    alice = await make_user(db, "alice")
    owner = await make_user(db, "owner")
    first = await make_video(db, owner, title="First")
    second = await make_video(db, owner, title="Second")
    alice_id, first_id, second_id = alice.id, first.id, second.id

    await view_engine.video_detail(db, first_id, alice_id)
    await view_engine.video_detail(db, second_id, alice_id)
    await view_engine.video_detail(db, first_id, alice_id)

    assert await _views(db, first_id) == 2
    assert await _views(db, second_id) == 1
    # Set semantics: re-watching does not duplicate or reorder
    assert await _history(db, alice_id) == [first_id, second_id]

    history = await view_engine.watch_history(db, alice_id)
    assert [v.id for v in history] == [first_id, second_id]


async def test_anonymous_detail_counts_view_without_history(db):
    owner = await make_user(db, "owner")
    video = await make_video(db, owner)
    video_id = video.id

    await view_engine.video_detail(db, video_id, None)

    assert await _views(db, video_id) == 1
    assert await db.scalar(select(func.count(WatchHistoryEntry.id))) == 0


async def test_unpublished_detail_is_visible_to_owner_only(db):
    owner = await make_user(db, "owner")
    stranger = await make_user(db, "stranger")
    video = await make_video(db, owner, published=False)
    owner_id, stranger_id, video_id = owner.id, stranger.id, video.id

    assert (await view_engine.video_detail(db, video_id, owner_id)).is_published is False
    with pytest.raises(NotFound):
        await view_engine.video_detail(db, video_id, stranger_id)
    with pytest.raises(NotFound):
        await view_engine.video_detail(db, uuid.uuid4(), None)


# ── Comment thread ───────────────────────────────────────────────────────

async def test_comment_thread_newest_first_with_likes(db):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    video = await make_video(db, alice)
    older = Comment(content="older", video_id=video.id, owner_id=bob.id, created_at=_at(1))
    newer = Comment(content="newer", video_id=video.id, owner_id=alice.id, created_at=_at(2))
    db.add_all([older, newer])
    await db.commit()
    await toggle_manager.flip(db, alice.id, RelationKind.COMMENT, older.id)

    thread = await view_engine.comment_thread(db, video.id, alice.id, PageRequest.parse())

    assert [c.content for c in thread.docs] == ["newer", "older"]
    assert thread.docs[1].likes_count == 1
    assert thread.docs[1].is_liked is True
    assert thread.docs[1].owner.username == "bob"
    assert thread.docs[0].is_liked is False


async def test_comment_thread_for_missing_video(db):
    with pytest.raises(NotFound):
        await view_engine.comment_thread(db, uuid.uuid4(), None, PageRequest.parse())


# ── Channel views ────────────────────────────────────────────────────────

async def test_subscribe_then_unsubscribe_scenario(db):
    x = await make_user(db, "xavier")
    y = await make_user(db, "yvonne")

    assert (await toggle_manager.toggle_subscription(db, x.id, y.id)).active is True
    profile = await view_engine.channel_profile(db, "yvonne", x.id)
    assert profile.subscribers_count == 1
    assert profile.is_subscribed is True

    assert (await toggle_manager.toggle_subscription(db, x.id, y.id)).active is False
    profile = await view_engine.channel_profile(db, "YVONNE", x.id)
    assert profile.subscribers_count == 0
    assert profile.is_subscribed is False

    x_profile = await view_engine.channel_profile(db, "xavier", None)
    assert x_profile.channels_subscribed_to_count == 0


async def test_channel_profile_unknown_username(db):
    with pytest.raises(NotFound):
        await view_engine.channel_profile(db, "ghost", None)
    with pytest.raises(InvalidArgument):
        await view_engine.channel_profile(db, "  ", None)


async def test_channel_stats_aggregates_owned_content(db):
    owner = await make_user(db, "owner")
    fans = [await make_user(db, f"fan{i}") for i in range(3)]
    v1 = await make_video(db, owner, views=10)
    v2 = await make_video(db, owner, views=5, published=False)
    other_owner = await make_user(db, "other")
    foreign = await make_video(db, other_owner, views=100)

    for fan in fans:
        await toggle_manager.flip(db, fan.id, RelationKind.VIDEO, v1.id)
        await toggle_manager.toggle_subscription(db, fan.id, owner.id)
    await toggle_manager.flip(db, fans[0].id, RelationKind.VIDEO, v2.id)
    await toggle_manager.flip(db, fans[0].id, RelationKind.VIDEO, foreign.id)

    stats = await view_engine.channel_stats(db, owner.id)
    assert stats.total_videos == 2
    assert stats.total_views == 15
    assert stats.total_likes == 4
    assert stats.total_subscribers == 3

    videos = await view_engine.channel_videos(db, owner.id)
    assert {v.id: v.likes_count for v in videos} == {v1.id: 3, v2.id: 1}


async def test_channel_stats_for_empty_channel(db):
    owner = await make_user(db, "owner")
    stats = await view_engine.channel_stats(db, owner.id)
    assert (stats.total_videos, stats.total_views, stats.total_likes, stats.total_subscribers) == (0, 0, 0, 0)


async def test_subscriber_list_flags_mutual_subscriptions(db):
    channel = await make_user(db, "channel")
    mutual = await make_user(db, "mutual")
    one_way = await make_user(db, "oneway")

    await toggle_manager.toggle_subscription(db, mutual.id, channel.id)
    await toggle_manager.toggle_subscription(db, one_way.id, channel.id)
    await toggle_manager.toggle_subscription(db, channel.id, mutual.id)

    entries = await view_engine.subscribers(db, channel.id)
    flags = {e.subscriber.username: e.subscriber.subscribed_to_subscriber for e in entries}
    counts = {e.subscriber.username: e.subscriber.subscribers_count for e in entries}

    assert flags == {"mutual": True, "oneway": False}
    assert counts == {"mutual": 1, "oneway": 0}


async def test_subscribed_channels_carry_latest_published_video(db):
    viewer = await make_user(db, "viewer")
    busy = await make_user(db, "busy")
    quiet = await make_user(db, "quiet")
    await make_video(db, busy, title="Older", created_at=_at(1))
    latest = await make_video(db, busy, title="Latest", created_at=_at(2))
    await make_video(db, busy, title="Draft", created_at=_at(3), published=False)

    await toggle_manager.toggle_subscription(db, viewer.id, busy.id)
    await toggle_manager.toggle_subscription(db, viewer.id, quiet.id)

    entries = {e.subscribed_channel.username: e.subscribed_channel for e in
               await view_engine.subscribed_channels(db, viewer.id)}

    assert entries["busy"].latest_video.id == latest.id
    assert entries["busy"].subscribers_count == 1
    assert entries["quiet"].latest_video is None


async def test_latest_video_is_picked_per_channel(db):
    viewer = await make_user(db, "viewer")
    early = await make_user(db, "early")
    late = await make_user(db, "late")
    early_newest = await make_video(db, early, title="E2", created_at=_at(2))
    await make_video(db, early, title="E1", created_at=_at(1))
    await make_video(db, late, title="L1", created_at=_at(3))
    late_newest = await make_video(db, late, title="L2", created_at=_at(4))

    for channel in (early, late):
        await toggle_manager.toggle_subscription(db, viewer.id, channel.id)

    latest = {e.subscribed_channel.username: e.subscribed_channel.latest_video.id
              for e in await view_engine.subscribed_channels(db, viewer.id)}

    # Another channel's newer upload never shadows a channel's own latest
    assert latest == {"early": early_newest.id, "late": late_newest.id}


# ── Liked videos, tweets, playlists ──────────────────────────────────────

async def test_liked_videos_only_lists_video_edges(db):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    video = await make_video(db, bob, title="Liked")
    tweet = Tweet(content="hi", owner_id=bob.id)
    db.add(tweet)
    await db.commit()

    await toggle_manager.flip(db, alice.id, RelationKind.VIDEO, video.id)
    await toggle_manager.flip(db, alice.id, RelationKind.TWEET, tweet.id)

    liked = await view_engine.liked_videos(db, alice.id)
    assert [entry.liked_video.title for entry in liked] == ["Liked"]
    assert liked[0].liked_video.owner_details.username == "bob"


async def test_user_tweets_with_like_state(db):
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    tweet = Tweet(content="hello world", owner_id=alice.id)
    db.add(tweet)
    await db.commit()
    await toggle_manager.flip(db, bob.id, RelationKind.TWEET, tweet.id)

    as_bob = await view_engine.user_tweets(db, alice.id, bob.id)
    as_anon = await view_engine.user_tweets(db, alice.id, None)

    assert as_bob[0].likes_count == as_anon[0].likes_count == 1
    assert as_bob[0].is_liked is True
    assert as_anon[0].is_liked is False


async def test_playlist_views_totals(db):
    owner = await make_user(db, "owner")
    v1 = await make_video(db, owner, views=3)
    v2 = await make_video(db, owner, views=4, published=False)
    playlist = Playlist(name="Mix", description="stuff", owner_id=owner.id)
    db.add(playlist)
    await db.commit()
    db.add_all([
        PlaylistVideo(playlist_id=playlist.id, video_id=v1.id, position=0),
        PlaylistVideo(playlist_id=playlist.id, video_id=v2.id, position=1),
    ])
    await db.commit()

    summaries = await view_engine.user_playlists(db, owner.id)
    assert (summaries[0].total_videos, summaries[0].total_views) == (2, 7)

    detail = await view_engine.playlist_detail(db, playlist.id)
    assert [v.id for v in detail.videos] == [v1.id]
    assert (detail.total_videos, detail.total_views) == (1, 3)
    assert detail.owner.username == "owner"
