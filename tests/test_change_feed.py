"""Tests for change feeds: path matching, disposal, the Redis relay and its client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from johari.core import redis_client
from johari.services.change_feed import Disposer, LocalChangeFeed, RedisChangeFeed, path_matches


def test_path_matches_document_and_direct_children():
    assert path_matches("sessions/s1", "sessions/s1")
    assert path_matches("sessions/s1/feedback", "sessions/s1/feedback/p")
    assert not path_matches("sessions/s1", "sessions/s1/feedback/p")
    assert not path_matches("sessions/s1", "sessions/s10")


def test_disposer_runs_release_once():
    calls = []
    dispose = Disposer(lambda: calls.append(1))

    dispose()
    dispose()

    assert calls == [1]
    assert dispose.disposed


async def test_local_feed_isolates_failing_listener():
    feed = LocalChangeFeed()
    seen = []

    def broken(path):
        raise RuntimeError("boom")

    feed.register("sessions/s1", broken)
    feed.register("sessions/s1", seen.append)

    await feed.publish("sessions/s1")

    assert seen == ["sessions/s1"]


async def test_redis_feed_publishes_on_channel():
    client = MagicMock()
    client.publish = AsyncMock(return_value=1)
    feed = RedisChangeFeed(client, "johari:changes")
    seen = []
    feed.register("sessions/s1", seen.append)

    await feed.publish("sessions/s1")

    client.publish.assert_awaited_once_with("johari:changes", "sessions/s1")
    # Delivery happens when the message comes back through the channel.
    assert seen == []


async def test_redis_feed_falls_back_to_local_dispatch_when_publish_fails():
    client = MagicMock()
    client.publish = AsyncMock(side_effect=RedisConnectionError("down"))
    feed = RedisChangeFeed(client, "johari:changes")
    seen = []
    feed.register("sessions/s1", seen.append)

    await feed.publish("sessions/s1")

    assert seen == ["sessions/s1"]


async def test_redis_feed_relays_channel_messages():
    delivered = asyncio.Event()
    messages = [
        None,
        {"type": "message", "data": b"sessions/s1/feedback/p"},
    ]

    async def get_message(ignore_subscribe_messages, timeout):
        if messages:
            return messages.pop(0)
        await asyncio.sleep(timeout)
        return None

    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    pubsub.get_message = get_message
    client = MagicMock()
    client.pubsub = MagicMock(return_value=pubsub)

    feed = RedisChangeFeed(client, "johari:changes", poll_timeout=0.01)
    seen = []

    def on_change(path):
        seen.append(path)
        delivered.set()

    feed.register("sessions/s1/feedback", on_change)
    await feed.start()
    try:
        await asyncio.wait_for(delivered.wait(), 1)
    finally:
        await feed.stop()

    assert seen == ["sessions/s1/feedback/p"]
    pubsub.subscribe.assert_awaited_once_with("johari:changes")
    pubsub.aclose.assert_awaited_once()


async def test_unreachable_redis_leaves_client_uninitialized(monkeypatch):
    client = MagicMock()
    client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
    client.aclose = AsyncMock()
    monkeypatch.setattr(redis_client, "build_redis_client", lambda: client)

    assert await redis_client.init_redis_client() is False

    client.aclose.assert_awaited_once()
    with pytest.raises(ConnectionError):
        await redis_client.get_redis_client()


async def test_redis_client_lifecycle(monkeypatch):
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    monkeypatch.setattr(redis_client, "build_redis_client", lambda: client)

    assert await redis_client.init_redis_client() is True
    assert await redis_client.get_redis_client() is client

    await redis_client.close_redis_client()
    await redis_client.close_redis_client()

    client.aclose.assert_awaited_once()
    with pytest.raises(ConnectionError):
        await redis_client.get_redis_client()
