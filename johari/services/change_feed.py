# johari/services/change_feed.py
import asyncio
import itertools
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError
from loguru import logger

ChangeCallback = Callable[[str], None]


class Disposer:
    """Cancels a subscription. Calling it more than once is a no-op."""

    def __init__(self, release: Callable[[], None]):
        self._release = release
        self.disposed = False

    def __call__(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        self._release()


def parent_path(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def path_matches(subscribed: str, changed: str) -> bool:
    """A subscription covers its own document and the documents directly inside its collection."""
    return changed == subscribed or parent_path(changed) == subscribed


class ChangeFeed(ABC):
    """Fans out 'document at path changed' notifications to registered callbacks."""

    def __init__(self):
        self._listeners: Dict[int, Tuple[str, ChangeCallback]] = {}
        self._ids = itertools.count()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def register(self, path: str, callback: ChangeCallback) -> Disposer:
        listener_id = next(self._ids)
        self._listeners[listener_id] = (path, callback)
        logger.debug(f"Registered change listener {listener_id} on '{path}'")

        def release():
            self._listeners.pop(listener_id, None)
            logger.debug(f"Released change listener {listener_id} on '{path}'")

        return Disposer(release)

    def dispatch(self, changed_path: str) -> None:
        for path, callback in list(self._listeners.values()):
            if not path_matches(path, changed_path):
                continue
            try:
                callback(changed_path)
            except Exception as e:
                logger.exception(f"Change listener on '{path}' failed for '{changed_path}': {e}")

    @abstractmethod
    async def publish(self, path: str) -> None:
        ...

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class LocalChangeFeed(ChangeFeed):
    """In-process feed for single-worker deployments and tests."""

    async def publish(self, path: str) -> None:
        self.dispatch(path)


class RedisChangeFeed(ChangeFeed):
    """
    Publishes changed paths on a Redis channel so every worker process sees writes
    made by the others. One listener task per process relays channel messages to
    the local callbacks.
    """

    def __init__(self, redis_client: redis.Redis, channel: str, poll_timeout: float = 1.0):
        super().__init__()
        self.redis_client = redis_client
        self.channel = channel
        self.poll_timeout = poll_timeout
        self._pubsub = None
        self._listener_task: Optional[asyncio.Task] = None

    async def publish(self, path: str) -> None:
        try:
            await self.redis_client.publish(self.channel, path)
        except RedisError as e:
            # The write already happened; keep this process's subscribers current.
            logger.error(f"Failed to publish change for '{path}' on '{self.channel}': {e}")
            self.dispatch(path)

    async def start(self) -> None:
        if self._listener_task is not None:
            return
        self._pubsub = self.redis_client.pubsub()
        await self._pubsub.subscribe(self.channel)
        self._listener_task = asyncio.create_task(self._listen())
        logger.info(f"Listening for changes on redis channel '{self.channel}'")

    async def _listen(self) -> None:
        while True:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self.poll_timeout
                )
            except RedisError as e:
                logger.error(f"Redis change listener error on '{self.channel}': {e}")
                await asyncio.sleep(self.poll_timeout)
                continue
            if message is None:
                continue
            data = message.get("data")
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            logger.debug(f"Change received on '{self.channel}': {data}")
            self.dispatch(data)

    async def stop(self) -> None:
        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.aclose()
            self._pubsub = None
        logger.info(f"Stopped listening on redis channel '{self.channel}'")
