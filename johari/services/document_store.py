# johari/services/document_store.py
import asyncio
import copy
import uuid
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

from loguru import logger

from johari.core.errors import StoreUnavailable
from johari.services.change_feed import ChangeCallback, ChangeFeed, Disposer, LocalChangeFeed

T = TypeVar("T")


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    path: str
    data: Dict[str, Any] = field(default_factory=dict)


def split_path(path: str) -> Tuple[str, str]:
    """Splits a document path into its collection path and document id."""
    segments = path.strip("/").split("/")
    if len(segments) < 2 or len(segments) % 2 != 0 or not all(segments):
        raise ValueError(f"'{path}' is not a document path")
    return "/".join(segments[:-1]), segments[-1]


def matches_filters(data: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(data.get(key) == value for key, value in filters.items())


class DocumentStore(ABC):
    """
    Document-oriented store with realtime change subscriptions.

    Paths alternate collection and document segments, e.g. `sessions/{id}` is a
    document and `sessions/{id}/feedback` is a collection. `set_full` replaces
    the whole document while `update` replaces named fields of an existing
    one. Every write is announced on the change feed afterwards.
    """

    # Failures that mean the backend could not be reached.
    unavailable_errors: Tuple[type, ...] = (ConnectionError, OSError)

    def __init__(self, feed: Optional[ChangeFeed] = None, timeout: Optional[float] = None):
        self.feed = feed if feed else LocalChangeFeed()
        self.timeout = timeout
        # Serializes field updates within this process; entries go away once no update holds them.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def create(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        path = f"{collection.strip('/')}/{doc_id}"
        await self._guard(self._write(path, data), f"create '{path}'")
        logger.info(f"Created document '{path}'")
        await self.feed.publish(path)
        return doc_id

    async def get(self, path: str) -> Optional[DocumentSnapshot]:
        split_path(path)
        return await self._guard(self._read(path), f"get '{path}'")

    async def set_full(self, path: str, data: Dict[str, Any]) -> None:
        split_path(path)
        await self._guard(self._write(path, data), f"set '{path}'")
        logger.info(f"Replaced document '{path}'")
        await self.feed.publish(path)

    async def update(self, path: str, fields: Dict[str, Any]) -> Optional[DocumentSnapshot]:
        """
        Replaces only the given top-level fields of an existing document and
        returns the stored result, or None when there is no such document.
        Concurrent updates to different fields of one document never undo
        each other.
        """
        split_path(path)
        async with self._lock_for(path):
            snapshot = await self._guard(self._update(path, fields), f"update '{path}'")
        if snapshot is None:
            return None
        logger.info(f"Updated {sorted(fields)} of document '{path}'")
        await self.feed.publish(snapshot.path)
        return snapshot

    def _lock_for(self, path: str) -> asyncio.Lock:
        path = path.strip("/")
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        return lock

    def subscribe(self, path: str, callback: ChangeCallback) -> Disposer:
        return self.feed.register(path.strip("/"), callback)

    async def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[DocumentSnapshot]:
        return await self._guard(
            self._query(collection.strip("/"), filters or {}), f"query '{collection}'"
        )

    async def _guard(self, operation: Awaitable[T], description: str) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Store timed out after {self.timeout}s during {description}")
            raise StoreUnavailable(f"The store did not answer in time during {description}")
        except self.unavailable_errors as e:
            logger.error(f"Store failed during {description}: {e}")
            raise StoreUnavailable(f"The store is unavailable during {description}: {e}") from e

    @abstractmethod
    async def _write(self, path: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def _read(self, path: str) -> Optional[DocumentSnapshot]:
        ...

    @abstractmethod
    async def _update(self, path: str, fields: Dict[str, Any]) -> Optional[DocumentSnapshot]:
        ...

    @abstractmethod
    async def _query(self, collection: str, filters: Dict[str, Any]) -> List[DocumentSnapshot]:
        ...


class InMemoryDocumentStore(DocumentStore):
    def __init__(self, feed: Optional[ChangeFeed] = None, timeout: Optional[float] = None):
        super().__init__(feed=feed, timeout=timeout)
        self._documents: Dict[str, Dict[str, Any]] = {}

    async def _write(self, path: str, data: Dict[str, Any]) -> None:
        self._documents[path.strip("/")] = copy.deepcopy(data)

    async def _read(self, path: str) -> Optional[DocumentSnapshot]:
        path = path.strip("/")
        data = self._documents.get(path)
        if data is None:
            return None
        _, doc_id = split_path(path)
        return DocumentSnapshot(id=doc_id, path=path, data=copy.deepcopy(data))

    async def _update(self, path: str, fields: Dict[str, Any]) -> Optional[DocumentSnapshot]:
        snapshot = await self._read(path)
        if snapshot is None:
            return None
        data = {**snapshot.data, **copy.deepcopy(fields)}
        await self._write(path, data)
        return DocumentSnapshot(id=snapshot.id, path=snapshot.path, data=data)

    async def _query(self, collection: str, filters: Dict[str, Any]) -> List[DocumentSnapshot]:
        results = []
        for path in sorted(self._documents):
            parent, doc_id = split_path(path)
            data = self._documents[path]
            if parent == collection and matches_filters(data, filters):
                results.append(DocumentSnapshot(id=doc_id, path=path, data=copy.deepcopy(data)))
        return results
