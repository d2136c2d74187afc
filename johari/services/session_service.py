# johari/services/session_service.py
import asyncio
from typing import Awaitable, Callable, FrozenSet, Iterable, List, Optional, Sequence, Type, TypeVar
from urllib.parse import quote

from loguru import logger
from pydantic import BaseModel, ValidationError

from johari.core.errors import (
    InvalidSelection,
    InvalidSessionData,
    NotSessionCreator,
    SelectionLimitExceeded,
    SessionNotFound,
    StoreUnavailable,
    WindowRefreshFailed,
)
from johari.core.security import IdentityProvider
from johari.core.vocabulary import VOCABULARY
from johari.models.session import FeedbackRecord, Session, SessionFields
from johari.models.window import WindowSnapshot
from johari.services.change_feed import Disposer
from johari.services.document_store import DocumentStore
from johari.services.partition import compute_partition, in_vocabulary_order, union_selections

SESSIONS_COLLECTION = "sessions"

SnapshotCallback = Callable[[WindowSnapshot], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]
M = TypeVar("M", bound=BaseModel)


def session_path(session_id: str) -> str:
    return f"{SESSIONS_COLLECTION}/{session_id}"


def feedback_collection(session_id: str) -> str:
    return f"{session_path(session_id)}/feedback"


def feedback_path(session_id: str, submitter_id: str) -> str:
    # The submitter is the document id, so one peer can only ever own one record.
    return f"{feedback_collection(session_id)}/{quote(submitter_id, safe='')}"


class SessionService:
    """
    Creates Johari sessions and records self assessments and peer feedback.

    The store and the identity provider are injected; methods that take an
    identity fall back to the provider's current identity when none is given.
    """

    def __init__(
        self,
        store: DocumentStore,
        identity_provider: IdentityProvider,
        vocabulary: Sequence[str] = VOCABULARY,
        max_selections: Optional[int] = None,
        log=logger,
    ):
        self.store = store
        self.identity_provider = identity_provider
        self.vocabulary = tuple(vocabulary)
        self.max_selections = max_selections
        self.log = log
        self._vocabulary_set: FrozenSet[str] = frozenset(self.vocabulary)

    def validate_selections(self, selections: Iterable[str]) -> List[str]:
        """Returns the selections deduplicated and in vocabulary order, or raises."""
        chosen = set(selections)
        unknown = chosen - self._vocabulary_set
        if unknown:
            raise InvalidSelection(unknown)
        if self.max_selections is not None and len(chosen) > self.max_selections:
            raise SelectionLimitExceeded(len(chosen), self.max_selections)
        return in_vocabulary_order(self.vocabulary, chosen)

    async def _resolve_identity(self, identity: Optional[str]) -> str:
        return identity if identity else await self.identity_provider.current_identity()

    def _checked(self, model: Type[M], **fields) -> M:
        """Builds a stored model, so nothing unreadable is ever written."""
        try:
            return model(**fields)
        except ValidationError as e:
            error = InvalidSessionData.from_validation_error(e)
            self.log.warning(f"Rejected {model.__name__}: {error.detail}")
            raise error from e

    async def _update_session(self, session_id: str, **fields) -> Session:
        snapshot = await self.store.update(session_path(session_id), fields)
        if snapshot is None:
            raise SessionNotFound(session_id)
        return Session.from_document(snapshot.id, snapshot.data)

    async def create_session(self, creator_id: Optional[str] = None, display_name: str = "") -> str:
        creator_id = await self._resolve_identity(creator_id)
        fields = self._checked(SessionFields, creator_id=creator_id, display_name=display_name)
        session_id = await self.store.create(SESSIONS_COLLECTION, fields.to_document())
        self.log.bind(session_id=session_id).info(f"Session created by {creator_id}")
        return session_id

    async def get_session(self, session_id: str) -> Session:
        if not session_id or "/" in session_id:
            raise SessionNotFound(session_id)
        snapshot = await self.store.get(session_path(session_id))
        if snapshot is None:
            raise SessionNotFound(session_id)
        return Session.from_document(snapshot.id, snapshot.data)

    async def _get_owned_session(self, session_id: str, actor_id: Optional[str]) -> Session:
        session = await self.get_session(session_id)
        actor_id = await self._resolve_identity(actor_id)
        if actor_id != session.creator_id:
            self.log.bind(session_id=session_id).warning(f"{actor_id} tried to change a session they did not create")
            raise NotSessionCreator(session_id)
        return session

    async def submit_self_assessment(
        self, session_id: str, selections: Iterable[str], actor_id: Optional[str] = None
    ) -> Session:
        log = self.log.bind(session_id=session_id)
        try:
            canonical = self.validate_selections(selections)
        except (InvalidSelection, SelectionLimitExceeded) as e:
            log.warning(f"Rejected self assessment: {e.detail}")
            raise
        await self._get_owned_session(session_id, actor_id)

        # Field-level update, so a concurrent rename keeps both changes.
        updated = await self._update_session(session_id, self_selections=canonical)
        log.info(f"Self assessment replaced with {len(canonical)} descriptors")
        return updated

    async def rename_session(self, session_id: str, display_name: str, actor_id: Optional[str] = None) -> Session:
        session = await self._get_owned_session(session_id, actor_id)
        self._checked(SessionFields, creator_id=session.creator_id, display_name=display_name)
        updated = await self._update_session(session_id, display_name=display_name)
        self.log.bind(session_id=session_id).info("Session renamed")
        return updated

    async def submit_peer_feedback(
        self, session_id: str, submitter_id: Optional[str], selections: Iterable[str]
    ) -> FeedbackRecord:
        log = self.log.bind(session_id=session_id)
        try:
            canonical = self.validate_selections(selections)
        except (InvalidSelection, SelectionLimitExceeded) as e:
            log.warning(f"Rejected peer feedback: {e.detail}")
            raise
        submitter_id = await self._resolve_identity(submitter_id)
        await self.get_session(session_id)

        record = self._checked(FeedbackRecord, session_id=session_id, submitter_id=submitter_id, selections=canonical)
        await self.store.set_full(feedback_path(session_id, submitter_id), record.to_document())
        log.info(f"Feedback from {submitter_id} stored with {len(canonical)} descriptors")
        return record

    async def list_feedback(self, session_id: str) -> List[FeedbackRecord]:
        await self.get_session(session_id)
        return await self._load_feedback(session_id)

    async def _load_feedback(self, session_id: str) -> List[FeedbackRecord]:
        documents = await self.store.query(feedback_collection(session_id))
        records = [FeedbackRecord.from_document(doc.data) for doc in documents]
        return sorted(records, key=lambda record: record.submitter_id)

    async def get_window(self, session_id: str) -> WindowSnapshot:
        """Reads the full current state of a session and computes its partition."""
        session = await self.get_session(session_id)
        feedback = await self._load_feedback(session_id)
        peers = union_selections(feedback)
        return WindowSnapshot(
            session=session,
            feedback=feedback,
            peer_selections=in_vocabulary_order(self.vocabulary, peers),
            partition=compute_partition(self.vocabulary, set(session.self_selections), peers),
        )

    def subscribe(
        self,
        session_id: str,
        on_change: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Disposer:
        """
        Delivers a fresh WindowSnapshot now and after every change to the session
        or its feedback. Must be called from a running event loop; the returned
        disposer stops delivery and releases the store subscriptions.

        Store outages and a missing session go to `on_error` and delivery keeps
        going. Any other refresh failure reaches `on_error` as
        WindowRefreshFailed and ends the subscription.
        """
        subscription = WindowSubscription(self, session_id, on_change, on_error)
        return subscription.dispose


class WindowSubscription:
    def __init__(
        self,
        service: SessionService,
        session_id: str,
        on_change: SnapshotCallback,
        on_error: Optional[ErrorCallback],
    ):
        self.service = service
        self.session_id = session_id
        self.on_change = on_change
        self.on_error = on_error
        self.log = service.log.bind(session_id=session_id)

        self._changes: asyncio.Queue = asyncio.Queue()
        self._changes.put_nowait(session_path(session_id))
        self._store_disposers = [
            service.store.subscribe(session_path(session_id), self._changes.put_nowait),
            service.store.subscribe(feedback_collection(session_id), self._changes.put_nowait),
        ]
        self._task = asyncio.create_task(self._deliver())
        self.dispose = Disposer(self._release)
        self.log.info("Window subscription opened")

    def _release(self) -> None:
        for disposer in self._store_disposers:
            disposer()
        self._task.cancel()
        self.log.info("Window subscription closed")

    async def _deliver(self) -> None:
        while True:
            changed = await self._changes.get()
            # Every delivery re-reads the whole session, so queued duplicates add nothing.
            while not self._changes.empty():
                self._changes.get_nowait()
            self.log.debug(f"Recomputing window after change to '{changed}'")

            fatal = False
            try:
                snapshot = await self.service.get_window(self.session_id)
            except (StoreUnavailable, SessionNotFound) as e:
                self.log.error(f"Could not refresh window: {e.detail}")
                if self.on_error is None:
                    continue
                delivery = self.on_error(e)
            except Exception as e:
                self.log.exception(f"Window refresh failed, closing subscription: {e}")
                if self.on_error is None:
                    self.dispose()
                    return
                fatal = True
                delivery = self.on_error(WindowRefreshFailed(self.session_id, e))
            else:
                delivery = self.on_change(snapshot)

            try:
                await delivery
            except Exception as e:
                self.log.exception(f"Window listener failed, closing subscription: {e}")
                self.dispose()
                return
            if fatal:
                self.dispose()
                return
