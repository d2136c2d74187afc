# johari/api/v1/endpoints/sessions.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from loguru import logger

from johari.core.config import settings
from johari.core.errors import JohariError, StoreUnavailable
from johari.core.security import IdentityProvider, StaticIdentityProvider, get_current_identity, get_identity_provider, verify_token
from johari.core.store_client import get_document_store
from johari.models.session import FeedbackRecord, Session
from johari.models.window import WindowSnapshot
from johari.schemas.session import ErrorResponse, SelectionSubmit, SessionCreate, SessionRename
from johari.services.document_store import DocumentStore
from johari.services.session_service import SessionService

router = APIRouter()

ERROR_RESPONSES = {
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def find_document_store() -> Optional[DocumentStore]:
    try:
        return get_document_store()
    except ConnectionError:
        return None


def require_document_store(store: Optional[DocumentStore] = Depends(find_document_store)) -> DocumentStore:
    if store is None:
        raise StoreUnavailable("Document store not initialized.")
    return store


def error_frame(error: JohariError) -> dict:
    return {"type": "window.error", "code": error.code, "detail": error.detail}


def build_session_service(store: DocumentStore, identity_provider: IdentityProvider) -> SessionService:
    return SessionService(
        store=store,
        identity_provider=identity_provider,
        max_selections=settings.MAX_SELECTIONS,
    )


# Dependency for SessionService, scoped to the identity of the caller.
async def get_session_service(
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    store: DocumentStore = Depends(require_document_store),
) -> SessionService:
    return build_session_service(store, identity_provider)


@router.post("/", response_model=Session, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES, summary="Create Session")
async def create_session(
    session_data: SessionCreate,
    service: SessionService = Depends(get_session_service),
):
    """Creates a session owned by the caller, with no self selections yet."""
    session_id = await service.create_session(display_name=session_data.display_name)
    return await service.get_session(session_id)


@router.get("/{session_id}", response_model=Session, responses=ERROR_RESPONSES, summary="Retrieve Session by ID")
async def get_session(session_id: str, service: SessionService = Depends(get_session_service)):
    return await service.get_session(session_id)


@router.patch("/{session_id}", response_model=Session, responses=ERROR_RESPONSES, summary="Rename Session")
async def rename_session(
    session_id: str,
    rename: SessionRename,
    service: SessionService = Depends(get_session_service),
):
    return await service.rename_session(session_id, rename.display_name)


@router.put("/{session_id}/self", response_model=Session, responses=ERROR_RESPONSES, summary="Replace self assessment")
async def submit_self_assessment(
    session_id: str,
    submission: SelectionSubmit,
    service: SessionService = Depends(get_session_service),
):
    """
    Replaces the creator's self selections with the submitted set.
    Nothing is written when validation fails.
    """
    return await service.submit_self_assessment(session_id, submission.selections)


@router.put("/{session_id}/feedback", response_model=FeedbackRecord, responses=ERROR_RESPONSES, summary="Submit peer feedback")
async def submit_peer_feedback(
    session_id: str,
    submission: SelectionSubmit,
    identity: str = Depends(get_current_identity),
    service: SessionService = Depends(get_session_service),
):
    """Inserts or replaces the caller's feedback for this session."""
    return await service.submit_peer_feedback(session_id, identity, submission.selections)


@router.get("/{session_id}/feedback", response_model=List[FeedbackRecord], responses=ERROR_RESPONSES, summary="List peer feedback")
async def list_feedback(session_id: str, service: SessionService = Depends(get_session_service)):
    return await service.list_feedback(session_id)


@router.get("/{session_id}/window", response_model=WindowSnapshot, responses=ERROR_RESPONSES, summary="Compute Johari window")
async def get_window(session_id: str, service: SessionService = Depends(get_session_service)):
    return await service.get_window(session_id)


@router.websocket("/{session_id}/ws")
async def watch_window(
    websocket: WebSocket,
    session_id: str,
    token: str = Query(...),
    store: Optional[DocumentStore] = Depends(find_document_store),
):
    """
    Pushes a `window.snapshot` frame on connect and after every change to the
    session or its feedback. Failures arrive as `window.error` frames.
    """
    try:
        identity = verify_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Could not validate credentials")
        return

    await websocket.accept()
    if store is None:
        error = StoreUnavailable("Document store not initialized.")
        logger.error(f"Window watcher {identity} refused for session '{session_id}': {error.detail}")
        await websocket.send_json(error_frame(error))
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    service = build_session_service(store, StaticIdentityProvider(identity))

    async def send_snapshot(snapshot: WindowSnapshot):
        await websocket.send_json({"type": "window.snapshot", "window": snapshot.model_dump(mode="json")})

    async def send_error(error: JohariError):
        await websocket.send_json(error_frame(error))

    dispose = service.subscribe(session_id, send_snapshot, send_error)
    logger.info(f"Window watcher {identity} connected to session '{session_id}'")
    try:
        # Incoming frames are ignored; the loop only waits for the client to leave.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Window watcher {identity} left session '{session_id}'")
    finally:
        dispose()
