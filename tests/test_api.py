"""End-to-end tests of the HTTP and WebSocket surface against an in-memory store."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from johari.api.v1.endpoints.sessions import find_document_store
from johari.core.config import settings
from johari.core.vocabulary import VOCABULARY
from johari.main import app
from johari.services.document_store import InMemoryDocumentStore


@pytest.fixture
def api_store():
    return InMemoryDocumentStore()


@pytest.fixture
def client(api_store):
    app.dependency_overrides[find_document_store] = lambda: api_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def sign_in(client):
    response = client.post("/v1/auth/anonymous")
    assert response.status_code == 201
    body = response.json()
    return body["identity"], {"Authorization": f"Bearer {body['access_token']}"}


def create_session(client, headers, name="Ada"):
    response = client.post("/v1/sessions/", json={"display_name": name}, headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


class TestAuth:

    def test_anonymous_sign_in_round_trip(self, client):
        identity, headers = sign_in(client)

        response = client.get("/v1/auth/me", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"identity": identity}

    def test_each_sign_in_gets_a_new_identity(self, client):
        first, _ = sign_in(client)
        second, _ = sign_in(client)
        assert first != second

    def test_sessions_require_a_token(self, client):
        assert client.post("/v1/sessions/", json={}).status_code == 401
        assert client.get("/v1/sessions/abc", headers={"Authorization": "Bearer junk"}).status_code == 401


class TestPublicRoutes:

    def test_vocabulary(self, client):
        body = client.get("/v1/vocabulary/").json()
        assert body["descriptors"] == list(VOCABULARY)
        assert body["max_selections"] == settings.MAX_SELECTIONS

    def test_health(self, client):
        response = client.get("/v1/health/")
        assert response.status_code == 200
        assert response.text == "ok"


class TestSessionFlow:

    def test_full_exercise(self, client):
        creator, creator_headers = sign_in(client)
        peer, peer_headers = sign_in(client)
        session_id = create_session(client, creator_headers)

        session = client.get(f"/v1/sessions/{session_id}", headers=peer_headers).json()
        assert session["creator_id"] == creator
        assert session["self_selections"] == []

        response = client.put(
            f"/v1/sessions/{session_id}/self",
            json={"selections": ["Kind", "Bold"]},
            headers=creator_headers,
        )
        assert response.status_code == 200
        assert response.json()["self_selections"] == ["Bold", "Kind"]

        client.put(f"/v1/sessions/{session_id}/feedback", json={"selections": ["Calm"]}, headers=peer_headers)
        response = client.put(
            f"/v1/sessions/{session_id}/feedback",
            json={"selections": ["Kind", "Shy"]},
            headers=peer_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"session_id": session_id, "submitter_id": peer, "selections": ["Kind", "Shy"]}

        feedback = client.get(f"/v1/sessions/{session_id}/feedback", headers=creator_headers).json()
        assert len(feedback) == 1

        window = client.get(f"/v1/sessions/{session_id}/window", headers=creator_headers).json()
        assert window["feedback_count"] == 1
        assert window["partition"]["arena"] == ["Kind"]
        assert window["partition"]["facade"] == ["Bold"]
        assert window["partition"]["blind_spot"] == ["Shy"]
        assert "Calm" in window["partition"]["unknown"]

    def test_rename(self, client):
        _, headers = sign_in(client)
        session_id = create_session(client, headers)

        response = client.patch(f"/v1/sessions/{session_id}", json={"display_name": "Grace"}, headers=headers)

        assert response.status_code == 200
        assert response.json()["display_name"] == "Grace"


class TestErrors:

    def test_invalid_selection(self, client):
        _, headers = sign_in(client)
        session_id = create_session(client, headers)

        response = client.put(f"/v1/sessions/{session_id}/self", json={"selections": ["Grumpy"]}, headers=headers)

        assert response.status_code == 422
        assert response.json()["code"] == "invalid_selection"
        assert "Grumpy" in response.json()["detail"]

    def test_selection_limit(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MAX_SELECTIONS", 5)
        _, headers = sign_in(client)
        session_id = create_session(client, headers)
        url = f"/v1/sessions/{session_id}/self"
        client.put(url, json={"selections": list(VOCABULARY[:5])}, headers=headers)

        response = client.put(url, json={"selections": list(VOCABULARY[:6])}, headers=headers)

        assert response.status_code == 422
        assert response.json()["code"] == "selection_limit_exceeded"
        session = client.get(f"/v1/sessions/{session_id}", headers=headers).json()
        assert session["self_selections"] == list(VOCABULARY[:5])

    def test_unknown_session(self, client):
        _, headers = sign_in(client)

        response = client.get("/v1/sessions/does-not-exist/window", headers=headers)

        assert response.status_code == 404
        assert response.json()["code"] == "session_not_found"

    def test_peer_cannot_edit_self_assessment(self, client):
        _, creator_headers = sign_in(client)
        _, peer_headers = sign_in(client)
        session_id = create_session(client, creator_headers)

        response = client.put(f"/v1/sessions/{session_id}/self", json={"selections": ["Shy"]}, headers=peer_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "not_session_creator"

    def test_store_unavailable(self, client):
        _, headers = sign_in(client)
        app.dependency_overrides[find_document_store] = lambda: None

        response = client.post("/v1/sessions/", json={"display_name": "Ada"}, headers=headers)

        assert response.status_code == 503
        assert response.json()["code"] == "store_unavailable"


class TestWindowSocket:

    def test_pushes_snapshot_on_connect_and_on_change(self, client):
        creator, headers = sign_in(client)
        token = headers["Authorization"].split(" ", 1)[1]
        session_id = create_session(client, headers)

        with client.websocket_connect(f"/v1/sessions/{session_id}/ws?token={token}") as ws:
            first = ws.receive_json()
            assert first["type"] == "window.snapshot"
            assert first["window"]["partition"]["unknown"] == list(VOCABULARY)

            client.put(f"/v1/sessions/{session_id}/self", json={"selections": ["Wise"]}, headers=headers)

            second = ws.receive_json()
            assert second["type"] == "window.snapshot"
            assert second["window"]["partition"]["facade"] == ["Wise"]

    def test_unknown_session_sends_error_frame(self, client):
        _, headers = sign_in(client)
        token = headers["Authorization"].split(" ", 1)[1]

        with client.websocket_connect(f"/v1/sessions/missing/ws?token={token}") as ws:
            frame = ws.receive_json()

        assert frame == {"type": "window.error", "code": "session_not_found", "detail": "Session 'missing' not found"}

    def test_bad_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/v1/sessions/any/ws?token=junk") as ws:
                ws.receive_json()

    def test_missing_store_sends_error_frame_then_closes(self, client):
        _, headers = sign_in(client)
        token = headers["Authorization"].split(" ", 1)[1]
        app.dependency_overrides[find_document_store] = lambda: None

        with client.websocket_connect(f"/v1/sessions/any/ws?token={token}") as ws:
            frame = ws.receive_json()
            with pytest.raises(WebSocketDisconnect) as excinfo:
                ws.receive_json()

        assert frame["type"] == "window.error"
        assert frame["code"] == "store_unavailable"
        assert excinfo.value.code == 1011
