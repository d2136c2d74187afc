import os

# Settings are read at import time, so the environment must be ready first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("CHANGE_FEED_BACKEND", "local")

import pytest

from johari.core.security import StaticIdentityProvider
from johari.services.change_feed import LocalChangeFeed
from johari.services.document_store import InMemoryDocumentStore
from johari.services.session_service import SessionService

SMALL_VOCABULARY = ("Bold", "Calm", "Kind", "Shy")

CREATOR = "creator-1"
PEER_A = "peer-a"
PEER_B = "peer-b"


@pytest.fixture
def feed():
    return LocalChangeFeed()


@pytest.fixture
def store(feed):
    return InMemoryDocumentStore(feed=feed)


@pytest.fixture
def identity():
    return StaticIdentityProvider(CREATOR)


@pytest.fixture
def service(store, identity):
    return SessionService(store, identity, vocabulary=SMALL_VOCABULARY)


@pytest.fixture
def capped_service(store, identity):
    return SessionService(store, identity, max_selections=5)
