"""
Pytest configuration and fixtures for TouchGrass API tests.

Lifecycle tests run against an in-memory table store (tests/fakes.py).
Integration tests require Supabase to be configured (SUPABASE_URL,
SUPABASE_SERVICE_KEY) and are skipped otherwise.
"""

import os
import uuid
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

from app.core import cache
from app.core.flexible_auth import get_current_user, get_current_user_optional
from app.services.challenge_catalog import ChallengeCatalog
from app.services.challenge_session_service import (
    ChallengeSessionService,
    get_challenge_session_service,
)
from app.services.logger import logger as app_logger
from app.services.session_events import SessionEventPublisher
from main import app
from tests.fakes import CHALLENGES, InMemoryTableStore, TickingClock


def _supabase_configured() -> bool:
    """Check if Supabase is configured for integration tests."""
    return bool(os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_SERVICE_KEY"))


requires_supabase = pytest.mark.skipif(
    not _supabase_configured(),
    reason="SUPABASE_URL and SUPABASE_SERVICE_KEY required for integration tests",
)


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Keep tests off the network: Redis calls go to the no-op client."""
    monkeypatch.setattr(cache, "_redis_client", cache.DummyRedis())


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(clock) -> InMemoryTableStore:
    return InMemoryTableStore(clock=clock)


@pytest.fixture
def events() -> SessionEventPublisher:
    return SessionEventPublisher(use_redis=False)


@pytest.fixture
def notifications(events) -> List[str]:
    """User ids for every "sessions changed" signal, in order."""
    received: List[str] = []
    events.subscribe(received.append)
    return received


@pytest.fixture
def service(store, events, clock) -> ChallengeSessionService:
    return ChallengeSessionService(
        store=store,
        catalog=ChallengeCatalog(store),
        events=events,
        clock=clock,
    )


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def challenge(store) -> dict:
    return store.seed(
        CHALLENGES,
        title="Walk Barefoot on Grass",
        description="Ten minutes outside, no shoes.",
        difficulty="easy",
        category="outdoors",
        duration_minutes=10,
        points=50,
        reflection_questions=["How did it feel?", "What did you notice?"],
    )


@pytest.fixture
def api_base() -> str:
    """Base path for API v1 endpoints."""
    return "/api/v1"


@pytest.fixture
def client(service, user_id) -> Generator[TestClient, None, None]:
    """Test client signed in as user_id, backed by the in-memory store."""
    user = {"id": user_id, "status": "active"}
    app.dependency_overrides[get_challenge_session_service] = lambda: service
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_current_user_optional] = lambda: user
    with TestClient(app, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(service) -> Generator[TestClient, None, None]:
    """Test client without credentials, backed by the in-memory store."""
    app.dependency_overrides[get_challenge_session_service] = lambda: service
    with TestClient(app, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def service_logs(caplog):
    """Capture records from the API logger, which does not propagate to root."""
    app_logger.addHandler(caplog.handler)
    yield caplog
    app_logger.removeHandler(caplog.handler)
