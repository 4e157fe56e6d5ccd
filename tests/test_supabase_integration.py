"""Read-only checks against a real Supabase project."""

import uuid

import pytest

from app.core.store import SupabaseTableStore, eq, is_null
from app.services.challenge_session_service import ChallengeSessionService
from app.services.session_events import SessionEventPublisher
from tests.conftest import requires_supabase


@pytest.fixture
def live_service() -> ChallengeSessionService:
    return ChallengeSessionService(
        store=SupabaseTableStore(), events=SessionEventPublisher(use_redis=False)
    )


@requires_supabase
def test_session_table_accepts_lifecycle_filters():
    rows = SupabaseTableStore().select(
        "user_challenge_sessions",
        [eq("user_id", str(uuid.uuid4())), eq("is_active", True), is_null("completed_at")],
        order="started_at",
        desc=True,
        limit=1,
    )
    assert rows == []


@requires_supabase
@pytest.mark.asyncio
async def test_unknown_user_has_nothing_in_progress(live_service):
    user_id = str(uuid.uuid4())

    assert await live_service.list_in_progress(user_id) == []
    history = await live_service.list_completed(user_id)
    assert history.total_completions == 0
