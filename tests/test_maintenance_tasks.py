"""Tests for the challenge session cleanup task."""

from unittest.mock import patch

from app.services.tasks import maintenance_tasks
from app.services.tasks.maintenance_tasks import cleanup_orphaned_challenge_sessions_task
from tests.fakes import SESSIONS


def test_cleanup_task_reports_counts(service, store, user_id):
    store.seed(
        SESSIONS,
        user_id=user_id,
        challenge_id="c-1",
        started_at="2025-05-20T09:00:00+00:00",
        is_active=False,
    )
    live = store.seed(
        SESSIONS,
        user_id=user_id,
        challenge_id="c-2",
        started_at="2025-05-20T09:00:00+00:00",
    )

    with patch.object(maintenance_tasks, "challenge_session_service", service):
        result = cleanup_orphaned_challenge_sessions_task.run()

    assert result == {
        "success": True,
        "inactive_incomplete_deleted": 1,
        "completed_active_deleted": 0,
    }
    assert store.rows(SESSIONS) == [live]


def test_cleanup_task_reports_failure(service, store, service_logs):
    store.fail_on[("delete", SESSIONS)] = RuntimeError("database down")

    with patch.object(maintenance_tasks, "challenge_session_service", service):
        result = cleanup_orphaned_challenge_sessions_task.run()

    assert result["success"] is False
    assert "database down" in result["error"]
    assert any("database down" in r.getMessage() for r in service_logs.records)


def test_cleanup_task_is_scheduled():
    from app.core.celery_app import celery_app

    schedule = celery_app.conf.beat_schedule

    assert any(
        entry["task"] == "cleanup_orphaned_challenge_sessions"
        for entry in schedule.values()
    )
