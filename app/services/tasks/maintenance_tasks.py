"""
Maintenance Celery tasks - cleanup and housekeeping.
"""

from app.core.celery_app import celery_app
from app.services.challenge_session_service import challenge_session_service
from app.services.logger import logger


@celery_app.task(name="cleanup_orphaned_challenge_sessions")
def cleanup_orphaned_challenge_sessions_task() -> dict:
    """Delete challenge session rows that no read can ever return.

    - inactive rows without completed_at
    - active rows that already carry completed_at

    Completed-but-active sessions are left to each user's in-progress listing.

    Schedule: Hourly
    """
    try:
        counts = challenge_session_service.cleanup_orphaned_sessions()

        logger.info(
            f"Completed challenge session cleanup: "
            f"{counts['inactive_incomplete_deleted']} inactive-incomplete, "
            f"{counts['completed_active_deleted']} completed-active deleted"
        )

        return {"success": True, **counts}

    except Exception as e:
        logger.error(f"Failed to cleanup challenge sessions: {e}")
        return {
            "success": False,
            "error": str(e),
        }
