"""
PostHog Analytics

Product events for the challenge session lifecycle, plus error capture for
the logger. Every call is a no-op when POSTHOG_API_KEY is unset, and tracking
failures are logged, never raised into a lifecycle operation.
"""

from typing import Optional

from posthog import Posthog
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

CHALLENGE_STARTED_EVENT = "challenge_started"
CHALLENGE_COMPLETED_EVENT = "challenge_completed"

posthog: Optional[Posthog] = None


def initialize_posthog() -> Optional[Posthog]:
    global posthog

    if not settings.POSTHOG_API_KEY:
        logger.warning("PostHog API key not found, analytics disabled")
        return None

    try:
        posthog = Posthog(
            project_api_key=settings.POSTHOG_API_KEY,
            host=settings.POSTHOG_HOST,
            enable_exception_autocapture=settings.POSTHOG_ENABLE_EXCEPTION_AUTOCAPTURE,
        )
        logger.info("PostHog analytics initialized")
    except Exception as e:
        logger.error(f"Failed to initialize PostHog: {e}")
        posthog = None

    return posthog


def get_posthog() -> Optional[Posthog]:
    if posthog is None and settings.POSTHOG_API_KEY:
        return initialize_posthog()
    return posthog


def track_event(user_id: str, event_name: str, properties: dict = None):
    client = get_posthog()
    if not client:
        return

    try:
        client.capture(
            distinct_id=user_id, event=event_name, properties=properties or {}
        )
    except Exception as e:
        logger.error(f"Failed to track event {event_name}: {e}")


def track_challenge_started(user_id: str, challenge_id: str, session_id: str):
    track_event(
        user_id,
        CHALLENGE_STARTED_EVENT,
        {"challenge_id": challenge_id, "session_id": session_id},
    )


def track_challenge_completed(user_id: str, challenge_id: str, properties: dict = None):
    """Completion event. properties carries session_id, points and repeat flag."""
    track_event(
        user_id,
        CHALLENGE_COMPLETED_EVENT,
        {"challenge_id": challenge_id, **(properties or {})},
    )


def capture_exception(error: Exception, user_id: str = None, properties: dict = None):
    client = get_posthog()
    if not client:
        return

    try:
        client.capture_exception(
            error, distinct_id=user_id or "anonymous", properties=properties or {}
        )
    except Exception as e:
        logger.error(f"Failed to capture exception: {e}")


def shutdown_posthog():
    """Flush queued events and drop the client."""
    global posthog
    if posthog is None:
        return

    try:
        posthog.shutdown()
    except Exception as e:
        logger.error(f"Failed to shutdown PostHog: {e}")
    finally:
        posthog = None
