"""
Challenge Session Events

Broadcasts the payload-free "sessions changed" signal after lifecycle writes.

Delivery is fire-and-forget: the signal goes to Redis pub/sub (one channel per
user, for the app's refresh listeners) and to in-process subscribers. Consumers
must treat it as at-least-once and coalesce duplicates; publishing never raises.
"""

import json
from typing import Callable, List

from app.core.cache import get_redis_client
from app.core.config import settings
from app.services.logger import logger

CHANNEL_PREFIX = "challenge_sessions:changed:"
EVENT_NAME = "challenge-sessions-changed"

SessionsChangedListener = Callable[[str], None]


def channel_for_user(user_id: str) -> str:
    """Return Redis channel name for a user's session events."""
    return f"{CHANNEL_PREFIX}{user_id}"


class SessionEventPublisher:
    def __init__(self, redis_client=None, use_redis: bool = True):
        self._redis = redis_client
        self._use_redis = use_redis
        self._listeners: List[SessionsChangedListener] = []

    def subscribe(self, listener: SessionsChangedListener) -> Callable[[], None]:
        """Register an in-process listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _redis_client(self):
        if self._redis is None and self._use_redis:
            self._redis = get_redis_client()
        return self._redis

    def sessions_changed(self, user_id: str) -> None:
        self._publish_redis(user_id)

        for listener in list(self._listeners):
            try:
                listener(user_id)
            except Exception as e:
                logger.warning(f"[Session Events] Listener failed: {e}")

    def _publish_redis(self, user_id: str) -> bool:
        try:
            redis = self._redis_client()
            if not redis or not hasattr(redis, "publish"):
                return False
            redis.publish(channel_for_user(user_id), json.dumps({"type": EVENT_NAME}))
            return True
        except Exception as e:
            logger.warning(f"[Session Events] Failed to publish: {e}")
            return False


session_event_publisher = SessionEventPublisher(
    use_redis=settings.SESSION_EVENTS_REDIS_ENABLED
)
