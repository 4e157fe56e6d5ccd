"""
Celery Application Configuration

Celery task queue using Redis as broker and backend.
"""

from __future__ import annotations

import ssl
from typing import Dict, Optional

from celery import Celery
from app.core.config import settings


def _build_redis_ssl_options(url: str) -> Optional[Dict[str, int]]:
    """
    Celery requires explicit SSL options when connecting to Redis over TLS.
    Hosted Redis providers supply rediss:// URLs without extra parameters.
    """

    if not url or not url.startswith("rediss://"):
        return None

    # Respect explicit ssl_cert_reqs in the URL if provided.
    if "ssl_cert_reqs" in url:
        return None

    return {"ssl_cert_reqs": ssl.CERT_NONE}


# Create Celery app instance
redis_url = settings.redis_connection_url
redis_ssl_options = _build_redis_ssl_options(redis_url)

celery_app = Celery(
    "touchgrass",
    broker=redis_url,
    backend=redis_url,
    include=["app.services.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60,
    task_soft_time_limit=50,
    worker_prefetch_multiplier=1,
    result_expires=3600,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    broker_use_ssl=redis_ssl_options,
    redis_backend_use_ssl=redis_ssl_options,
    beat_schedule={
        "cleanup-orphaned-challenge-sessions": {
            "task": "cleanup_orphaned_challenge_sessions",
            "schedule": float(settings.CHALLENGE_SESSION_CLEANUP_INTERVAL_SECONDS),
            # The in-progress listing repairs a user's rows on read as well
        },
    },
)
