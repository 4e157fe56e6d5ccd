"""
Celery Signal Handlers

Hooks for Celery lifecycle events (e.g., worker startup).
"""

from celery.signals import worker_ready

from app.services.logger import logger


@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    """
    Run the session cleanup once when a worker starts, without waiting for
    the first beat interval.
    """
    from app.services.tasks import cleanup_orphaned_challenge_sessions_task

    cleanup_orphaned_challenge_sessions_task.apply_async(countdown=0)

    logger.info("Celery worker ready, initial challenge session cleanup queued")
