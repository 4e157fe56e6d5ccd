"""
Celery Tasks Package

Re-exports all tasks for Celery autodiscovery.

- maintenance_tasks: challenge session cleanup
"""

from app.services.tasks.maintenance_tasks import (
    cleanup_orphaned_challenge_sessions_task,
)

__all__ = [
    "cleanup_orphaned_challenge_sessions_task",
]
