"""
Health check utilities for the TouchGrass API.

Reports whether the challenge session lifecycle can run:
- each lifecycle table answers a one-row read
- session events reach Redis, or degrade to in-process listeners
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.core.cache import DummyRedis, get_redis_client
from app.core.config import settings
from app.core.store import SupabaseTableStore

LIFECYCLE_TABLES = (
    "user_challenge_sessions",
    "user_challenge_reflections",
    "challenges",
)


class HealthStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    CRITICAL = "critical"
    NOT_CONFIGURED = "not_configured"


class HealthCheckResult(BaseModel):
    component: str
    status: HealthStatus
    details: str = ""
    latency_ms: Optional[float] = Field(default=None, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class HealthReport(BaseModel):
    status: HealthStatus
    version: str
    environment: str
    timestamp: datetime
    checks: List[HealthCheckResult]


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def _check_supabase() -> HealthCheckResult:
    component = "supabase"

    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        return HealthCheckResult(
            component=component,
            status=HealthStatus.NOT_CONFIGURED,
            details="Supabase credentials are not set",
        )

    store = SupabaseTableStore()
    start = time.perf_counter()
    unreachable: Dict[str, str] = {}

    for table in LIFECYCLE_TABLES:
        try:
            await asyncio.to_thread(store.select, table, limit=1, columns="id")
        except Exception as exc:  # pragma: no cover - network failures
            unreachable[table] = str(exc)

    if unreachable:
        return HealthCheckResult(
            component=component,
            status=HealthStatus.CRITICAL,
            details=f"{len(unreachable)} lifecycle table(s) unreadable",
            latency_ms=_elapsed_ms(start),
            metadata={"errors": unreachable},
        )

    return HealthCheckResult(
        component=component,
        status=HealthStatus.OK,
        details="Lifecycle tables readable",
        latency_ms=_elapsed_ms(start),
        metadata={"tables": list(LIFECYCLE_TABLES)},
    )


async def _check_session_events() -> HealthCheckResult:
    component = "redis"

    if not settings.redis_connection_url:
        return HealthCheckResult(
            component=component,
            status=HealthStatus.NOT_CONFIGURED,
            details="Redis URL is not configured; session events stay in-process",
        )

    start = time.perf_counter()
    client = await asyncio.to_thread(get_redis_client)

    if client is None or isinstance(client, DummyRedis):
        return HealthCheckResult(
            component=component,
            status=HealthStatus.DEGRADED,
            details="Redis unreachable; session events stay in-process",
            latency_ms=_elapsed_ms(start),
        )

    try:
        await asyncio.to_thread(client.ping)
    except Exception as exc:  # pragma: no cover - network failures
        return HealthCheckResult(
            component=component,
            status=HealthStatus.DEGRADED,
            details=f"Redis ping failed: {exc}",
            latency_ms=_elapsed_ms(start),
        )

    return HealthCheckResult(
        component=component,
        status=HealthStatus.OK,
        details="Session events published to Redis",
        latency_ms=_elapsed_ms(start),
    )


async def _check_environment() -> HealthCheckResult:
    return HealthCheckResult(
        component="environment",
        status=HealthStatus.OK,
        details="Environment variables loaded",
        metadata={"environment": settings.ENVIRONMENT, "debug": settings.DEBUG},
    )


async def gather_health_checks() -> List[HealthCheckResult]:
    checks = await asyncio.gather(
        _check_environment(),
        _check_supabase(),
        _check_session_events(),
    )

    return list(checks)


def _aggregate_status(checks: List[HealthCheckResult]) -> HealthStatus:
    statuses = {check.status for check in checks}

    for worst in (HealthStatus.CRITICAL, HealthStatus.DEGRADED):
        if worst in statuses:
            return worst

    if statuses == {HealthStatus.NOT_CONFIGURED}:
        return HealthStatus.NOT_CONFIGURED

    return HealthStatus.OK


async def build_health_report(api_version: str) -> HealthReport:
    checks = await gather_health_checks()

    return HealthReport(
        status=_aggregate_status(checks),
        version=api_version,
        environment=settings.ENVIRONMENT,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )
