"""Health check endpoints.

Provides Kubernetes-compatible liveness and readiness probes:
- /health/live  - Liveness probe (always returns OK if process is running)
- /health/ready - Readiness probe (checks database and Redis connectivity)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from storefront.cache.redis import RedisStore, get_redis
from storefront.persistence.db import health_check as db_health_check

router = APIRouter(tags=["health"])

CHECK_TIMEOUT = 5.0  # seconds


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def _timed_check(name: str, check: Callable[[], Awaitable[bool]]) -> ComponentHealth:
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(check(), timeout=CHECK_TIMEOUT)
        message = None if healthy else f"{name} check failed"
    except asyncio.TimeoutError:
        healthy, message = False, f"{name} check timed out"
    except Exception as e:
        healthy, message = False, str(e)
    return ComponentHealth(
        name=name,
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        latency_ms=(time.monotonic() - start) * 1000,
        message=message,
    )


async def check_database() -> ComponentHealth:
    return await _timed_check("database", db_health_check)


async def check_redis() -> ComponentHealth:
    async def ping() -> bool:
        return await RedisStore(await get_redis()).health_check()

    return await _timed_check("redis", ping)


@router.get("/health/live")
async def live() -> dict[str, str]:
    """Liveness probe.

    Returns OK if the process is running.
    """
    return {"status": "ok"}


@router.get("/health/ready")
async def ready() -> ORJSONResponse:
    """Readiness probe.

    Checks database and Redis connectivity. Returns 200 if both are
    healthy, 503 otherwise.
    """
    components = await asyncio.gather(check_database(), check_redis())
    healthy = all(c.status == HealthStatus.HEALTHY for c in components)
    overall = HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY
    return ORJSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": overall.value,
            "checks": {c.name: c.to_dict() for c in components},
        },
    )
