"""
Health checks for the community API
Monitors database, storage configuration, cache and host resources
"""
import time
from datetime import datetime, timezone
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .cache import get_cache_stats
from .config import settings
from .database.session import get_session
from .logging_config import get_logger

logger = get_logger(__name__)

health_router = APIRouter(prefix="/health", tags=["health"])

# Track service start time for uptime calculation
SERVICE_START_TIME = time.time()


class HealthResponse(BaseModel):
    status: str
    database: str
    message: str
    response_time_ms: float


class ComponentHealth(BaseModel):
    """Individual component health"""
    name: str
    status: str  # "healthy", "degraded", "unhealthy"
    response_time_ms: float
    message: str
    details: Dict[str, Any] = {}


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime
    checks: Dict[str, Any]
    version: str
    uptime_seconds: float


async def check_database_health(session: AsyncSession) -> ComponentHealth:
    """Check database connectivity"""
    start_time = time.perf_counter()

    try:
        await session.execute(text("SELECT 1"))
        response_time = (time.perf_counter() - start_time) * 1000
        return ComponentHealth(
            name="database",
            status="healthy",
            response_time_ms=round(response_time, 2),
            message="Database is healthy",
            details={"backend": "sqlite" if settings.is_sqlite else "postgresql"},
        )
    except Exception as e:
        response_time = (time.perf_counter() - start_time) * 1000
        logger.error(f"Database health check failed: {e}")
        return ComponentHealth(
            name="database",
            status="unhealthy",
            response_time_ms=round(response_time, 2),
            message=f"Database connection failed: {str(e)}",
            details={"error": str(e)},
        )


def check_storage_config() -> ComponentHealth:
    """Uploads need the object store; without it the rest of the API still works"""
    configured = settings.storage_configured
    return ComponentHealth(
        name="storage",
        status="healthy" if configured else "degraded",
        response_time_ms=0.0,
        message="Storage is configured" if configured else "Storage is not configured, uploads disabled",
        details={"bucket": settings.bucket_name if configured else None},
    )


def check_system_health() -> ComponentHealth:
    """Check host resources"""
    start_time = time.perf_counter()

    try:
        cpu_percent = psutil.cpu_percent(interval=0.1)
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage('/')

        status = "healthy"
        issues = []

        if cpu_percent > 80:
            status = "degraded"
            issues.append(f"High CPU usage: {cpu_percent}%")

        if memory.percent > 85:
            status = "degraded"
            issues.append(f"High memory usage: {memory.percent}%")

        if disk.percent > 90:
            status = "degraded"
            issues.append(f"High disk usage: {disk.percent}%")

        response_time = (time.perf_counter() - start_time) * 1000
        return ComponentHealth(
            name="system",
            status=status,
            response_time_ms=round(response_time, 2),
            message="System is healthy" if not issues else f"System issues: {'; '.join(issues)}",
            details={
                "cpu_percent": round(cpu_percent, 2),
                "memory_percent": round(memory.percent, 2),
                "memory_available_gb": round(memory.available / 1024**3, 2),
                "disk_percent": round(disk.percent, 2),
                "disk_free_gb": round(disk.free / 1024**3, 2),
            },
        )
    except Exception as e:
        response_time = (time.perf_counter() - start_time) * 1000
        logger.error(f"System health check failed: {e}")
        return ComponentHealth(
            name="system",
            status="unhealthy",
            response_time_ms=round(response_time, 2),
            message=f"System health check failed: {str(e)}",
            details={"error": str(e)},
        )


@health_router.get("", response_model=HealthResponse)
async def health_check(session: AsyncSession = Depends(get_session)):
    """Simple health check"""
    database = await check_database_health(session)
    healthy = database.status == "healthy"
    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        database="connected" if healthy else "disconnected",
        message="All systems operational" if healthy else database.message,
        response_time_ms=database.response_time_ms,
    )


@health_router.get("/detailed", response_model=HealthStatus)
async def detailed_health(session: AsyncSession = Depends(get_session)):
    """Status of every component"""
    checks = [
        await check_database_health(session),
        check_storage_config(),
        check_system_health(),
    ]

    health_checks: Dict[str, Any] = {}
    overall_status = "healthy"
    for check in checks:
        health_checks[check.name] = {
            "status": check.status,
            "response_time_ms": check.response_time_ms,
            "message": check.message,
            "details": check.details,
        }
        if check.status == "unhealthy":
            overall_status = "unhealthy"
        elif check.status == "degraded" and overall_status == "healthy" and check.name != "storage":
            overall_status = "degraded"

    health_checks["cache"] = {"status": "healthy", "details": get_cache_stats()}

    return HealthStatus(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        checks=health_checks,
        version=settings.VERSION,
        uptime_seconds=round(time.time() - SERVICE_START_TIME, 2),
    )
