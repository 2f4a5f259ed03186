"""
Health Check 라우터.

- /healthz: 프로세스 생존 여부 (plain text "OK")
- /health/readiness: DB 연결 + ready 상태 (로드밸런서용)
"""
import asyncio
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import text

from lumina.config import get_settings
from lumina.database import engine
from lumina.utils.prometheus_metrics import REGISTRY, Gauge, ready

logger = logging.getLogger("lumina.health")
router = APIRouter(tags=["Health"])

settings = get_settings()

# Health check 상태 메트릭
health_check_status = Gauge(
    "lumina_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["check_type"],
    registry=REGISTRY,
)

DB_CHECK_TIMEOUT_SECONDS = 1.0


@router.get(
    "/healthz",
    response_class=PlainTextResponse,
    summary="Liveness check",
)
async def healthz() -> str:
    return "OK"


async def _check_db() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


def _unavailable(reason: str) -> JSONResponse:
    health_check_status.labels(check_type="readiness").set(0)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "unavailable", "message": reason},
    )


@router.get(
    "/health/readiness",
    summary="Readiness probe",
)
async def readiness_probe():
    """
    Readiness Probe.

    종료 중(ready=0)이거나 DB에 1초 안에 연결되지 않으면 503.
    """
    start_time = time.perf_counter()

    if ready._value.get() == 0:
        return _unavailable("Application is not ready")

    try:
        await asyncio.wait_for(_check_db(), timeout=DB_CHECK_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("DB health check timeout", extra={"event": "health"})
        return _unavailable("Database connection timeout")
    except Exception as e:
        logger.warning("DB health check failed", extra={"event": "health", "error": str(e)[:200]})
        return _unavailable("Database connection failed")

    health_check_status.labels(check_type="readiness").set(1)
    body: Dict[str, Any] = {
        "status": "ready",
        "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
        "instance": settings.instance_ip or "unknown",
    }
    return body
