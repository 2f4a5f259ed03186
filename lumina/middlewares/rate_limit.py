"""
Rate limiting using slowapi.
Brute-force protection for login, password reset, share links and PIN checks.
"""
import logging
from typing import Callable

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from lumina.config import get_settings
from lumina.utils.client_ip import get_client_identifier
from lumina.utils.prometheus_metrics import rate_limit_hits_total

logger = logging.getLogger("lumina.rate_limit")
settings = get_settings()

# 메모리 기반 (다중 인스턴스 환경에서는 공유 저장소 필요)
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"] if settings.rate_limit_enabled else [],
    storage_uri="memory://",
    enabled=settings.rate_limit_enabled,
)


def setup_rate_limit_exception_handler(app) -> None:
    """Register the 429 handler and attach the limiter to the app."""
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        endpoint = request.scope.get("route").path if request.scope.get("route") else request.url.path
        rate_limit_hits_total.labels(endpoint=endpoint).inc()
        logger.warning(
            "Rate limit exceeded",
            extra={
                "event": "rate_limit",
                "client_ip": get_client_identifier(request),
                "endpoint": endpoint,
                "limit": str(exc.detail),
            },
        )
        return _rate_limit_exceeded_handler(request, exc)


def get_rate_limit_decorator(limit: str) -> Callable:
    """
    Rate limit 데코레이터 생성 헬퍼.

    Args:
        limit: Rate limit 문자열 (예: "10/minute")
    """
    if not settings.rate_limit_enabled:
        def noop_decorator(func: Callable) -> Callable:
            return func
        return noop_decorator

    return limiter.limit(limit)
