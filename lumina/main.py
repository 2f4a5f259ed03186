"""
Lumina Gallery API application.

Main application entry point that configures:
- CORS middleware
- API routers
- Database lifecycle
- Logging system
- Exception handlers
- Prometheus metrics
- Rate limiting
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.middleware import SlowAPIMiddleware

from lumina.config import get_settings
from lumina.database import close_db, init_db
from lumina.exceptions import register_exception_handlers
from lumina.middlewares.logging_middleware import LoggingMiddleware
from lumina.middlewares.rate_limit import setup_rate_limit_exception_handler
from lumina.routers import (
    auth_router,
    galleries_router,
    health_router,
    invoices_router,
    photos_router,
    share_router,
)
from lumina.utils.logger import get_request_id, log_error, log_info, setup_logging
from lumina.utils.prometheus_metrics import exceptions_total, ready, setup_prometheus

settings = get_settings()
logger = logging.getLogger("lumina")

# Python logging 설정
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup: 설정 검증(프로덕션), 테이블 생성, ready=1.
    Shutdown: ready=0, DB 연결 종료.

    Demo data is not created here; run ``python scripts/seed.py`` explicitly.
    """
    if settings.is_production:
        from lumina.utils.config_validator import validate_all_config

        config_ok, config_errors = await validate_all_config()
        if not config_ok:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in config_errors)
            log_error(
                "Startup failed: configuration validation errors",
                error_message=error_msg,
                event="lifecycle",
            )
            raise RuntimeError(error_msg)
        log_info("Configuration validation passed", event="lifecycle")

    await init_db()
    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    yield

    # Health check 즉시 실패 (로드밸런서가 새 요청 차단)
    ready.set(0)
    log_info("Application shutdown initiated", event="lifecycle")
    await close_db()
    log_info("Shutdown completed", event="lifecycle")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Lumina Gallery API

Backend for photographers delivering galleries to their clients.

### Features
- **Accounts**: Registration, JWT authentication, password reset by email
- **Galleries**: Create galleries, upload photos, pick a cover photo
- **Sharing**: Public share links, downloads protected by a 4-digit PIN
- **Invoices**: Bill a gallery's client and export the invoice as PDF

### Authentication
Owner endpoints require `Authorization: Bearer <token>`.
Use `/api/auth/login` to get a token.
    """,
    openapi_tags=[
        {"name": "Authentication", "description": "Photographer accounts and password reset"},
        {"name": "Galleries", "description": "Gallery management and photo uploads"},
        {"name": "Photos", "description": "Replace and delete photos"},
        {"name": "Shared Galleries", "description": "Public access through share links"},
        {"name": "Invoices", "description": "Invoices and PDF export"},
        {"name": "Health", "description": "Liveness and readiness"},
    ],
    lifespan=lifespan,
)

# Prometheus: FastAPI metrics at /metrics
setup_prometheus(app)

# Domain errors / validation errors → {"message": ...}
register_exception_handlers(app)

# Rate limiting: 예외 처리 핸들러 등록 + 기본 한도
setup_rate_limit_exception_handler(app)
if settings.rate_limit_enabled:
    app.add_middleware(SlowAPIMiddleware)

# Configure CORS
_origins = settings.cors_origin_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    # "*"와 credentials는 함께 쓸 수 없음
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)

# Add structured logging middleware
app.add_middleware(LoggingMiddleware)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Unhandled exception handler with structured logging.

    - ERROR 로그 (구조화된 포맷)
    - 500 응답 + Request ID (장애 추적용)
    """
    exceptions_total.inc()
    rid = get_request_id()

    log_error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        error_code="INTERNAL_SERVER_ERROR",
        http_method=request.method,
        http_path=request.url.path,
        event="exception",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "Internal server error",
            "request_id": rid,
        },
    )


# Include routers
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(galleries_router)
app.include_router(photos_router)
app.include_router(share_router)
app.include_router(invoices_router)


@app.get(
    "/",
    tags=["Root"],
    summary="API information",
)
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
