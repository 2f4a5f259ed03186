"""
Prometheus metrics for stability and business events.

- FastAPI: request count, latency (Instrumentator)
- Stability: exceptions_total, db_errors_total, external_request_errors_total
- HA: ready gauge (1=up, 0=shutting down)
- Business: registrations, logins, galleries, uploads, share access, PIN checks, invoices
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from lumina.config import get_settings

logger = logging.getLogger(__name__)

# --- Stability ---
exceptions_total = Counter(
    "lumina_exceptions_total",
    "Total unhandled exceptions",
    registry=REGISTRY,
)
db_errors_total = Counter(
    "lumina_db_errors_total",
    "Total database session/transaction errors",
    registry=REGISTRY,
)
external_request_errors_total = Counter(
    "lumina_external_request_errors_total",
    "Total external API request failures",
    ["service"],
    registry=REGISTRY,
)
external_request_duration_seconds = Histogram(
    "lumina_external_request_duration_seconds",
    "External API request duration in seconds",
    ["service", "result"],  # result: success | failure
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "lumina_ready",
    "Application ready (1=up, 0=shutting down)",
    registry=REGISTRY,
)

# --- Auth ---
user_registration_total = Counter(
    "lumina_user_registration_total",
    "Photographer registration attempts",
    ["result"],  # success | failure
    registry=REGISTRY,
)
user_login_total = Counter(
    "lumina_user_login_total",
    "Login attempts",
    ["result"],
    registry=REGISTRY,
)
login_duration_seconds = Histogram(
    "lumina_login_duration_seconds",
    "Login request duration in seconds",
    ["result"],
    buckets=(0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 3.0, 5.0),
    registry=REGISTRY,
)
password_reset_total = Counter(
    "lumina_password_reset_total",
    "Password reset requests and completions",
    ["stage", "result"],  # stage: request | complete
    registry=REGISTRY,
)

# --- Galleries / photos ---
gallery_operations_total = Counter(
    "lumina_gallery_operations_total",
    "Gallery operations",
    ["operation", "result"],
    registry=REGISTRY,
)
photo_upload_total = Counter(
    "lumina_photo_upload_total",
    "Photo uploads",
    ["upload_method", "result"],  # upload_method: direct | metadata | replace
    registry=REGISTRY,
)
photo_upload_file_size_bytes = Histogram(
    "lumina_photo_upload_file_size_bytes",
    "Uploaded photo size in bytes",
    ["upload_method"],
    buckets=(100_000, 500_000, 1_000_000, 2_500_000, 5_000_000, 10_000_000),
    registry=REGISTRY,
)

# --- Share ---
share_access_total = Counter(
    "lumina_share_access_total",
    "Public share link access",
    ["result"],  # success | not_found
    registry=REGISTRY,
)
pin_verification_total = Counter(
    "lumina_pin_verification_total",
    "Download PIN verifications",
    ["result"],  # valid | invalid
    registry=REGISTRY,
)
share_download_total = Counter(
    "lumina_share_download_total",
    "Photo downloads through share links",
    ["kind", "result"],  # kind: single | bulk
    registry=REGISTRY,
)

# --- Invoices ---
invoice_operations_total = Counter(
    "lumina_invoice_operations_total",
    "Invoice operations",
    ["operation", "result"],  # operation: create | pdf
    registry=REGISTRY,
)

# --- Rate limit ---
rate_limit_hits_total = Counter(
    "lumina_rate_limit_hits_total",
    "Requests rejected by the rate limiter",
    ["endpoint"],
    registry=REGISTRY,
)


@asynccontextmanager
async def record_external_request(service: str) -> AsyncGenerator[None, None]:
    """
    Context manager to record external request duration and errors.
    Use around image host / mail calls.
    """
    start = time.perf_counter()
    result = "success"
    try:
        yield
    except Exception:
        result = "failure"
        external_request_errors_total.labels(service=service).inc()
        raise
    finally:
        duration = time.perf_counter() - start
        external_request_duration_seconds.labels(service=service, result=result).observe(duration)


def setup_prometheus(app) -> None:
    """
    Register Prometheus instrumentation.

    1. app_info gauge (labels only).
    2. FastAPI request metrics via Instrumentator.
    3. /metrics 엔드포인트 노출 (스크래핑용).
    """
    settings = get_settings()

    app_info = Gauge(
        "lumina_app_info",
        "Application identity (labels only, value is 1)",
        ["app", "version", "environment"],
        registry=REGISTRY,
    )
    app_info.labels(
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    ).set(1)

    # status 라벨을 2xx 대신 구체 코드(200, 201, 404 등)로 노출
    Instrumentator(should_group_status_codes=False).instrument(app).expose(
        app, endpoint="/metrics", include_in_schema=False
    )
