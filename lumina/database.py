"""
Async engine, session factory and the request-scoped session for Lumina.

One session per request: services flush, routers commit, anything raised
rolls the whole request back. Statements slower than SLOW_QUERY_THRESHOLD
are logged with the first 100 characters of their SQL.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import HTTPException
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from lumina.config import get_settings
from lumina.exceptions import LuminaError
from lumina.utils.prometheus_metrics import db_errors_total

_logger = logging.getLogger("lumina.db")

settings = get_settings()

SLOW_QUERY_THRESHOLD = 1.0  # seconds

# SQLite: 연결 재사용 없이 매번 새로 연결 (테스트/로컬)
if settings.database_url.startswith("sqlite"):
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
else:
    engine = create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
    )


@event.listens_for(engine.sync_engine, "before_cursor_execute")
def _mark_query_start(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("lumina_query_started", []).append(time.perf_counter())


@event.listens_for(engine.sync_engine, "after_cursor_execute")
def _log_slow_query(conn, cursor, statement, parameters, context, executemany):
    started = conn.info.get("lumina_query_started")
    if not started:
        return
    elapsed = time.perf_counter() - started.pop()
    if elapsed < SLOW_QUERY_THRESHOLD:
        return
    _logger.warning(
        "Slow query",
        extra={"event": "db", "ms": round(elapsed * 1000), "query": statement[:100]},
    )


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create missing tables. Schema changes are not migrated."""
    # 모델 import → Base.metadata에 테이블 등록
    import lumina.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Domain errors roll back quietly; anything else is counted and logged."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except (LuminaError, HTTPException):
            # 도메인 오류는 DB 오류가 아님: 롤백만
            await session.rollback()
            raise
        except Exception as e:
            db_errors_total.inc()
            _logger.error(
                "DB error",
                extra={
                    "event": "db",
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Session for CLI commands (the demo seeder). Commits on success."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            _logger.error(
                "DB error outside request",
                extra={
                    "event": "db",
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            await session.rollback()
            raise
