# src/FixtureSeed/db.py
from __future__ import annotations

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from FixtureSeed.config import Settings, load_settings

log = structlog.get_logger()


def normalize_url(url: str) -> str:
    # Upgrade to async drivers if user supplies sync URLs
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://") and not url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def engine_kwargs(url: str) -> dict[str, object]:
    kwargs: dict[str, object] = {}
    if url.startswith("sqlite+aiosqlite://"):
        connect_args: dict[str, object] = {"timeout": 30}
        if "file::memory:?cache=shared" in url:
            connect_args["uri"] = True
        kwargs.update(connect_args=connect_args)
        # In-memory databases live only as long as their connection, share one
        if ":memory:" in url:
            kwargs.update(poolclass=StaticPool)
    elif url.startswith("postgresql+asyncpg://"):
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_timeout=30)
    return kwargs


def create_engine(database_url: str | None = None, settings: Settings | None = None) -> AsyncEngine:
    """Build an async engine for the given URL, or the configured one."""
    if database_url is None:
        database_url = (settings or load_settings()).database_url
    url = normalize_url(database_url)
    engine = create_async_engine(url, **engine_kwargs(url))

    parsed = make_url(url)
    backend = "postgres" if url.startswith("postgresql") else (
        "sqlite" if url.startswith("sqlite") else "other"
    )
    log.info(
        "db.connection.config",
        backend=backend,
        user=parsed.username or "",
        host=parsed.host or "",
        database=parsed.database or "",
        driver=parsed.drivername,
    )
    return engine
