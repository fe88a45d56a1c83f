"""
Async database access (raw SQL) using asyncpg.

`Database` owns one connection pool per process. The app factory creates the
handle, the lifespan connects it on startup and closes it on shutdown (see
`api/main.py`), and request handlers receive it through
`core.dependencies.get_database`.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from .settings import Settings

logger = logging.getLogger(__name__)


class DatabaseUnavailableError(RuntimeError):
    pass


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def connect_kwargs(settings: Settings) -> dict[str, Any]:
    """
    Keyword arguments for `asyncpg.create_pool` built from settings.

    DATABASE_URL wins over the discrete DB_* values when both are present.
    """
    kwargs: dict[str, Any] = {
        "min_size": settings.db_pool_min,
        "max_size": settings.db_pool_max,
        "timeout": settings.db_connect_timeout_s,
        "max_inactive_connection_lifetime": settings.db_idle_timeout_s,
        "command_timeout": 30,
    }
    if settings.database_url:
        kwargs["dsn"] = _sanitize_database_url(settings.database_url)
    else:
        kwargs.update(
            host=settings.db_host,
            port=settings.db_port,
            database=settings.db_name,
            user=settings.db_user,
            password=settings.db_password or None,
        )
    return kwargs


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


class Database:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()
        self._last_failure: float | None = None
        self._clock = time.monotonic

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def _create_pool(self) -> asyncpg.Pool:
        return await asyncpg.create_pool(**connect_kwargs(self._settings))

    async def connect(self) -> bool:
        """
        Create the pool, retrying on startup.

        Returns False when every attempt failed; the service keeps running,
        queries fail fast for `db_retry_delay_s`, then the next one tries again.
        """
        if self._pool is not None:
            return True

        attempts = max(1, self._settings.db_connect_retries)
        for attempt in range(1, attempts + 1):
            try:
                async with self._pool_lock:
                    if self._pool is None:
                        self._pool = await self._create_pool()
                self._last_failure = None
                logger.info("db_pool_ready attempt=%s", attempt)
                return True
            except Exception:
                self._last_failure = self._clock()
                logger.exception("db_connect_failed attempt=%s of=%s", attempt, attempts)
                if attempt < attempts:
                    await asyncio.sleep(self._settings.db_retry_delay_s)
        return False

    async def close(self) -> None:
        if self._pool is None:
            return None
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info("db_pool_closed")

    def _raise_if_backing_off(self) -> None:
        # After a failed connect, callers fail fast until the retry delay passes.
        if self._last_failure is None:
            return None
        if self._clock() - self._last_failure < self._settings.db_retry_delay_s:
            raise DatabaseUnavailableError("Database is unavailable; retrying later.")

    async def pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        self._raise_if_backing_off()
        async with self._pool_lock:
            if self._pool is None:
                # Callers that queued behind a failed attempt see its failure here.
                self._raise_if_backing_off()
                try:
                    self._pool = await self._create_pool()
                except Exception as exc:
                    self._last_failure = self._clock()
                    logger.warning("db_pool_unavailable error=%s", type(exc).__name__)
                    raise DatabaseUnavailableError("Database pool could not be created.") from exc
                self._last_failure = None
                logger.info("db_pool_ready lazily=true")
        return self._pool

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        row = await (await self.pool()).fetchrow(sql, *args)
        return _record_to_dict(row) if row is not None else None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as a list of dicts.
        """
        rows = await (await self.pool()).fetch(sql, *args)
        return [_record_to_dict(r) for r in rows]

    async def execute(self, sql: str, *args: Any) -> None:
        """
        Run a statement (INSERT/UPDATE/DELETE/DDL). No result returned.
        """
        await (await self.pool()).execute(sql, *args)
