"""SQLite response cache with two independent namespaces.

``page_cache`` holds fully rendered HTTP responses; ``data_cache`` holds raw
Content API payloads with a much shorter TTL. Expired rows are still returned
(flagged ``stale``) so callers can decide whether to treat them as a miss or
as a last-resort fallback.

SQLite failures stay inside this module. A failed read looks like a miss to
the dispatchers and a failed write is logged and dropped, so a broken cache
file slows responses down but never breaks them.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite
import structlog

if TYPE_CHECKING:
    from techblog_ssr.models.cache import DataCacheEntry, PageCacheEntry

log = structlog.get_logger()

_CREATE_PAGE_TABLE = """
CREATE TABLE IF NOT EXISTS page_cache (
    cache_key    TEXT PRIMARY KEY,
    body         TEXT NOT NULL,
    headers      TEXT NOT NULL DEFAULT '{}',
    status_code  INTEGER NOT NULL DEFAULT 200,
    stored_at    TEXT NOT NULL,
    expires_at   TEXT NOT NULL
)
"""

_CREATE_DATA_TABLE = """
CREATE TABLE IF NOT EXISTS data_cache (
    cache_key   TEXT PRIMARY KEY,
    payload     TEXT NOT NULL,
    fetched_at  TEXT NOT NULL,
    expires_at  TEXT NOT NULL
)
"""

_CREATE_PAGE_INDEX = "CREATE INDEX IF NOT EXISTS idx_page_expires ON page_cache(expires_at)"
_CREATE_DATA_INDEX = "CREATE INDEX IF NOT EXISTS idx_data_expires ON data_cache(expires_at)"


def cache_key(kind: str, identifier: str, variant: str) -> str:
    """Build a ``{kind}-{identifier}-{variant}`` key.

    The variant keeps AI-crawler renders (``full``) apart from everything else
    (``lite``/``meta``) for the same logical resource.
    """
    return f"{kind}-{identifier}-{variant}"


class Cache:
    """SQLite-backed response cache implementing CacheProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create both tables in WAL mode. Run once by the lifespan."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_PAGE_TABLE)
        await self._db.execute(_CREATE_DATA_TABLE)
        await self._db.execute(_CREATE_PAGE_INDEX)
        await self._db.execute(_CREATE_DATA_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Page cache
    # ------------------------------------------------------------------

    async def get_page(self, key: str) -> PageCacheEntry | None:
        """Read a rendered page. Returns ``None`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT cache_key, body, headers, status_code, stored_at, expires_at "
                "FROM page_cache WHERE cache_key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            from techblog_ssr.models.cache import PageCacheEntry

            stored_at = datetime.fromisoformat(row[4])
            expires_at = datetime.fromisoformat(row[5])
            stale = datetime.now(UTC) > expires_at

            return PageCacheEntry(
                key=row[0],
                body=row[1],
                headers=json.loads(row[2]),
                status_code=row[3],
                stored_at=stored_at,
                expires_at=expires_at,
                stale=stale,
            )
        except (aiosqlite.Error, ValueError):
            log.warning("cache_read_error", key=f"page:{key}", exc_info=True)
            return None

    async def set_page(
        self,
        key: str,
        body: str,
        headers: dict[str, str],
        status_code: int,
        ttl_seconds: int,
    ) -> None:
        """Write a rendered page. Non-fatal on failure."""
        try:
            now = datetime.now(UTC)
            expires_at = now + timedelta(seconds=ttl_seconds)
            await self._db.execute(
                "INSERT OR REPLACE INTO page_cache "
                "(cache_key, body, headers, status_code, stored_at, expires_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    key,
                    body,
                    json.dumps(headers),
                    status_code,
                    now.isoformat(),
                    expires_at.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=f"page:{key}", exc_info=True)

    # ------------------------------------------------------------------
    # Data cache
    # ------------------------------------------------------------------

    async def get_data(self, key: str) -> DataCacheEntry | None:
        """Read a backend payload. Returns ``None`` on cache miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT cache_key, payload, fetched_at, expires_at "
                "FROM data_cache WHERE cache_key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            from techblog_ssr.models.cache import DataCacheEntry

            fetched_at = datetime.fromisoformat(row[2])
            expires_at = datetime.fromisoformat(row[3])
            stale = datetime.now(UTC) > expires_at

            return DataCacheEntry(
                key=row[0],
                payload=row[1],
                fetched_at=fetched_at,
                expires_at=expires_at,
                stale=stale,
            )
        except aiosqlite.Error:
            log.warning("cache_read_error", key=f"data:{key}", exc_info=True)
            return None

    async def set_data(self, key: str, payload: str, ttl_seconds: int) -> None:
        """Write a backend payload. Non-fatal on failure."""
        try:
            now = datetime.now(UTC)
            expires_at = now + timedelta(seconds=ttl_seconds)
            await self._db.execute(
                "INSERT OR REPLACE INTO data_cache "
                "(cache_key, payload, fetched_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (key, payload, now.isoformat(), expires_at.isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=f"data:{key}", exc_info=True)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_expired(self) -> None:
        """Purge page and data rows that expired over a week ago."""
        try:
            cutoff = (datetime.now(UTC) - timedelta(days=7)).isoformat()

            cursor = await self._db.execute(
                "DELETE FROM page_cache WHERE expires_at < ?", (cutoff,)
            )
            page_deleted = cursor.rowcount

            cursor = await self._db.execute(
                "DELETE FROM data_cache WHERE expires_at < ?", (cutoff,)
            )
            data_deleted = cursor.rowcount

            await self._db.commit()
            log.info(
                "cache_purged",
                page_deleted=page_deleted,
                data_deleted=data_deleted,
            )
        except aiosqlite.Error:
            log.warning("cache_purge_failed", exc_info=True)
