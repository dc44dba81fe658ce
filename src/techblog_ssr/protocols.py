"""Structural interfaces injected into the dispatchers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from techblog_ssr.models.cache import DataCacheEntry, PageCacheEntry


class CacheProtocol(Protocol):
    """Key-value store for rendered pages and backend payloads.

    Implementations must never raise: read failures behave like a miss,
    write failures are dropped.
    """

    async def get_page(self, key: str) -> PageCacheEntry | None: ...

    async def set_page(
        self,
        key: str,
        body: str,
        headers: dict[str, str],
        status_code: int,
        ttl_seconds: int,
    ) -> None: ...

    async def get_data(self, key: str) -> DataCacheEntry | None: ...

    async def set_data(self, key: str, payload: str, ttl_seconds: int) -> None: ...
