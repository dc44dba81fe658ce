from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class PageCacheEntry(BaseModel):
    """A previously rendered HTTP response."""

    key: str  # "{kind}-{identifier}-{variant}"
    body: str
    headers: dict[str, str]
    status_code: int = 200
    stored_at: datetime
    expires_at: datetime
    stale: bool = False


class DataCacheEntry(BaseModel):
    """Raw Content API payload, kept to absorb backend latency."""

    key: str
    payload: str  # JSON text exactly as decoded from upstream, re-serialized
    fetched_at: datetime
    expires_at: datetime
    stale: bool = False
