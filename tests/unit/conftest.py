"""Unit-specific fixtures (no I/O beyond in-memory SQLite and mocked HTTP)."""

from __future__ import annotations

import aiosqlite
import httpx
import pytest

from techblog_ssr.cache import Cache
from techblog_ssr.config import Settings
from techblog_ssr.fetcher import ContentApiClient
from techblog_ssr.state import AppState
from techblog_ssr.tasks import BackgroundTasks

API = "https://api.test"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        site={"origin": "https://blog.test", "api_base_url": API},
    )


@pytest.fixture()
async def cache():
    """In-memory SQLite cache for unit tests."""
    async with aiosqlite.connect(":memory:") as db:
        c = Cache(db)
        await c.init_db()
        yield c


@pytest.fixture()
async def tasks():
    """Background task set, drained before the cache connection closes."""
    background = BackgroundTasks()
    yield background
    await background.drain()


@pytest.fixture()
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def api(
    http_client: httpx.AsyncClient, settings: Settings, cache: Cache, tasks: BackgroundTasks
) -> ContentApiClient:
    return ContentApiClient(http_client, settings, cache, tasks)


@pytest.fixture()
def app_state(
    settings: Settings, cache: Cache, api: ContentApiClient, tasks: BackgroundTasks
) -> AppState:
    return AppState(settings=settings, cache=cache, api=api, tasks=tasks)
