"""Integration test fixtures.

Provides a fully wired AppState with in-memory SQLite and an ASGI client
talking to the Starlette app. Upstream Content API calls are mocked per test
with respx.
"""

from __future__ import annotations

import aiosqlite
import httpx
import pytest

from techblog_ssr.cache import Cache
from techblog_ssr.config import Settings
from techblog_ssr.fetcher import ContentApiClient, build_http_client
from techblog_ssr.server import create_app
from techblog_ssr.state import AppState
from techblog_ssr.tasks import BackgroundTasks

API = "https://api.test"
SHELL = (
    "<!DOCTYPE html><html><head><title>TechBlog AI</title>"
    '<script type="module" src="/assets/index.js"></script></head>'
    '<body><div id="root"></div></body></html>'
)


@pytest.fixture()
def settings() -> Settings:
    return Settings(site={"origin": "https://blog.test", "api_base_url": API})


@pytest.fixture()
async def app_state(settings: Settings):
    """Full AppState wired the same way as the server lifespan."""
    async with aiosqlite.connect(":memory:") as db:
        cache = Cache(db)
        await cache.init_db()

        async with build_http_client(settings.fetcher) as client:
            tasks = BackgroundTasks()
            state = AppState(
                settings=settings,
                cache=cache,
                api=ContentApiClient(client, settings, cache, tasks),
                tasks=tasks,
                shell_html=SHELL,
            )
            yield state
            await tasks.drain()


@pytest.fixture()
async def client(app_state: AppState):
    transport = httpx.ASGITransport(app=create_app(state=app_state))
    async with httpx.AsyncClient(transport=transport, base_url="https://blog.test") as c:
        yield c
