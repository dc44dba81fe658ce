"""Unit tests for techblog_ssr.fetcher."""

from __future__ import annotations

import asyncio
import json
import time
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from techblog_ssr.config import FetcherSettings
from techblog_ssr.errors import ErrorCode, TechBlogError
from techblog_ssr.fetcher import build_http_client

if TYPE_CHECKING:
    from techblog_ssr.cache import Cache
    from techblog_ssr.fetcher import ContentApiClient
    from techblog_ssr.tasks import BackgroundTasks

API = "https://api.test"


async def _expire_data(cache: Cache, key: str) -> None:
    past = (datetime.now(UTC) - timedelta(minutes=10)).isoformat()
    await cache._db.execute(
        "UPDATE data_cache SET expires_at = ? WHERE cache_key = ?", (past, key)
    )
    await cache._db.commit()


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


class TestBuildHttpClient:
    async def test_client_configuration(self) -> None:
        client = build_http_client(FetcherSettings(user_agent="Test/1.0"))
        try:
            assert client.follow_redirects is True
            assert client.headers["User-Agent"] == "Test/1.0"
            assert client.headers["Accept"] == "application/json"
        finally:
            await client.aclose()


# ---------------------------------------------------------------------------
# fetch_json error mapping
# ---------------------------------------------------------------------------


class TestFetchJson:
    async def test_successful_fetch(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/categories").mock(
                return_value=httpx.Response(200, json=[{"slug": "ai"}])
            )
            assert await api.fetch_json(f"{API}/api/categories", 1000) == [{"slug": "ai"}]

    async def test_timeout_is_recoverable(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(side_effect=httpx.ReadTimeout("slow"))
            with pytest.raises(TechBlogError) as exc_info:
                await api.fetch_json(f"{API}/api/posts", 10)
            assert exc_info.value.code == ErrorCode.UPSTREAM_TIMEOUT
            assert exc_info.value.recoverable is True

    async def test_network_error(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )
            with pytest.raises(TechBlogError) as exc_info:
                await api.fetch_json(f"{API}/api/posts", 1000)
            assert exc_info.value.code == ErrorCode.UPSTREAM_HTTP_ERROR
            assert exc_info.value.recoverable is True

    async def test_404_is_not_found(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts/missing").mock(return_value=httpx.Response(404))
            with pytest.raises(TechBlogError) as exc_info:
                await api.fetch_json(f"{API}/api/posts/missing", 1000)
            assert exc_info.value.code == ErrorCode.NOT_FOUND
            assert exc_info.value.recoverable is False
            assert exc_info.value.status_code == 404

    async def test_500_is_recoverable_http_error(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(return_value=httpx.Response(503))
            with pytest.raises(TechBlogError) as exc_info:
                await api.fetch_json(f"{API}/api/posts", 1000)
            assert exc_info.value.code == ErrorCode.UPSTREAM_HTTP_ERROR
            assert exc_info.value.recoverable is True
            assert exc_info.value.status_code == 503

    async def test_4xx_is_not_recoverable(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(return_value=httpx.Response(403))
            with pytest.raises(TechBlogError) as exc_info:
                await api.fetch_json(f"{API}/api/posts", 1000)
            assert exc_info.value.recoverable is False

    async def test_malformed_json(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(
                return_value=httpx.Response(200, text="<html>maintenance</html>")
            )
            with pytest.raises(TechBlogError) as exc_info:
                await api.fetch_json(f"{API}/api/posts", 1000)
            assert exc_info.value.code == ErrorCode.UPSTREAM_PARSE_ERROR


# ---------------------------------------------------------------------------
# Whole-call time budget
# ---------------------------------------------------------------------------

SLOW_BODY = b'{"slug": "slow", "title": "Slow post"}'


@pytest.fixture()
async def trickling_upstream():
    """Local HTTP server that sends headers at once, then the body 6 bytes at a time."""

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            await reader.readuntil(b"\r\n\r\n")
            writer.write(
                b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\n"
                b"Content-Length: %d\r\n\r\n" % len(SLOW_BODY)
            )
            await writer.drain()
            for start in range(0, len(SLOW_BODY), 6):
                await asyncio.sleep(0.2)
                writer.write(SLOW_BODY[start : start + 6])
                await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    async with server:
        yield f"http://127.0.0.1:{port}"


class TestFetchJsonBudget:
    async def test_slow_body_exceeds_budget(
        self, api: ContentApiClient, trickling_upstream: str
    ) -> None:
        # Each chunk arrives well inside the per-read timeout; the total does not
        started = time.monotonic()
        with pytest.raises(TechBlogError) as exc_info:
            await api.fetch_json(f"{trickling_upstream}/api/posts/slow/meta", 500)
        elapsed = time.monotonic() - started

        assert exc_info.value.code == ErrorCode.UPSTREAM_TIMEOUT
        assert exc_info.value.recoverable is True
        assert elapsed < 1.0

    async def test_slow_body_within_budget_succeeds(
        self, api: ContentApiClient, trickling_upstream: str
    ) -> None:
        data = await api.fetch_json(f"{trickling_upstream}/api/posts/slow/meta", 5000)
        assert data == {"slug": "slow", "title": "Slow post"}


# ---------------------------------------------------------------------------
# Typed accessors
# ---------------------------------------------------------------------------


class TestGetLatestPosts:
    async def test_accepts_bare_array(self, api: ContentApiClient) -> None:
        with respx.mock:
            route = respx.get(f"{API}/api/posts").mock(
                return_value=httpx.Response(200, json=[{"slug": "a", "title": "A"}])
            )
            posts = await api.get_latest_posts(50)
            assert [p.slug for p in posts] == ["a"]
            assert route.calls.last.request.url.params["limit"] == "50"

    async def test_accepts_wrapped_object(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(
                return_value=httpx.Response(200, json={"posts": [{"slug": "b"}]})
            )
            posts = await api.get_latest_posts(10)
            assert posts[0].slug == "b"

    async def test_non_list_payload_is_parse_error(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(return_value=httpx.Response(200, json="nope"))
            with pytest.raises(TechBlogError) as exc_info:
                await api.get_latest_posts(10)
            assert exc_info.value.code == ErrorCode.UPSTREAM_PARSE_ERROR

    async def test_comma_separated_tags_split(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts").mock(
                return_value=httpx.Response(200, json=[{"slug": "a", "tags": "ai, rust ,"}])
            )
            posts = await api.get_latest_posts(10)
            assert posts[0].tags == ["ai", "rust"]


class TestGetCategoryListing:
    async def test_full_flag_sent_only_for_full(self, api: ContentApiClient) -> None:
        with respx.mock:
            route = respx.get(f"{API}/api/posts/category/ai").mock(
                return_value=httpx.Response(
                    200, json={"category": {"name": "AI", "slug": "ai"}, "posts": [], "total": 0}
                )
            )
            await api.get_category_listing("ai", 1, full=False)
            assert "full" not in route.calls.last.request.url.params
            await api.get_category_listing("ai", 2, full=True)
            assert route.calls.last.request.url.params["full"] == "true"
            assert route.calls.last.request.url.params["page"] == "2"

    async def test_total_pages_computed_when_absent(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts/category/ai").mock(
                return_value=httpx.Response(
                    200,
                    json={
                        "category": {"name": "AI", "slug": "ai"},
                        "posts": [{"slug": f"p{i}"} for i in range(20)],
                        "total": 45,
                    },
                )
            )
            listing = await api.get_category_listing("ai", 1, full=False)
            assert listing.total == 45
            assert listing.total_pages == 3
            assert listing.fallback is False

    async def test_missing_category_is_synthesized(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts/category/machine-learning").mock(
                return_value=httpx.Response(200, json={"posts": []})
            )
            listing = await api.get_category_listing("machine-learning", 1, full=False)
            assert listing.category.name == "Machine Learning"
            assert listing.category.description == "Latest Machine Learning articles"

    async def test_array_payload_is_parse_error(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts/category/ai").mock(
                return_value=httpx.Response(200, json=[])
            )
            with pytest.raises(TechBlogError) as exc_info:
                await api.get_category_listing("ai", 1, full=False)
            assert exc_info.value.code == ErrorCode.UPSTREAM_PARSE_ERROR


class TestGetPost:
    async def test_meta_endpoint_for_lite(self, api: ContentApiClient) -> None:
        with respx.mock:
            route = respx.get(f"{API}/api/posts/hello/meta").mock(
                return_value=httpx.Response(200, json={"title": "Hello"})
            )
            post = await api.get_post("hello", full=False)
            assert route.called
            assert post.slug == "hello"
            assert post.title == "Hello"

    async def test_full_endpoint_for_ai(self, api: ContentApiClient) -> None:
        with respx.mock:
            route = respx.get(f"{API}/api/posts/hello").mock(
                return_value=httpx.Response(200, json={"title": "Hello", "content": "<p>Body</p>"})
            )
            post = await api.get_post("hello", full=True)
            assert route.called
            assert post.content == "<p>Body</p>"

    async def test_non_object_payload_is_parse_error(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/posts/hello/meta").mock(
                return_value=httpx.Response(200, json=["not", "a", "post"])
            )
            with pytest.raises(TechBlogError) as exc_info:
                await api.get_post("hello", full=False)
            assert exc_info.value.code == ErrorCode.UPSTREAM_PARSE_ERROR


# ---------------------------------------------------------------------------
# Data cache and stale-if-error
# ---------------------------------------------------------------------------


class TestDataCaching:
    async def test_fresh_hit_skips_network(
        self, api: ContentApiClient, tasks: BackgroundTasks
    ) -> None:
        with respx.mock:
            route = respx.get(f"{API}/api/categories").mock(
                return_value=httpx.Response(200, json=[{"slug": "ai", "name": "AI"}])
            )
            await api.get_categories()
            await tasks.drain()
            categories = await api.get_categories()
            assert route.call_count == 1
            assert categories[0].name == "AI"

    async def test_stale_entry_served_when_upstream_fails(
        self, api: ContentApiClient, cache: Cache
    ) -> None:
        await cache.set_data(
            "categories-all-all", json.dumps([{"slug": "ai", "name": "AI"}]), ttl_seconds=300
        )
        await _expire_data(cache, "categories-all-all")

        with respx.mock:
            respx.get(f"{API}/api/categories").mock(side_effect=httpx.ReadTimeout("slow"))
            categories = await api.get_categories()
            assert categories[0].slug == "ai"

    async def test_stale_entry_refreshed_when_upstream_ok(
        self, api: ContentApiClient, cache: Cache
    ) -> None:
        await cache.set_data("categories-all-all", json.dumps([{"slug": "old"}]), ttl_seconds=300)
        await _expire_data(cache, "categories-all-all")

        with respx.mock:
            respx.get(f"{API}/api/categories").mock(
                return_value=httpx.Response(200, json=[{"slug": "new"}])
            )
            categories = await api.get_categories()
            assert categories[0].slug == "new"

    async def test_not_found_never_served_stale(
        self, api: ContentApiClient, cache: Cache
    ) -> None:
        await cache.set_data("post-gone-meta", json.dumps({"title": "Gone"}), ttl_seconds=300)
        await _expire_data(cache, "post-gone-meta")

        with respx.mock:
            respx.get(f"{API}/api/posts/gone/meta").mock(return_value=httpx.Response(404))
            with pytest.raises(TechBlogError) as exc_info:
                await api.get_post("gone", full=False)
            assert exc_info.value.code == ErrorCode.NOT_FOUND

    async def test_errors_propagate_without_cached_copy(self, api: ContentApiClient) -> None:
        with respx.mock:
            respx.get(f"{API}/api/categories").mock(return_value=httpx.Response(500))
            with pytest.raises(TechBlogError):
                await api.get_categories()
