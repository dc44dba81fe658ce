"""Content API client.

Every upstream call is a single GET bounded by a per-call timeout. Failures
surface as ``TechBlogError``; the dispatchers own the fallback decision.
Responses are mirrored into the short-lived data cache, and a stale copy is
served when the backend is down.
"""

from __future__ import annotations

import asyncio
import json
import math
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from techblog_ssr.cache import cache_key
from techblog_ssr.config import FetcherSettings
from techblog_ssr.errors import ErrorCode, TechBlogError
from techblog_ssr.models.content import Category, CategoryListing, Post

if TYPE_CHECKING:
    from techblog_ssr.config import Settings
    from techblog_ssr.protocols import CacheProtocol
    from techblog_ssr.tasks import BackgroundTasks

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient. Called once at startup."""
    settings = settings or FetcherSettings()
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(10.0),
        headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
    )


class ContentApiClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        cache: CacheProtocol,
        tasks: BackgroundTasks,
    ) -> None:
        self._client = client
        self._settings = settings
        self._cache = cache
        self._tasks = tasks
        self._base = settings.site.api_base_url

    async def fetch_json(
        self, url: str, timeout_ms: int, params: dict[str, Any] | None = None
    ) -> Any:
        """GET ``url`` and decode JSON. Raises TechBlogError on any failure.

        ``timeout_ms`` bounds the whole exchange, body included; httpx's own
        timeout only limits each connect or read step.
        """
        budget = timeout_ms / 1000
        try:
            async with asyncio.timeout(budget):
                response = await self._client.get(
                    url, params=params, timeout=httpx.Timeout(budget)
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            log.warning("upstream_timeout", url=url, timeout_ms=timeout_ms)
            raise TechBlogError(
                ErrorCode.UPSTREAM_TIMEOUT,
                f"Content API did not answer within {timeout_ms} ms",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("upstream_request_error", url=url, error=str(exc))
            raise TechBlogError(
                ErrorCode.UPSTREAM_HTTP_ERROR,
                f"Request to Content API failed: {exc}",
                recoverable=True,
            ) from exc

        if response.status_code == 404:
            raise TechBlogError(
                ErrorCode.NOT_FOUND, f"Not found upstream: {url}", status_code=404
            )
        if not response.is_success:
            log.warning("upstream_http_error", url=url, status_code=response.status_code)
            raise TechBlogError(
                ErrorCode.UPSTREAM_HTTP_ERROR,
                f"Content API returned HTTP {response.status_code}",
                recoverable=response.status_code >= 500,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise TechBlogError(
                ErrorCode.UPSTREAM_PARSE_ERROR, f"Malformed JSON from {url}"
            ) from exc

    async def _get_cached_json(
        self,
        key: str,
        path: str,
        timeout_ms: int,
        params: dict[str, Any] | None = None,
    ) -> Any:
        entry = await self._cache.get_data(key)
        if entry is not None and not entry.stale:
            log.debug("data_cache_hit", key=key)
            return json.loads(entry.payload)

        try:
            data = await self.fetch_json(f"{self._base}{path}", timeout_ms, params)
        except TechBlogError as exc:
            if entry is not None and exc.code != ErrorCode.NOT_FOUND:
                log.info("data_cache_stale_served", key=key, code=exc.code.value)
                return json.loads(entry.payload)
            raise

        self._tasks.spawn(
            self._cache.set_data(key, json.dumps(data), self._settings.cache.data_ttl_seconds),
            name=f"data_cache_write:{key}",
        )
        return data

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    async def get_latest_posts(self, limit: int, timeout_ms: int | None = None) -> list[Post]:
        data = await self._get_cached_json(
            cache_key("posts", "latest", str(limit)),
            "/api/posts",
            timeout_ms or self._settings.fetcher.home_timeout_ms,
            params={"limit": limit},
        )
        raw = data.get("posts", []) if isinstance(data, dict) else data
        return _parse_list(Post, raw)

    async def get_categories(self) -> list[Category]:
        data = await self._get_cached_json(
            cache_key("categories", "all", "all"),
            "/api/categories",
            self._settings.fetcher.categories_timeout_ms,
        )
        return _parse_list(Category, data)

    async def get_category_listing(self, slug: str, page: int, full: bool) -> CategoryListing:
        limit = self._settings.content.category_page_size
        params: dict[str, Any] = {"page": page, "limit": limit}
        if full:
            params["full"] = "true"
        data = await self._get_cached_json(
            cache_key("category", f"{slug}-page-{page}", "full" if full else "lite"),
            f"/api/posts/category/{quote(slug)}",
            self._settings.fetcher.category_timeout_ms,
            params=params,
        )
        if not isinstance(data, dict):
            raise TechBlogError(
                ErrorCode.UPSTREAM_PARSE_ERROR, "Category payload is not an object"
            )

        posts = _parse_list(Post, data.get("posts") or [])
        total = int(data.get("total") or len(posts))
        try:
            category = Category.model_validate(data["category"])
        except (KeyError, TypeError, ValidationError):
            category = Category.synthesize(slug)
        return CategoryListing(
            category=category,
            posts=posts,
            total=total,
            current_page=int(data.get("currentPage") or page),
            total_pages=int(data.get("totalPages") or max(1, math.ceil(total / limit))),
        )

    async def get_post(self, slug: str, full: bool) -> Post:
        # AI crawlers need the article body, which only the full endpoint carries
        path = f"/api/posts/{quote(slug)}" if full else f"/api/posts/{quote(slug)}/meta"
        data = await self._get_cached_json(
            cache_key("post", slug, "full" if full else "meta"),
            path,
            self._settings.fetcher.post_timeout_ms,
        )
        try:
            return Post.model_validate({"slug": slug, **data})
        except (TypeError, ValidationError) as exc:
            raise TechBlogError(
                ErrorCode.UPSTREAM_PARSE_ERROR, f"Unexpected post payload for {slug!r}"
            ) from exc


def _parse_list(model: type[Post] | type[Category], raw: Any) -> list[Any]:
    if not isinstance(raw, list):
        raise TechBlogError(ErrorCode.UPSTREAM_PARSE_ERROR, "Expected a JSON array")
    try:
        return [model.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise TechBlogError(
            ErrorCode.UPSTREAM_PARSE_ERROR, f"Invalid {model.__name__} in payload"
        ) from exc
