"""Per-route request pipelines.

Each pipeline runs classify -> page cache lookup -> upstream fetch -> render
-> background cache store -> respond. Upstream failures switch to a fallback
render; anything unexpected degrades to the app shell (page routes) or a
generic metadata document (metadata route). Crawlers never see a 5xx.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from techblog_ssr import renderer, responses
from techblog_ssr.cache import cache_key
from techblog_ssr.classifier import classify
from techblog_ssr.errors import ErrorCode, TechBlogError
from techblog_ssr.feed import render_rss, render_sitemap
from techblog_ssr.models.content import Category, CategoryListing, is_valid_slug
from techblog_ssr.responses import JsonResponse, PageResponse, RouteProfile, build_headers

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from techblog_ssr.models.request import ClientClassification, RenderRequest
    from techblog_ssr.state import AppState

log = structlog.get_logger()


class Dispatcher:
    def __init__(self, state: AppState) -> None:
        self._state = state
        self._settings = state.settings

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------

    def _classify(self, request: RenderRequest) -> ClientClassification:
        client = classify(request.user_agent)
        log.debug("client_classified", path=request.path, client=client.kind.value)
        return client

    def rewrite(self) -> PageResponse:
        """Serve the single-page app untouched."""
        return PageResponse(
            body=self._state.shell_html,
            headers=build_headers(responses.REWRITE),
            cacheable=False,
        )

    def _page(
        self,
        body: str,
        profile: RouteProfile,
        *,
        status_code: int = 200,
        cacheable: bool = True,
        extra: dict[str, str] | None = None,
    ) -> PageResponse:
        csp = renderer.content_security_policy(body, self._settings) if profile.csp else None
        return PageResponse(
            body=body,
            status_code=status_code,
            headers=build_headers(profile, csp=csp, extra=extra),
            cacheable=cacheable,
        )

    async def _through_cache(
        self,
        key: str,
        ttl_seconds: int,
        render: Callable[[], Awaitable[PageResponse]],
    ) -> PageResponse:
        cache = self._state.cache
        entry = await cache.get_page(key)
        if entry is not None and not entry.stale:
            log.info("page_cache_hit", key=key)
            return PageResponse(
                body=entry.body,
                status_code=entry.status_code,
                headers={**entry.headers, "X-Cache": "HIT"},
            )

        log.info("page_cache_miss", key=key)
        response = await render()
        if response.cacheable:
            self._state.tasks.spawn(
                cache.set_page(
                    key,
                    response.body,
                    dict(response.headers),
                    response.status_code,
                    ttl_seconds,
                ),
                name=f"page_cache_write:{key}",
            )
        response.headers["X-Cache"] = "MISS"
        return response

    # ------------------------------------------------------------------
    # Home
    # ------------------------------------------------------------------

    async def home(self, request: RenderRequest) -> PageResponse:
        try:
            client = self._classify(request)
            key = cache_key("home", "index", client.variant)
            return await self._through_cache(
                key,
                self._settings.cache.home_ttl_seconds,
                lambda: self._render_home(client),
            )
        except Exception:
            log.error("home_dispatch_failed", path=request.path, exc_info=True)
            return self.rewrite()

    async def _render_home(self, client: ClientClassification) -> PageResponse:
        api = self._state.api
        try:
            posts, categories = await asyncio.gather(
                api.get_latest_posts(self._settings.content.home_post_limit),
                api.get_categories(),
            )
        except TechBlogError as exc:
            # Both listings or nothing
            log.warning("home_fetch_failed", code=exc.code.value)
            return self.rewrite()

        body = renderer.render_home_page(posts, categories, client, self._settings)
        return self._page(body, responses.HOME)

    # ------------------------------------------------------------------
    # About
    # ------------------------------------------------------------------

    def about(self, request: RenderRequest) -> PageResponse:
        """Same document for every client; no upstream data involved."""
        try:
            self._classify(request)
            return self._page(renderer.render_about_page(self._settings), responses.ABOUT)
        except Exception:
            log.error("about_dispatch_failed", path=request.path, exc_info=True)
            return self.rewrite()

    # ------------------------------------------------------------------
    # Category
    # ------------------------------------------------------------------

    async def category(self, request: RenderRequest, slug: str) -> PageResponse:
        try:
            if not is_valid_slug(slug):
                return self.rewrite()
            client = self._classify(request)
            page = request.page_number()
            key = cache_key("category", f"{slug}-page-{page}", client.variant)
            return await self._through_cache(
                key,
                self._settings.cache.category_ttl_seconds,
                lambda: self._render_category(slug, page, client),
            )
        except Exception:
            log.error("category_dispatch_failed", path=request.path, exc_info=True)
            return self.rewrite()

    async def _render_category(
        self, slug: str, page: int, client: ClientClassification
    ) -> PageResponse:
        try:
            listing = await self._state.api.get_category_listing(
                slug, page, full=client.is_ai_crawler
            )
        except TechBlogError as exc:
            log.warning("category_fetch_failed", slug=slug, code=exc.code.value)
            listing = CategoryListing.empty(slug, page)

        body = renderer.render_category_page(listing, client, self._settings, self._state.shell_html)
        return self._page(body, responses.CATEGORY, cacheable=not listing.fallback)

    # ------------------------------------------------------------------
    # Single post
    # ------------------------------------------------------------------

    async def post(self, request: RenderRequest, slug: str) -> PageResponse:
        """Crawler route for ``/post/{slug}``; humans get the app shell."""
        try:
            client = self._classify(request)
            if not client.is_crawler:
                return self.rewrite()
            if not is_valid_slug(slug):
                return self._page(
                    renderer.render_not_found_page(slug, self._settings),
                    responses.NOT_FOUND,
                    status_code=404,
                    cacheable=False,
                )
            key = cache_key("post", slug, client.post_variant)
            return await self._through_cache(
                key,
                self._settings.cache.post_ttl_seconds,
                lambda: self._render_post(slug, client),
            )
        except Exception:
            log.error("post_dispatch_failed", path=request.path, exc_info=True)
            return self.rewrite()

    async def _render_post(self, slug: str, client: ClientClassification) -> PageResponse:
        try:
            post = await self._state.api.get_post(slug, full=client.is_ai_crawler)
        except TechBlogError as exc:
            if exc.code == ErrorCode.NOT_FOUND:
                log.info("post_not_found", slug=slug)
                return self._page(
                    renderer.render_not_found_page(slug, self._settings),
                    responses.NOT_FOUND,
                    status_code=404,
                    cacheable=False,
                )
            log.warning("post_fetch_failed", slug=slug, code=exc.code.value)
            return self._fallback_meta(slug)

        profile = responses.POST_FULL if client.is_ai_crawler else responses.POST
        canonical = renderer.post_url(self._settings, slug)
        return self._page(
            renderer.render_bot_page(post, client, self._settings),
            profile,
            extra={"Link": f'<{canonical}>; rel="canonical"'},
        )

    def _fallback_meta(self, slug: str) -> PageResponse:
        return self._page(
            renderer.render_fallback_meta_page(slug, self._settings),
            responses.FALLBACK,
            cacheable=False,
        )

    async def post_meta(self, request: RenderRequest, slug: str) -> PageResponse:
        """Metadata-only document for link unfurlers. Always HTTP 200."""
        try:
            if not slug:
                return self._fallback_meta("")
            client = self._classify(request)
            variant = client.post_variant if client.is_crawler else "redirect"
            key = cache_key("meta", slug, variant)
            return await self._through_cache(
                key,
                self._settings.cache.post_ttl_seconds,
                lambda: self._render_post_meta(slug, client),
            )
        except Exception:
            log.error("post_meta_dispatch_failed", path=request.path, exc_info=True)
            return self._fallback_meta(slug)

    async def _render_post_meta(self, slug: str, client: ClientClassification) -> PageResponse:
        if not is_valid_slug(slug):
            return self._fallback_meta(slug)
        try:
            post = await self._state.api.get_post(slug, full=client.is_ai_crawler)
        except TechBlogError as exc:
            log.warning("post_meta_fetch_failed", slug=slug, code=exc.code.value)
            return self._fallback_meta(slug)
        body = renderer.render_bot_page(post, client, self._settings, redirect_humans=True)
        return self._page(body, responses.META)

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    async def rss(self, request: RenderRequest) -> PageResponse:
        try:
            return await self._through_cache(
                cache_key("feed", "rss", "latest"),
                self._settings.cache.feed_ttl_seconds,
                self._render_rss,
            )
        except Exception:
            log.error("rss_dispatch_failed", exc_info=True)
            return self._page(render_rss([], self._settings), responses.FEED, cacheable=False)

    async def _render_rss(self) -> PageResponse:
        try:
            posts = await self._state.api.get_latest_posts(
                self._settings.content.feed_limit,
                timeout_ms=self._settings.fetcher.feed_timeout_ms,
            )
        except TechBlogError as exc:
            log.warning("rss_fetch_failed", code=exc.code.value)
            return self._page(render_rss([], self._settings), responses.FEED, cacheable=False)
        return self._page(render_rss(posts, self._settings), responses.FEED)

    async def sitemap(self, request: RenderRequest) -> PageResponse:
        try:
            return await self._through_cache(
                cache_key("feed", "sitemap", "all"),
                self._settings.cache.feed_ttl_seconds,
                self._render_sitemap,
            )
        except Exception:
            log.error("sitemap_dispatch_failed", exc_info=True)
            return self._page(render_sitemap([], [], self._settings), responses.SITEMAP, cacheable=False)

    async def _render_sitemap(self) -> PageResponse:
        api = self._state.api
        try:
            posts, categories = await asyncio.gather(
                api.get_latest_posts(
                    self._settings.content.sitemap_limit,
                    timeout_ms=self._settings.fetcher.feed_timeout_ms,
                ),
                api.get_categories(),
            )
        except TechBlogError as exc:
            log.warning("sitemap_fetch_failed", code=exc.code.value)
            return self._page(
                render_sitemap([], [], self._settings), responses.SITEMAP, cacheable=False
            )
        return self._page(render_sitemap(posts, categories, self._settings), responses.SITEMAP)

    # ------------------------------------------------------------------
    # Backend JSON route
    # ------------------------------------------------------------------

    async def category_api(self, slug: str, full: bool) -> JsonResponse:
        """Lean category payload for edge consumers.

        Unlike the page routes, failures keep their real status codes. A 500
        still carries a synthesized category so callers can render something.
        """
        if not is_valid_slug(slug):
            return JsonResponse({"error": "Category not found"}, status_code=404)
        try:
            listing = await self._state.api.get_category_listing(slug, 1, full=full)
        except TechBlogError as exc:
            if exc.code == ErrorCode.NOT_FOUND:
                return JsonResponse({"error": "Category not found"}, status_code=404)
            log.error("category_api_failed", slug=slug, code=exc.code.value)
            return self._category_api_error(slug)
        except Exception:
            log.error("category_api_failed", slug=slug, exc_info=True)
            return self._category_api_error(slug)

        budget = self._settings.content.post_ai_excerpt_chars
        posts = []
        for post in listing.posts[: 20 if full else 6]:
            item = post.model_dump(exclude={"content"})
            if full and post.content:
                item["content"] = post.content[:budget]
            posts.append(item)
        return JsonResponse(
            {
                "category": listing.category.model_dump(),
                "posts": posts,
                "_meta": {
                    "fetched_at": datetime.now(UTC).isoformat(),
                    "post_count": len(posts),
                    "for_edge": True,
                },
            }
        )

    def _category_api_error(self, slug: str) -> JsonResponse:
        category = Category.synthesize(slug)
        return JsonResponse(
            {
                "error": "Internal server error",
                "category": category.model_dump(include={"name", "slug", "description"}),
                "posts": [],
            },
            status_code=500,
        )
