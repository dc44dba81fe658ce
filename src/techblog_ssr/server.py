"""HTTP surface and process entry point.

Startup sequence (lifespan):
  1. Open the SQLite cache (parent directories are created on demand)
  2. Build the shared httpx client and the Content API client
  3. Load the single-page app shell
  4. Start the periodic cache cleanup loop

Shutdown drains pending cache writes before closing the database.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from techblog_ssr import __version__
from techblog_ssr.cache import Cache
from techblog_ssr.config import Settings
from techblog_ssr.dispatcher import Dispatcher
from techblog_ssr.errors import ErrorCode, TechBlogError
from techblog_ssr.fetcher import ContentApiClient, build_http_client
from techblog_ssr.models.request import RenderRequest
from techblog_ssr.renderer import DEFAULT_SHELL
from techblog_ssr.state import AppState
from techblog_ssr.tasks import BackgroundTasks

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

    from techblog_ssr.responses import PageResponse

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    renderer: structlog.types.Processor
    if settings.logging.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.logging.level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Startup helpers
# ---------------------------------------------------------------------------


def load_shell(path: str) -> str:
    """Read the built app entry point, or fall back to a minimal shell.

    A shell without ``</head>`` and ``</body>`` cannot take injected markup
    and is rejected.
    """
    shell_file = Path(path)
    if not shell_file.is_file():
        log.warning("shell_missing", path=path)
        return DEFAULT_SHELL
    html = shell_file.read_text(encoding="utf-8")
    if "</head>" not in html or "</body>" not in html:
        raise TechBlogError(
            ErrorCode.INTERNAL_RENDER_ERROR,
            f"App shell at {path} has no </head> or </body> to inject into",
        )
    return html


async def _cleanup_loop(cache: Cache, interval_hours: int) -> None:
    while True:
        await asyncio.sleep(interval_hours * 3600)
        await cache.cleanup_expired()


@contextlib.asynccontextmanager
async def _open_state(settings: Settings) -> AsyncIterator[AppState]:
    db_path = Path(settings.cache.db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(db_path) as db:
        cache = Cache(db)
        await cache.init_db()
        async with build_http_client(settings.fetcher) as client:
            tasks = BackgroundTasks()
            state = AppState(
                settings=settings,
                cache=cache,
                api=ContentApiClient(client, settings, cache, tasks),
                tasks=tasks,
                shell_html=load_shell(settings.site.shell_path),
            )
            try:
                yield state
            finally:
                await tasks.drain()


# ---------------------------------------------------------------------------
# Route adapters
# ---------------------------------------------------------------------------


def _to_response(page: PageResponse) -> Response:
    headers = dict(page.headers)
    media_type = headers.pop("Content-Type", None)
    return Response(
        content=page.body,
        status_code=page.status_code,
        headers=headers,
        media_type=media_type,
    )


def _render_request(request: Request) -> RenderRequest:
    return RenderRequest(
        path=request.url.path,
        user_agent=request.headers.get("user-agent", ""),
        query_params=dict(request.query_params),
    )


def _dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


async def home(request: Request) -> Response:
    return _to_response(await _dispatcher(request).home(_render_request(request)))


async def about(request: Request) -> Response:
    return _to_response(_dispatcher(request).about(_render_request(request)))


async def category(request: Request) -> Response:
    slug = request.path_params["slug"]
    return _to_response(await _dispatcher(request).category(_render_request(request), slug))


async def post(request: Request) -> Response:
    slug = request.path_params["slug"]
    return _to_response(await _dispatcher(request).post(_render_request(request), slug))


async def post_meta(request: Request) -> Response:
    slug = request.path_params["slug"]
    return _to_response(await _dispatcher(request).post_meta(_render_request(request), slug))


async def rss(request: Request) -> Response:
    return _to_response(await _dispatcher(request).rss(_render_request(request)))


async def sitemap(request: Request) -> Response:
    return _to_response(await _dispatcher(request).sitemap(_render_request(request)))


async def category_api(request: Request) -> Response:
    slug = request.path_params["slug"]
    full = request.query_params.get("full", "").lower() == "true"
    result = await _dispatcher(request).category_api(slug, full)
    return JSONResponse(result.payload, status_code=result.status_code)


async def api_not_found(request: Request) -> Response:
    error = TechBlogError(ErrorCode.NOT_FOUND, f"No API route at {request.url.path}")
    return JSONResponse(error.to_dict(), status_code=404)


async def rewrite(request: Request) -> Response:
    return _to_response(_dispatcher(request).rewrite())


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None, state: AppState | None = None) -> Starlette:
    """Build the ASGI app.

    When ``state`` is given the lifespan does not open any resources; the
    caller owns them. Tests use this to inject in-memory collaborators.
    """
    settings = settings or (state.settings if state else Settings())

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        if state is not None:
            app.state.dispatcher = Dispatcher(state)
            yield
            return

        async with _open_state(settings) as opened:
            app.state.dispatcher = Dispatcher(opened)
            cleanup = asyncio.create_task(
                _cleanup_loop(opened.cache, settings.cache.cleanup_interval_hours),
                name="cache_cleanup",
            )
            log.info("server_started", version=__version__, origin=settings.site.origin)
            try:
                yield
            finally:
                cleanup.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await cleanup
                log.info("server_stopped")

    routes = [
        Route("/", home),
        Route("/about", about),
        Route("/about/", about),
        Route("/category/{slug}", category),
        Route("/category/{slug}/", category),
        Route("/post/{slug}", post),
        Route("/post/{slug}/", post),
        Route("/meta/post/{slug}", post_meta),
        Route("/meta/post/{slug}/", post_meta),
        Route("/rss.xml", rss),
        Route("/sitemap.xml", sitemap),
        Route("/api/edge/category/{slug}", category_api),
        Route("/api/{rest:path}", api_not_found),
        Route("/{rest:path}", rewrite),
    ]
    app = Starlette(routes=routes, lifespan=lifespan)
    if state is not None:
        # Usable without running the lifespan (e.g. plain ASGITransport)
        app.state.dispatcher = Dispatcher(state)
    return app


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
