"""Framework-neutral response values and per-route header profiles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

HTML = "text/html; charset=utf-8"
RSS = "application/rss+xml; charset=utf-8"
XML = "application/xml; charset=utf-8"

FULL_ROBOTS = "index, follow, max-snippet:-1, max-image-preview:large, max-video-preview:-1"
LISTING_ROBOTS = "index, follow, max-image-preview:large"


@dataclass(frozen=True)
class RouteProfile:
    """Everything that differs between routes apart from the rendering itself."""

    kind: str
    cache_control: str
    robots: str
    marker: str
    media_type: str = HTML
    csp: bool = True


HOME = RouteProfile(
    kind="home",
    cache_control="public, max-age=3600, s-maxage=7200",
    robots=LISTING_ROBOTS,
    marker="Edge-SSR-Universal",
)
CATEGORY = RouteProfile(
    kind="category",
    cache_control="public, max-age=1800, s-maxage=3600",
    robots=LISTING_ROBOTS,
    marker="Edge-SSR-Category",
)
POST = RouteProfile(
    kind="post",
    cache_control="public, max-age=3600, s-maxage=7200, stale-while-revalidate=86400",
    robots=FULL_ROBOTS,
    marker="Edge-SSR",
)
POST_FULL = RouteProfile(
    kind="post",
    cache_control=POST.cache_control,
    robots=FULL_ROBOTS,
    marker="Edge-SSR-Full",
)
META = RouteProfile(
    kind="meta",
    cache_control="public, max-age=3600",
    robots=FULL_ROBOTS,
    marker="Edge-Meta",
    csp=False,
)
NOT_FOUND = RouteProfile(
    kind="post",
    cache_control="public, max-age=300",
    robots="noindex, follow",
    marker="Edge-NotFound",
    csp=False,
)
FALLBACK = RouteProfile(
    kind="fallback",
    cache_control="no-cache",
    robots="noindex, follow",
    marker="Edge-Fallback",
    csp=False,
)
FEED = RouteProfile(
    kind="feed",
    cache_control="public, max-age=3600",
    robots="all",
    marker="Edge-RSS",
    media_type=RSS,
    csp=False,
)
SITEMAP = RouteProfile(
    kind="sitemap",
    cache_control="public, max-age=3600",
    robots="noindex",
    marker="Edge-Sitemap",
    media_type=XML,
    csp=False,
)
ABOUT = RouteProfile(
    kind="about",
    cache_control="public, max-age=86400, s-maxage=86400",
    robots=LISTING_ROBOTS,
    marker="Edge-SSR-About-Universal",
)
REWRITE = RouteProfile(
    kind="rewrite",
    cache_control="no-cache",
    robots="index, follow",
    marker="Edge-Rewrite",
    csp=False,
)


@dataclass
class PageResponse:
    body: str
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    # Fallback renders are never written to the page cache
    cacheable: bool = True

    @property
    def rendered_by(self) -> str | None:
        return self.headers.get("X-Rendered-By")


@dataclass
class JsonResponse:
    payload: dict[str, Any]
    status_code: int = 200


def build_headers(
    profile: RouteProfile,
    *,
    csp: str | None = None,
    extra: dict[str, str] | None = None,
) -> dict[str, str]:
    headers = {
        "Content-Type": profile.media_type,
        "Cache-Control": profile.cache_control,
        "X-Robots-Tag": profile.robots,
        "Vary": "User-Agent",
        "X-Rendered-By": profile.marker,
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }
    if csp is not None and profile.csp:
        headers["Content-Security-Policy"] = csp
    if extra:
        headers.update(extra)
    return headers
