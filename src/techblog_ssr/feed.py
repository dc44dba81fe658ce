"""RSS 2.0 feed and XML sitemap."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import format_datetime
from typing import TYPE_CHECKING

from techblog_ssr.escaping import escape_xml
from techblog_ssr.renderer import category_url, parse_date, post_url

if TYPE_CHECKING:
    from techblog_ssr.config import Settings
    from techblog_ssr.models.content import Category, Post


def rfc1123(value: str | None, default: datetime | None = None) -> str:
    """Format an ISO timestamp as an RFC 1123 date (``Mon, 01 Jan 2024 00:00:00 GMT``)."""
    parsed = parse_date(value) or default or datetime.now(UTC)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return format_datetime(parsed.astimezone(UTC), usegmt=True)


def render_rss(posts: list[Post], settings: Settings, *, now: datetime | None = None) -> str:
    site = settings.site
    now = now or datetime.now(UTC)
    if posts:
        latest = posts[0]
        last_build = rfc1123(latest.updated_at or latest.published_at, now)
    else:
        last_build = rfc1123(None, now)

    items: list[str] = []
    for post in posts:
        link = post_url(settings, post.slug)
        lines = [
            "  <item>",
            f"    <title>{escape_xml(post.title)}</title>",
            f"    <link>{escape_xml(link)}</link>",
            f'    <guid isPermaLink="true">{escape_xml(link)}</guid>',
            f"    <pubDate>{rfc1123(post.published_at or post.updated_at, now)}</pubDate>",
            f"    <description>{escape_xml(post.excerpt or f'Read the full article on {site.name}.')}</description>",
        ]
        if post.category_name:
            lines.append(f"    <category>{escape_xml(post.category_name)}</category>")
        lines.append("  </item>")
        items.append("\n".join(lines))

    items_blob = "\n".join(items)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
<channel>
  <title>{escape_xml(site.name)}</title>
  <link>{escape_xml(site.origin)}</link>
  <description>{escape_xml(site.description)}</description>
  <language>en-US</language>
  <atom:link href="{escape_xml(site.origin)}/rss.xml" rel="self" type="application/rss+xml" />
  <lastBuildDate>{last_build}</lastBuildDate>
  <ttl>60</ttl>
{items_blob}
</channel>
</rss>
"""


def render_sitemap(posts: list[Post], categories: list[Category], settings: Settings) -> str:
    rows: list[tuple[str, str, str]] = [(f"{settings.site.origin}/", "daily", "1.0")]
    for category in categories:
        rows.append((category_url(settings, category.slug), "daily", "0.8"))
    for post in posts:
        rows.append((post_url(settings, post.slug), "weekly", "0.6"))

    lastmod = {post_url(settings, p.slug): (p.updated_at or p.published_at or "")[:10] for p in posts}
    entries = "\n".join(
        "  <url>"
        f"<loc>{escape_xml(url)}</loc>"
        + (f"<lastmod>{escape_xml(lastmod[url])}</lastmod>" if lastmod.get(url) else "")
        + f"<changefreq>{freq}</changefreq><priority>{priority}</priority></url>"
        for url, freq, priority in rows
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
{entries}
</urlset>
"""
