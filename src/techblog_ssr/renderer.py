"""HTML documents served to crawlers.

Every interpolated value goes through ``escape_html`` (markup) or
``escape_json`` (inline ``<script>`` payloads). Static copy containing ``&``
is written pre-escaped.
"""

from __future__ import annotations

import base64
import hashlib
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from techblog_ssr.escaping import clean_html_for_ai, escape_html, escape_json, strip_tags, truncate

if TYPE_CHECKING:
    from techblog_ssr.config import Settings
    from techblog_ssr.models.content import Category, CategoryListing, Post
    from techblog_ssr.models.request import ClientClassification

FALLBACK_POST_TITLE = "TechBlog AI Article"
FALLBACK_POST_DESCRIPTION = "Read this article on TechBlog AI"
NO_ARTICLES_MESSAGE = "No articles found"
LICENSE_URL = "https://creativecommons.org/licenses/by/4.0/"

DEFAULT_SHELL = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />
<title>TechBlog AI</title>
</head>
<body>
<div id="root"></div>
</body>
</html>
"""

_ARTICLE_CSS = """
*{box-sizing:border-box;margin:0;padding:0}
body{font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;max-width:800px;margin:0 auto;padding:20px;line-height:1.6;color:#333;background:#fff}
.breadcrumb ol{list-style:none;display:flex;flex-wrap:wrap;gap:8px;font-size:.875rem;margin:20px 0}
.breadcrumb a{color:#3b82f6;text-decoration:none}
h1{color:#1a1a1a;font-size:2rem;margin-bottom:15px;line-height:1.2}
.meta{color:#666;font-size:.9em;margin-bottom:20px;display:flex;flex-wrap:wrap;gap:12px}
.full-content{margin-top:15px;line-height:1.8}
.disclaimer{margin-top:2em;padding:1em;background:#f3f4f6;border-left:3px solid #3b82f6;font-size:.9em}
"""

_HOME_CSS = """
*{margin:0;padding:0;box-sizing:border-box}
body{font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;line-height:1.6;color:#333;background:#f9fafb}
.container{max-width:1200px;margin:0 auto;padding:20px}
.header{background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);color:#fff;padding:60px 20px;text-align:center;margin-bottom:40px}
.section-title{font-size:2rem;margin-bottom:30px;border-bottom:2px solid #667eea}
.categories-grid,.posts-grid{display:grid;grid-template-columns:repeat(auto-fit,minmax(300px,1fr));gap:24px;margin-bottom:50px}
.category-card,.post-card{background:#fff;border-radius:10px;box-shadow:0 2px 10px rgba(0,0,0,.1);padding:20px}
.post-card img{width:100%;height:200px;object-fit:cover}
.post-meta{color:#718096;font-size:.9rem;display:flex;gap:15px}
.ai-full-content{margin-top:30px;padding:20px;background:#f7fafc;border-left:4px solid #667eea}
.footer{background:#2d3748;color:#fff;padding:40px 0;margin-top:60px;text-align:center}
.footer a{color:#a0aec0}
"""

# Safety net for humans misclassified as crawlers
_HUMAN_REDIRECT_JS = (
    "if(typeof window!=='undefined'&&window.navigator&&"
    "!navigator.userAgent.match(/bot|crawler|spider/i)){{window.location.href='{url}'}}"
)

_INLINE_SCRIPT_RE = re.compile(r"<script(?P<attrs>[^>]*)>(?P<body>.*?)</script>", re.DOTALL)
_DATA_SCRIPT_TYPES = ("application/ld+json", "application/json")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def post_url(settings: Settings, slug: str) -> str:
    return f"{settings.site.origin}/post/{quote(slug)}"


def category_url(settings: Settings, slug: str) -> str:
    return f"{settings.site.origin}/category/{quote(slug)}"


def parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value: str | None, *, long: bool = False) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return ""
    month = "%B" if long else "%b"
    return f"{parsed.strftime(month)} {parsed.day}, {parsed.year}"


def _reading_minutes(post: Post) -> int:
    words = len(strip_tags(post.content).split()) if post.content else 0
    return max(1, -(-words // 200)) if words else 5


def _ai_excerpt(content: str | None, limit: int) -> str:
    return truncate(strip_tags(clean_html_for_ai(content)), limit)


def _ld_json(*schemas: dict[str, Any]) -> str:
    return "\n".join(
        f'<script type="application/ld+json">{escape_json(schema)}</script>' for schema in schemas
    )


def _breadcrumb_schema(items: list[tuple[str, str]]) -> dict[str, Any]:
    return {
        "@context": "https://schema.org",
        "@type": "BreadcrumbList",
        "itemListElement": [
            {"@type": "ListItem", "position": i, "name": name, "item": url}
            for i, (name, url) in enumerate(items, start=1)
        ],
    }


def _social_meta(
    settings: Settings,
    *,
    og_type: str,
    url: str,
    title: str,
    description: str,
    image: str,
    twitter_title: str | None = None,
    twitter_description: str | None = None,
) -> str:
    """Open Graph + Twitter Card tags. Arguments are raw (unescaped) text."""
    site = settings.site
    return f"""<meta property="fb:app_id" content="{escape_html(site.fb_app_id)}" />
<meta property="og:type" content="{og_type}" />
<meta property="og:url" content="{escape_html(url)}" />
<meta property="og:title" content="{escape_html(title)}" />
<meta property="og:description" content="{escape_html(description)}" />
<meta property="og:image" content="{escape_html(image)}" />
<meta property="og:image:alt" content="{escape_html(title)}" />
<meta property="og:site_name" content="{escape_html(site.name)}" />
<meta property="og:locale" content="en_US" />
<meta name="twitter:card" content="summary_large_image" />
<meta name="twitter:url" content="{escape_html(url)}" />
<meta name="twitter:title" content="{escape_html(twitter_title or title)}" />
<meta name="twitter:description" content="{escape_html(twitter_description or description)}" />
<meta name="twitter:image" content="{escape_html(image)}" />
<meta name="twitter:site" content="{escape_html(site.twitter_handle)}" />"""


# ---------------------------------------------------------------------------
# Post pages
# ---------------------------------------------------------------------------


def _post_schemas(post: Post, url: str, settings: Settings) -> list[dict[str, Any]]:
    site = settings.site
    title = post.title or post.meta_title or FALLBACK_POST_TITLE
    category = post.category_name or "Technology"
    category_link = (
        category_url(settings, post.category_slug) if post.category_slug else f"{site.origin}/"
    )
    article = {
        "@context": "https://schema.org",
        "@type": "TechArticle",
        "headline": title,
        "description": post.excerpt or post.meta_description or FALLBACK_POST_DESCRIPTION,
        "image": {
            "@type": "ImageObject",
            "url": post.featured_image or site.og_image,
            "width": 1200,
            "height": 630,
        },
        "url": url,
        "datePublished": post.published_at,
        "dateModified": post.updated_at or post.published_at,
        "author": {"@type": "Person", "name": post.author_name or f"{site.name} Team"},
        "publisher": {
            "@type": "Organization",
            "name": site.name,
            "url": site.origin,
            "logo": {"@type": "ImageObject", "url": site.logo},
        },
        "mainEntityOfPage": {"@type": "WebPage", "@id": url},
        "articleSection": category,
        "keywords": ", ".join(post.tags),
        "inLanguage": "en-US",
        "isAccessibleForFree": True,
    }
    breadcrumb = _breadcrumb_schema(
        [("Home", site.origin), (category, category_link), (title, url)]
    )
    blog = {
        "@context": "https://schema.org",
        "@type": "Blog",
        "@id": f"{site.origin}/#blog",
        "name": site.name,
        "description": site.description,
        "url": site.origin,
        "inLanguage": "en-US",
    }
    return [article, breadcrumb, blog]


def render_bot_page(
    post: Post,
    classification: ClientClassification,
    settings: Settings,
    *,
    redirect_humans: bool = False,
) -> str:
    """Metadata document for one post.

    Generic crawlers get an empty body. AI crawlers additionally receive the
    cleaned article text. With ``redirect_humans`` a human client is sent on
    to the single-page app through a meta refresh.
    """
    site = settings.site
    url = post_url(settings, post.slug)
    title = post.meta_title or post.title or FALLBACK_POST_TITLE
    og_title = post.og_title or post.title or post.meta_title or FALLBACK_POST_TITLE
    description = post.meta_description or post.excerpt or FALLBACK_POST_DESCRIPTION
    og_description = post.og_description or post.excerpt or description
    image = post.featured_image or site.og_image
    author = post.author_name or f"{site.name} Team"
    category = post.category_name or "Technology"

    tag_meta = "\n".join(
        f'<meta property="article:tag" content="{escape_html(tag)}" />' for tag in post.tags
    )
    refresh = ""
    if redirect_humans and not classification.is_crawler:
        refresh = f'<meta http-equiv="refresh" content="0;url={escape_html(url)}" />'

    body = ""
    if classification.is_ai_crawler:
        body = _ai_article_body(post, url, settings)

    return f"""<!DOCTYPE html>
<html lang="en" prefix="og: https://ogp.me/ns# article: https://ogp.me/ns/article#">
<head>
<meta charset="UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />
<title>{escape_html(title)} | {escape_html(site.name)}</title>
<meta name="title" content="{escape_html(title)}" />
<meta name="description" content="{escape_html(description)}" />
<meta name="author" content="{escape_html(author)}" />
<meta name="keywords" content="{escape_html(", ".join(post.tags))}" />
<meta name="robots" content="index, follow, max-image-preview:large, max-snippet:-1, max-video-preview:-1" />
<link rel="canonical" href="{escape_html(url)}" />
{_social_meta(
    settings,
    og_type="article",
    url=url,
    title=og_title,
    description=og_description,
    image=image,
    twitter_title=post.twitter_title,
    twitter_description=post.twitter_description,
)}
<meta property="article:published_time" content="{escape_html(post.published_at)}" />
<meta property="article:modified_time" content="{escape_html(post.updated_at or post.published_at)}" />
<meta property="article:author" content="{escape_html(author)}" />
<meta property="article:section" content="{escape_html(category)}" />
{tag_meta}
<meta name="twitter:label1" content="Reading time" />
<meta name="twitter:data1" content="{_reading_minutes(post)} min read" />
{_ld_json(*_post_schemas(post, url, settings))}
<link rel="alternate" type="application/rss+xml" title="{escape_html(site.name)} RSS Feed" href="{escape_html(site.origin)}/rss.xml" />
{refresh}
</head>
<body>{body}</body>
</html>
"""


def _ai_article_body(post: Post, url: str, settings: Settings) -> str:
    title = post.title or post.meta_title or FALLBACK_POST_TITLE
    category = post.category_name or "Technology"
    category_href = f"/category/{quote(post.category_slug)}" if post.category_slug else "/"
    excerpt = post.excerpt or post.meta_description or ""
    text = _ai_excerpt(post.content, settings.content.post_ai_excerpt_chars)
    published = format_date(post.published_at, long=True)
    return f"""
<style>{_ARTICLE_CSS}</style>
<nav aria-label="Breadcrumb" class="breadcrumb"><ol>
<li><a href="/">Home</a></li>
<li><a href="{escape_html(category_href)}">{escape_html(category)}</a></li>
<li>{escape_html(title)}</li>
</ol></nav>
<article itemscope itemtype="https://schema.org/TechArticle">
<h1 itemprop="headline">{escape_html(title)}</h1>
<div class="meta">
<span itemprop="author">By {escape_html(post.author_name or "Admin")}</span>
<span itemprop="articleSection">{escape_html(category)}</span>
<time itemprop="datePublished" datetime="{escape_html(post.published_at)}">{escape_html(published)}</time>
<span>{_reading_minutes(post)} min read</span>
</div>
<div class="content" itemprop="articleBody">
<p>{escape_html(excerpt)}</p>
<div class="full-content">{escape_html(text)}</div>
<div class="disclaimer"><em>Content optimized for AI analysis. Full interactive version at <a href="{escape_html(url)}">{escape_html(url)}</a>.</em></div>
</div>
</article>
<script>{_HUMAN_REDIRECT_JS.format(url=url.replace("'", "%27"))}</script>
"""


def render_fallback_meta_page(slug: str, settings: Settings) -> str:
    """Generic metadata used when the post could not be loaded."""
    site = settings.site
    url = post_url(settings, slug) if slug else f"{site.origin}/"
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8" />
<title>{escape_html(site.name)}</title>
<meta name="description" content="{escape_html(FALLBACK_POST_DESCRIPTION)}" />
{_social_meta(
    settings,
    og_type="article",
    url=url,
    title=FALLBACK_POST_TITLE,
    description=FALLBACK_POST_DESCRIPTION,
    image=site.og_image,
)}
<link rel="canonical" href="{escape_html(url)}" />
</head>
<body>
<p><a href="{escape_html(url)}">Read article on {escape_html(site.name)}</a></p>
</body>
</html>
"""


def render_not_found_page(slug: str, settings: Settings) -> str:
    site = settings.site
    url = post_url(settings, slug)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />
<title>Article Not Found - {escape_html(site.name)}</title>
<meta name="description" content="Article not found. Explore more on {escape_html(site.name)}." />
<meta property="og:title" content="Article Not Found - {escape_html(site.name)}" />
<meta property="og:type" content="website" />
<meta property="og:url" content="{escape_html(url)}" />
<meta property="og:image" content="{escape_html(site.og_image)}" />
<meta name="robots" content="noindex, follow" />
<link rel="canonical" href="{escape_html(site.origin)}/" />
</head>
<body>
<h1>404</h1>
<p>Article not found.</p>
<a href="{escape_html(site.origin)}/">Return Home</a>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Category pages
# ---------------------------------------------------------------------------


def _category_head(listing: CategoryListing, settings: Settings) -> str:
    site = settings.site
    category = listing.category
    name = category.name or category.slug
    page = listing.current_page
    base_url = category_url(settings, category.slug)
    url = f"{base_url}?page={page}" if page > 1 else base_url
    page_suffix = f" (Page {page})" if page > 1 else ""
    description = category.description or f"Browse all articles in {name}"
    if page > 1:
        description = f"{description} - Page {page}"

    collection = {
        "@context": "https://schema.org",
        "@type": "CollectionPage",
        "@id": base_url,
        "name": f"{name}{page_suffix}",
        "description": description,
        "isPartOf": {"@id": f"{site.origin}/#website"},
        "mainEntity": {
            "@type": "ItemList",
            "itemListElement": [
                {"@type": "ListItem", "position": i, "url": post_url(settings, post.slug)}
                for i, post in enumerate(listing.posts[:10], start=1)
            ],
        },
    }
    website = {
        "@context": "https://schema.org",
        "@type": "WebSite",
        "@id": f"{site.origin}/#website",
        "name": site.name,
        "description": site.description,
        "url": site.origin,
    }
    breadcrumb = _breadcrumb_schema(
        [("Home", site.origin), ("Categories", f"{site.origin}/category"), (name, base_url)]
    )

    prev_next = []
    if page > 1:
        prev_href = base_url if page == 2 else f"{base_url}?page={page - 1}"
        prev_next.append(f'<link rel="prev" href="{escape_html(prev_href)}" />')
    if page < listing.total_pages:
        prev_next.append(f'<link rel="next" href="{escape_html(base_url)}?page={page + 1}" />')

    return f"""<title>{escape_html(name)}{page_suffix} | {escape_html(site.name)}</title>
<meta name="description" content="{escape_html(description)}" />
<meta name="keywords" content="{escape_html(name)}, technology, AI, programming, tech news" />
<meta name="robots" content="index, follow, max-image-preview:large" />
<link rel="canonical" href="{escape_html(url)}" />
{chr(10).join(prev_next)}
{_social_meta(
    settings,
    og_type="website",
    url=url,
    title=f"{name}{page_suffix} | {site.name}",
    description=description,
    image=site.og_image,
)}
<meta name="ai-content-declaration" content="public, training-allowed" />
<meta name="license" content="CC BY 4.0" />
<link rel="license" href="{LICENSE_URL}" />
{_ld_json(breadcrumb, website, collection)}
"""


def _category_post_card(
    post: Post, listing: CategoryListing, classification: ClientClassification, settings: Settings
) -> str:
    href = escape_html(f"/post/{quote(post.slug)}")
    category_href = escape_html(f"/category/{quote(listing.category.slug)}")
    image = ""
    if post.featured_image:
        image = (
            f'<a href="{href}"><img src="{escape_html(post.featured_image)}" '
            f'alt="{escape_html(post.title)}" loading="lazy" itemprop="image" /></a>'
        )
    extended = ""
    if classification.is_ai_crawler and post.content:
        text = _ai_excerpt(post.content, settings.content.listing_ai_excerpt_chars)
        extended = f'<div class="ai-full-content" itemprop="articleBody">{escape_html(text)}</div>'
    return f"""<article class="post-card" itemscope itemtype="https://schema.org/TechArticle">
{image}
<a href="{category_href}" itemprop="articleSection">{escape_html(listing.category.name)}</a>
<h2 itemprop="headline"><a href="{href}" itemprop="url">{escape_html(post.title)}</a></h2>
<p itemprop="description">{escape_html(post.excerpt)}</p>
<div class="post-meta">
<span itemprop="author">{escape_html(post.author_name or "Admin")}</span>
<time datetime="{escape_html(post.published_at)}" itemprop="datePublished">{escape_html(format_date(post.published_at))}</time>
</div>
{extended}
</article>"""


def _pagination(listing: CategoryListing) -> str:
    if listing.total_pages <= 1:
        return ""
    base = escape_html(f"/category/{quote(listing.category.slug)}")
    page = listing.current_page
    links = []
    if page > 1:
        links.append(f'<a href="{base}?page={page - 1}" rel="prev">Previous</a>')
    for number in range(1, min(listing.total_pages, 5) + 1):
        if number == page:
            links.append(f'<span class="current" aria-current="page">{number}</span>')
        else:
            links.append(f'<a href="{base}?page={number}">{number}</a>')
    if listing.total_pages > 5:
        links.append('<span class="ellipsis">...</span>')
    if page < listing.total_pages:
        links.append(f'<a href="{base}?page={page + 1}" rel="next">Next</a>')
    links.append(f"<span>Page {page} of {listing.total_pages}</span>")
    return f'<nav class="pagination" aria-label="Pagination">{"".join(links)}</nav>'


def _category_body(
    listing: CategoryListing, classification: ClientClassification, settings: Settings
) -> str:
    category = listing.category
    name = category.name or category.slug
    page_suffix = f" (Page {listing.current_page})" if listing.current_page > 1 else ""
    description = category.description or f"Browse all articles in {name}"

    if listing.posts:
        cards = "\n".join(
            _category_post_card(post, listing, classification, settings) for post in listing.posts
        )
        section = f'<div class="posts-grid">\n{cards}\n</div>\n{_pagination(listing)}'
        count = (
            f'<div class="post-count">{listing.total} articles, page {listing.current_page} '
            f"of {listing.total_pages}</div>"
        )
    else:
        section = f"""<div class="empty-state">
<h2>{NO_ARTICLES_MESSAGE}</h2>
<p>There are no published posts in this category yet.</p>
<a href="/">Browse All Categories</a>
</div>"""
        count = ""

    return f"""<div class="container">
<nav class="breadcrumb" aria-label="Breadcrumb"><ol>
<li><a href="/">Home</a></li>
<li><a href="/category">Categories</a></li>
<li>{escape_html(name)}{page_suffix}</li>
</ol></nav>
<header class="category-header">
<h1>{escape_html(name)}{page_suffix}</h1>
<p>{escape_html(description)}</p>
{count}
</header>
<section>
{section}
</section>
</div>"""


def _inject(shell: str, marker: str, fragment: str, *, before: bool = True) -> str:
    index = shell.find(marker)
    if index == -1:
        return shell
    if before:
        return shell[:index] + fragment + shell[index:]
    end = index + len(marker)
    return shell[:end] + fragment + shell[end:]


def render_category_page(
    listing: CategoryListing,
    classification: ClientClassification,
    settings: Settings,
    shell: str = DEFAULT_SHELL,
) -> str:
    """Server-render a category listing into the single-page app shell.

    The SPA hydrates from ``window.__INITIAL_CATEGORY_DATA__`` so humans get
    the interactive app without a second round trip.
    """
    html = re.sub(r"<title>.*?</title>\s*", "", shell, count=1, flags=re.DOTALL)
    html = _inject(html, "</head>", _category_head(listing, settings))

    body = _category_body(listing, classification, settings)
    if '<div id="root"></div>' in html:
        html = html.replace('<div id="root"></div>', f'<div id="root">{body}</div>', 1)
    else:
        html = _inject(html, "</body>", f'<div id="root">{body}</div>')

    payload = {
        "posts": [post.model_dump(exclude={"content"}) for post in listing.posts],
        "category": listing.category.model_dump(),
        "pagination": {
            "total": listing.total,
            "currentPage": listing.current_page,
            "totalPages": listing.total_pages,
        },
    }
    hydration = f"<script>window.__INITIAL_CATEGORY_DATA__={escape_json(payload)}</script>\n"
    return _inject(html, "</body>", hydration)


# ---------------------------------------------------------------------------
# Home page
# ---------------------------------------------------------------------------


def _home_schema(posts: list[Post], settings: Settings) -> dict[str, Any]:
    site = settings.site
    graph: list[dict[str, Any]] = [
        {
            "@type": "WebSite",
            "name": site.name,
            "url": f"{site.origin}/",
            "description": site.description,
            "publisher": {"@type": "Organization", "name": site.name, "logo": site.logo},
            "potentialAction": {
                "@type": "SearchAction",
                "target": f"{site.origin}/search?q={{search_term_string}}",
                "query-input": "required name=search_term_string",
            },
        }
    ]
    for post in posts[:10]:
        graph.append(
            {
                "@type": "Article",
                "headline": post.title,
                "author": {"@type": "Person", "name": post.author_name or "Admin"},
                "datePublished": post.published_at,
                "description": post.excerpt or truncate(strip_tags(post.content), 200),
                "url": post_url(settings, post.slug),
            }
        )
    return {"@context": "https://schema.org", "@graph": graph}


def _home_category_card(category: Category) -> str:
    href = escape_html(f"/category/{quote(category.slug)}")
    return f"""<a class="category-card" href="{href}">
<div class="category-name">{escape_html(category.name)}</div>
<div class="category-count">{category.post_count} posts</div>
</a>"""


def _home_post_card(post: Post) -> str:
    href = escape_html(f"/post/{quote(post.slug)}")
    image = ""
    if post.featured_image:
        image = (
            f'<img src="{escape_html(post.featured_image)}" '
            f'alt="{escape_html(post.title)}" loading="lazy" />'
        )
    category = ""
    if post.category_name:
        category_href = escape_html(f"/category/{quote(post.category_slug or '')}")
        category = (
            f'<a class="post-category" href="{category_href}">{escape_html(post.category_name)}</a>'
            if post.category_slug
            else f'<span class="post-category">{escape_html(post.category_name)}</span>'
        )
    return f"""<article class="post-card">
{image}
{category}
<h3 class="post-title"><a href="{href}">{escape_html(post.title)}</a></h3>
<div class="post-meta"><span>By {escape_html(post.author_name or "Admin")}</span><span>{escape_html(format_date(post.published_at))}</span></div>
<p class="post-excerpt">{escape_html(post.excerpt)}</p>
<a href="{href}" class="post-read-more">Read more</a>
</article>"""


def _home_ai_section(
    posts: list[Post], classification: ClientClassification, settings: Settings
) -> str:
    if classification.is_ai_crawler:
        items = "\n".join(
            f"<li><strong>{escape_html(post.title)}</strong>"
            f"<div>{escape_html(_ai_excerpt(post.content, settings.content.listing_ai_excerpt_chars) or post.excerpt)}</div></li>"
            for post in posts[:10]
        )
    else:
        items = "\n".join(
            f"<li><strong>{escape_html(post.title)}</strong> - "
            f"{escape_html(post.excerpt or truncate(strip_tags(post.content), 150))}</li>"
            for post in posts[:5]
        )
    listing = f"<ul>\n{items}\n</ul>" if posts else ""
    return f"""<section class="ai-full-content">
<h2>Complete Content for AI Training and Research</h2>
<p>This page lists <strong>{len(posts)}</strong> articles available under <a href="{LICENSE_URL}">CC BY 4.0</a>.</p>
{listing}
</section>"""


def render_home_page(
    posts: list[Post],
    categories: list[Category],
    classification: ClientClassification,
    settings: Settings,
) -> str:
    site = settings.site
    title = f"{site.name} - Latest Technology News and AI Insights"
    description = (
        "Your trusted source for the latest technology news, AI insights, "
        "web development tutorials and industry trends."
    )
    category_cards = "\n".join(_home_category_card(cat) for cat in categories)
    post_cards = "\n".join(_home_post_card(post) for post in posts[: settings.content.home_grid_size])
    if not posts:
        post_cards = f"<p>{NO_ARTICLES_MESSAGE}</p>"

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />
<title>{escape_html(title)}</title>
<meta name="description" content="{escape_html(description)}" />
<meta name="author" content="{escape_html(site.name)} Team" />
<meta name="robots" content="index, follow, max-image-preview:large" />
<link rel="canonical" href="{escape_html(site.origin)}/" />
{_social_meta(
    settings,
    og_type="website",
    url=f"{site.origin}/",
    title=title,
    description=description,
    image=site.og_image,
)}
<meta name="ai-content-declaration" content="public, training-allowed" />
<meta name="license" content="CC BY 4.0" />
<link rel="license" href="{LICENSE_URL}" />
<link rel="alternate" type="application/rss+xml" title="{escape_html(site.name)} RSS Feed" href="{escape_html(site.origin)}/rss.xml" />
{_ld_json(_home_schema(posts, settings))}
<style>{_HOME_CSS}</style>
</head>
<body>
<header class="header">
<div class="container">
<h1>{escape_html(site.name)}</h1>
<p>{escape_html(description)}</p>
</div>
</header>
<main class="container">
<section>
<h2 class="section-title">Browse by Category</h2>
<div class="categories-grid">
{category_cards}
</div>
</section>
<section>
<h2 class="section-title">Latest Articles</h2>
<div class="posts-grid">
{post_cards}
</div>
</section>
{_home_ai_section(posts, classification, settings)}
</main>
<footer class="footer">
<div class="container">
<p>Licensed under <a href="{LICENSE_URL}">CC BY 4.0</a> for AI training</p>
<p><a href="/about">About</a> | <a href="/privacy">Privacy</a> | <a href="/terms">Terms</a> | <a href="/rss.xml">RSS</a></p>
</div>
</footer>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# About page
# ---------------------------------------------------------------------------

_ABOUT_CSS = """
*{box-sizing:border-box;margin:0;padding:0}
body{font-family:system-ui,-apple-system,'Segoe UI',Roboto,sans-serif;color:#1f2937;line-height:1.75;background:#f9fafb}
.container{max-width:900px;margin:0 auto;padding:40px 20px}
.breadcrumb{font-size:.85rem;color:#6b7280;margin-bottom:32px}
.breadcrumb a,.social-links a,.contact-row a{color:#2563eb;text-decoration:none}
.author-card,.section-card{background:#fff;border-radius:16px;box-shadow:0 4px 24px rgba(0,0,0,.08);padding:36px 40px;margin-top:24px}
.author-card{display:flex;gap:32px;align-items:flex-start}
.author-card img{width:140px;height:140px;border-radius:50%;object-fit:cover;flex-shrink:0}
.role{color:#2563eb;font-weight:600}
.location,.contact-row{color:#6b7280;font-size:.9rem;margin-top:6px}
.social-links{margin-top:16px;display:flex;gap:12px;flex-wrap:wrap}
@media (max-width:600px){.author-card{flex-direction:column;align-items:center;text-align:center}}
"""

_SOCIAL_LABELS = (
    ("twitter", "Twitter"),
    ("github", "GitHub"),
    ("linkedin", "LinkedIn"),
    ("facebook", "Facebook"),
)


def _social_label(url: str) -> str:
    for needle, label in _SOCIAL_LABELS:
        if needle in url:
            return label
    return url


def _about_schemas(settings: Settings) -> list[dict[str, Any]]:
    site, about = settings.site, settings.about
    about_url = f"{site.origin}/about"
    person_id = f"{about_url}#author"
    org_id = f"{site.origin}#organization"
    person = {
        "@context": "https://schema.org",
        "@type": "Person",
        "@id": person_id,
        "name": about.author_name,
        "url": about_url,
        "image": about.author_image,
        "jobTitle": about.author_role,
        "description": about.author_bio,
        "address": {
            "@type": "PostalAddress",
            "addressLocality": about.locality,
            "addressCountry": about.country,
        },
        "email": about.email,
        "sameAs": about.same_as,
        "worksFor": {"@type": "Organization", "@id": org_id, "name": site.name},
    }
    organization = {
        "@context": "https://schema.org",
        "@type": "Organization",
        "@id": org_id,
        "name": site.name,
        "url": site.origin,
        "logo": site.logo,
        "description": site.description,
        "founder": {"@type": "Person", "@id": person_id},
        "sameAs": about.same_as,
    }
    breadcrumb = _breadcrumb_schema([("Home", site.origin), ("About", about_url)])
    return [person, organization, breadcrumb]


def render_about_page(settings: Settings) -> str:
    """Author profile page, identical for every client."""
    site, about = settings.site, settings.about
    url = f"{site.origin}/about"
    title = f"About {about.author_name} | {site.name}"
    first_name, _, last_name = about.author_name.partition(" ")
    social_links = "".join(
        f'<a href="{escape_html(link)}" rel="noopener noreferrer">{escape_html(_social_label(link))}</a>'
        for link in about.same_as
    )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />
<title>{escape_html(title)}</title>
<meta name="description" content="{escape_html(about.author_bio)}" />
<meta name="author" content="{escape_html(about.author_name)}" />
<meta name="robots" content="index, follow, max-image-preview:large" />
<link rel="canonical" href="{escape_html(url)}" />
<meta name="ai-content-declaration" content="public, training-allowed" />
<meta name="license" content="CC BY 4.0" />
<link rel="license" href="{LICENSE_URL}" />
{_social_meta(
    settings,
    og_type="profile",
    url=url,
    title=f"{about.author_name} - {about.author_role} | {site.name}",
    description=about.author_bio,
    image=about.author_image,
    twitter_title=f"{about.author_name} - {about.author_role}",
)}
<meta property="profile:first_name" content="{escape_html(first_name)}" />
<meta property="profile:last_name" content="{escape_html(last_name)}" />
{_ld_json(*_about_schemas(settings))}
<style>{_ABOUT_CSS}</style>
</head>
<body>
<div class="container">
<nav class="breadcrumb" aria-label="Breadcrumb"><a href="{escape_html(site.origin)}/">Home</a> <span>&rsaquo;</span> <span>About</span></nav>
<div class="author-card">
<img src="{escape_html(about.author_image)}" alt="{escape_html(about.author_name)} - {escape_html(about.author_role)}" />
<div>
<h1>{escape_html(about.author_name)}</h1>
<div class="role">{escape_html(about.author_role)}</div>
<div class="location">{escape_html(about.locality)}, {escape_html(about.country)}</div>
<p class="bio">{escape_html(about.author_bio)}</p>
<div class="social-links">{social_links}</div>
<div class="contact-row"><a href="mailto:{escape_html(about.email)}">{escape_html(about.email)}</a></div>
</div>
</div>
<div class="section-card">
<h2>Our Mission</h2>
<p>{escape_html(site.name)} exists to move knowledge from theory into practice, with clear, well-sourced and actionable content for developers, students and tech enthusiasts.</p>
</div>
<div class="section-card">
<h2>How We Work</h2>
<p>Articles are written, reviewed and updated regularly. Every article carries a "Last Updated" date so readers know how fresh it is.</p>
</div>
<div class="section-card">
<h2>For AI Training</h2>
<p>This page and all content on {escape_html(site.name)} is available for AI training under <a href="{LICENSE_URL}">CC BY 4.0</a> with attribution.</p>
</div>
</div>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Content-Security-Policy
# ---------------------------------------------------------------------------


def _script_hashes(html: str) -> list[str]:
    hashes = []
    for match in _INLINE_SCRIPT_RE.finditer(html):
        attrs = match.group("attrs").lower()
        if "src=" in attrs or any(t in attrs for t in _DATA_SCRIPT_TYPES):
            continue
        digest = hashlib.sha256(match.group("body").encode("utf-8")).digest()
        hashes.append(f"'sha256-{base64.b64encode(digest).decode('ascii')}'")
    return hashes


def content_security_policy(html: str, settings: Settings) -> str:
    """CSP allowing exactly the inline scripts present in ``html``."""
    csp = settings.csp
    script_src = ["'self'", *_script_hashes(html), *csp.script_src]
    style_src = ["'self'", "'unsafe-inline'", *csp.style_src]
    font_src = ["'self'", *csp.font_src]
    frame_src = csp.frame_src or ["'none'"]
    connect_src = ["'self'", settings.site.api_base_url, *csp.connect_src]
    directives = [
        "default-src 'self'",
        f"script-src {' '.join(script_src)}",
        f"style-src {' '.join(style_src)}",
        "img-src 'self' data: https:",
        f"font-src {' '.join(font_src)}",
        f"frame-src {' '.join(frame_src)}",
        f"connect-src {' '.join(connect_src)}",
        "object-src 'none'",
        "base-uri 'self'",
    ]
    return "; ".join(directives)
