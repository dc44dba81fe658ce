from __future__ import annotations

from techblog_ssr.models.cache import DataCacheEntry, PageCacheEntry
from techblog_ssr.models.content import Category, CategoryListing, Post
from techblog_ssr.models.request import ClientClassification, ClientKind, RenderRequest

__all__ = [
    # content
    "Post",
    "Category",
    "CategoryListing",
    # cache
    "PageCacheEntry",
    "DataCacheEntry",
    # request
    "ClientClassification",
    "ClientKind",
    "RenderRequest",
]
