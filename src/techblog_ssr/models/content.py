from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

_SLUG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def humanize_slug(slug: str) -> str:
    """``machine-learning`` -> ``Machine Learning``."""
    return " ".join(part.capitalize() for part in slug.replace("_", "-").split("-") if part)


def is_valid_slug(slug: str) -> bool:
    return bool(slug) and len(slug) <= 200 and _SLUG_RE.match(slug) is not None


class Post(BaseModel):
    """Read-only projection of a published post as returned by the Content API."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int | None = None
    title: str = ""
    slug: str
    excerpt: str | None = None
    content: str | None = None
    featured_image: str | None = None
    published_at: str | None = None
    updated_at: str | None = None
    author_name: str | None = None
    category_name: str | None = None
    category_slug: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    twitter_title: str | None = None
    twitter_description: str | None = None
    tags: list[str] = []

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: object) -> object:
        # The backend stores tags either as a JSON array or a comma-separated string
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v


class Category(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int | None = None
    name: str = ""
    slug: str
    description: str | None = None
    post_count: int = 0

    @classmethod
    def synthesize(cls, slug: str) -> Category:
        """Fallback category used when the Content API cannot describe ``slug``."""
        name = humanize_slug(slug)
        return cls(name=name, slug=slug, description=f"Latest {name} articles")


class CategoryListing(BaseModel):
    """One page of a category as served by ``/api/posts/category/:slug``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    category: Category
    posts: list[Post] = []
    total: int = 0
    current_page: int = Field(default=1, alias="currentPage")
    total_pages: int = Field(default=1, alias="totalPages")
    # True when the listing was synthesized because the Content API failed
    fallback: bool = False

    @classmethod
    def empty(cls, slug: str, page: int = 1) -> CategoryListing:
        return cls(
            category=Category.synthesize(slug),
            posts=[],
            total=0,
            current_page=page,
            total_pages=1,
            fallback=True,
        )
