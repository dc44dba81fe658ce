"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (TECHBLOG__SITE__ORIGIN=https://example.com)
  2. techblog.yaml          (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_APP_NAME = "techblog-ssr"
_DEFAULT_DATA_DIR = platformdirs.user_data_dir(_APP_NAME)
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first techblog.yaml found, or None."""
    candidates = [
        Path("techblog.yaml"),
        Path(platformdirs.user_config_dir(_APP_NAME)) / "techblog.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class SiteSettings(_Section):
    origin: str = "https://aitechblogs.netlify.app"
    name: str = "TechBlog AI"
    description: str = "AI and technology insights"
    api_base_url: str = "https://techblogai-backend.onrender.com"
    og_image: str = "https://aitechblogs.netlify.app/og-image.png"
    logo: str = "https://aitechblogs.netlify.app/blog-icon.svg"
    twitter_handle: str = "@AiTechBlogs"
    fb_app_id: str = "1829393364607774"
    # Built SPA entry point; a minimal shell is used when the file is missing
    shell_path: str = "dist/index.html"

    @field_validator("origin", "api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("must use http or https scheme")
        return v


class AboutSettings(_Section):
    author_name: str = "Alexander Zachary"
    author_role: str = "Senior AI & Full-Stack Developer"
    author_bio: str = (
        "Computer Science graduate with over 5 years of professional experience in "
        "full-stack development and artificial intelligence. Founder of TechBlog AI, "
        "combining technical expertise with pedagogical clarity to create practical, "
        "accessible learning resources."
    )
    author_image: str = "https://aitechblogs.netlify.app/author-avatar.jpg"
    locality: str = "Nairobi"
    country: str = "Kenya"
    email: str = "contact@techblogai.com"
    same_as: list[str] = [
        "https://twitter.com/AiTechBlogs",
        "https://facebook.com/alexander.thuranira.1044",
        "https://github.com/Thuranira287",
        "https://linkedin.com/in/alexander-zachary-287b621b4/",
    ]


class ServerSettings(_Section):
    host: str = "0.0.0.0"
    port: int = 8080


class FetcherSettings(_Section):
    user_agent: str = "TechBlogAI-Edge/1.0"
    post_timeout_ms: int = 5000
    category_timeout_ms: int = 5000
    home_timeout_ms: int = 5000
    categories_timeout_ms: int = 3000
    feed_timeout_ms: int = 8000


class CacheSettings(_Section):
    db_path: str = _DEFAULT_DB_PATH
    home_ttl_seconds: int = 3600
    category_ttl_seconds: int = 1800
    post_ttl_seconds: int = 3600
    feed_ttl_seconds: int = 3600
    data_ttl_seconds: int = 300
    cleanup_interval_hours: int = 6


class ContentSettings(_Section):
    home_post_limit: int = 50
    home_grid_size: int = 12
    category_page_size: int = 20
    feed_limit: int = 50
    sitemap_limit: int = 500
    post_ai_excerpt_chars: int = 3000
    listing_ai_excerpt_chars: int = 2000


class CspSettings(_Section):
    script_src: list[str] = [
        "https://pagead2.googlesyndication.com",
        "https://www.googletagmanager.com",
    ]
    style_src: list[str] = ["https://fonts.googleapis.com"]
    font_src: list[str] = ["https://fonts.gstatic.com"]
    frame_src: list[str] = ["https://googleads.g.doubleclick.net"]
    connect_src: list[str] = []


class LoggingSettings(_Section):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: TECHBLOG__SERVER__PORT=9090
        env_prefix="TECHBLOG__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    site: SiteSettings = SiteSettings()
    about: AboutSettings = AboutSettings()
    server: ServerSettings = ServerSettings()
    fetcher: FetcherSettings = FetcherSettings()
    cache: CacheSettings = CacheSettings()
    content: ContentSettings = ContentSettings()
    csp: CspSettings = CspSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
