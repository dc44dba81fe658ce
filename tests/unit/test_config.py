"""Unit tests for configuration defaults and validation."""

from __future__ import annotations

import platformdirs
import pytest
from pydantic import ValidationError

from techblog_ssr.config import (
    _DEFAULT_DATA_DIR,
    _DEFAULT_DB_PATH,
    CacheSettings,
    FetcherSettings,
    Settings,
    SiteSettings,
)


class TestPlatformDefaults:
    def test_default_data_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_data_dir("techblog-ssr") == _DEFAULT_DATA_DIR

    def test_default_db_path_under_data_dir(self) -> None:
        assert _DEFAULT_DB_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_DB_PATH.endswith("cache.db")

    def test_cache_settings_uses_platform_default(self) -> None:
        assert CacheSettings().db_path == _DEFAULT_DB_PATH


class TestDefaults:
    def test_fetcher_identifies_itself(self) -> None:
        assert FetcherSettings().user_agent == "TechBlogAI-Edge/1.0"

    def test_category_ttl_shorter_than_post_ttl(self) -> None:
        cache = CacheSettings()
        assert cache.category_ttl_seconds == 1800
        assert cache.post_ttl_seconds == 3600

    def test_site_defaults(self) -> None:
        site = SiteSettings()
        assert site.name == "TechBlog AI"
        assert site.origin.startswith("https://")


class TestSiteValidation:
    def test_trailing_slash_stripped(self) -> None:
        site = SiteSettings(origin="https://blog.example.com/")
        assert site.origin == "https://blog.example.com"

    def test_non_http_scheme_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SiteSettings(api_base_url="ftp://api.example.com")


class TestConfigValidation:
    def test_wrong_type_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(server={"port": "not-a-number"})  # type: ignore[arg-type]

    def test_unknown_top_level_field_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(completely_unknown_field="oops")  # type: ignore[call-arg]

    def test_unknown_nested_field_raises_validation_error(self) -> None:
        """A typo like 'db_paht' is caught rather than silently ignored."""
        with pytest.raises(ValidationError):
            CacheSettings(db_paht="/intended/path/cache.db")  # type: ignore[call-arg]

    def test_invalid_log_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(logging={"format": "xml"})  # type: ignore[arg-type]


class TestEnvironmentOverrides:
    def test_nested_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TECHBLOG__SERVER__PORT", "9090")
        assert Settings().server.port == 9090

    def test_env_var_origin_is_normalised(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TECHBLOG__SITE__ORIGIN", "https://staging.example.com/")
        assert Settings().site.origin == "https://staging.example.com"

    def test_constructor_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TECHBLOG__SERVER__PORT", "9090")
        assert Settings(server={"port": 7000}).server.port == 7000  # type: ignore[arg-type]
