from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from techblog_ssr.renderer import DEFAULT_SHELL
from techblog_ssr.tasks import BackgroundTasks

if TYPE_CHECKING:
    from techblog_ssr.config import Settings
    from techblog_ssr.fetcher import ContentApiClient
    from techblog_ssr.protocols import CacheProtocol


@dataclass
class AppState:
    """Process-wide collaborators, built once in the app lifespan."""

    settings: Settings
    cache: CacheProtocol
    api: ContentApiClient
    tasks: BackgroundTasks = field(default_factory=BackgroundTasks)
    # The built single-page app entry point, served on every rewrite
    shell_html: str = DEFAULT_SHELL
