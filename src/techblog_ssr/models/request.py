from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class ClientKind(StrEnum):
    HUMAN = "human"
    GENERIC_CRAWLER = "generic_crawler"
    AI_CRAWLER = "ai_crawler"


class ClientClassification(BaseModel):
    """Result of user-agent classification.

    The two flags are computed independently; a user agent may set both.
    """

    model_config = ConfigDict(frozen=True)

    is_bot: bool = False
    is_ai_crawler: bool = False

    @property
    def kind(self) -> ClientKind:
        if self.is_ai_crawler:
            return ClientKind.AI_CRAWLER
        if self.is_bot:
            return ClientKind.GENERIC_CRAWLER
        return ClientKind.HUMAN

    @property
    def is_crawler(self) -> bool:
        return self.is_bot or self.is_ai_crawler

    @property
    def variant(self) -> str:
        """Cache/render variant for listing pages."""
        return "full" if self.is_ai_crawler else "lite"

    @property
    def post_variant(self) -> str:
        return "full" if self.is_ai_crawler else "meta"


class RenderRequest(BaseModel):
    """What the dispatchers need to know about one inbound request."""

    path: str
    user_agent: str = ""
    query_params: dict[str, str] = {}

    def page_number(self) -> int:
        try:
            page = int(self.query_params.get("page", "1"))
        except ValueError:
            return 1
        return max(page, 1)
