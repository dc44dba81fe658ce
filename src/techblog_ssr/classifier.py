"""User-agent classification by substring matching.

Matching is deliberately loose: any keyword appearing anywhere in the
lower-cased user agent counts. False positives (an HTTP library whose name
contains "fetch") are accepted.
"""

from __future__ import annotations

from techblog_ssr.models.request import ClientClassification

AI_CRAWLER_KEYWORDS: tuple[str, ...] = (
    "gptbot",
    "chatgpt-user",
    "anthropic-ai",
    "claude-web",
    "claudebot",
    "cohere-ai",
    "perplexitybot",
    "youbot",
    "ccbot",
)

BOT_KEYWORDS: tuple[str, ...] = (
    # search engines
    "googlebot",
    "google-inspectiontool",
    "bingbot",
    "slurp",
    "duckduckbot",
    "yandexbot",
    "baiduspider",
    "applebot",
    "amazonbot",
    "petalbot",
    # link unfurlers
    "facebot",
    "facebookexternalhit",
    "meta-externalagent",
    "twitterbot",
    "linkedinbot",
    "whatsapp",
    "telegram",
    "slackbot",
    "discordbot",
    "pinterestbot",
    "redditbot",
    # SEO tools
    "semrushbot",
    "ahrefsbot",
    "mj12bot",
    "dotbot",
    "lighthouse",
    # generic
    "bot",
    "crawler",
    "spider",
    "scraper",
    "fetch",
    *AI_CRAWLER_KEYWORDS,
)


def _matches(user_agent: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in user_agent for keyword in keywords)


def classify(user_agent: str | None) -> ClientClassification:
    """Classify a raw ``User-Agent`` header value. Never raises."""
    ua = (user_agent or "").lower()
    if not ua:
        return ClientClassification()
    return ClientClassification(
        is_bot=_matches(ua, BOT_KEYWORDS),
        is_ai_crawler=_matches(ua, AI_CRAWLER_KEYWORDS),
    )
