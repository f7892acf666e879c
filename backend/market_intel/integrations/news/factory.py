"""News source factory and a source that merges several feeds."""

import asyncio
import logging
from datetime import date

from market_intel.config import Settings
from market_intel.integrations.news.base import NewsFetchError, NewsSource
from market_intel.schemas.intelligence import NewsArticle

logger = logging.getLogger("market_intel.news")


class CombinedNewsSource(NewsSource):
    """Merges categories across sources; the first source to report a headline keeps it.

    Raises NewsFetchError only when every source failed.
    """

    def __init__(self, sources: list[NewsSource]):
        self.sources = sources

    async def fetch_articles(self, target_date: date) -> dict[str, list[NewsArticle]]:
        results = await asyncio.gather(
            *[s.fetch_articles(target_date) for s in self.sources], return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                logger.warning("News source %s failed: %s", type(source).__name__, result)
        if self.sources and len(failures) == len(self.sources):
            raise NewsFetchError(f"All {len(self.sources)} news sources failed for {target_date}")

        merged: dict[str, list[NewsArticle]] = {}
        seen: set[str] = set()
        for result in results:
            if isinstance(result, BaseException):
                continue
            for category, articles in result.items():
                for article in articles:
                    key = article.headline.lower()
                    if key in seen:
                        continue
                    seen.add(key)
                    merged.setdefault(category, []).append(article)
        return merged


def build_news_source(settings: Settings) -> NewsSource:
    """Create the configured source(s): any of "yahoo" and "rss"."""
    sources: list[NewsSource] = []
    for name in settings.news_sources:
        if name == "yahoo":
            from market_intel.integrations.news.yahoo_news import YahooNewsSource
            sources.append(YahooNewsSource())
        elif name == "rss":
            from market_intel.integrations.news.rss_news import RssNewsSource
            sources.append(RssNewsSource(timeout=settings.rss_timeout_seconds))
        else:
            raise ValueError(f"Unknown news source: {name}. Supported: 'yahoo', 'rss'")

    if not sources:
        raise ValueError("At least one news source must be configured")
    return sources[0] if len(sources) == 1 else CombinedNewsSource(sources)
