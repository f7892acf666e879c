"""Curated RSS feeds per intelligence category.

Feeds are downloaded with httpx (bounded timeout) and parsed with feedparser.
A feed that errors or returns an unparseable body is skipped; only when every
feed fails does the source raise NewsFetchError.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import NamedTuple

import feedparser
import httpx

from market_intel.core.metrics import NEWS_FETCH_FAILURES
from market_intel.integrations.news.base import NewsFetchError, NewsSource
from market_intel.schemas.intelligence import NewsArticle

logger = logging.getLogger("market_intel.news")

USER_AGENT = "Mozilla/5.0 (compatible; MarketIntelBot/1.0)"
FRESHNESS_DAYS = 1


class Feed(NamedTuple):
    url: str
    source: str
    ticker: str


RSS_FEEDS: dict[str, list[Feed]] = {
    "ai_compute_infra": [
        Feed("https://techcrunch.com/category/artificial-intelligence/feed/", "TechCrunch AI", "AI"),
        Feed("https://feeds.arstechnica.com/arstechnica/technology-lab", "Ars Technica", "AI"),
        Feed("https://www.theverge.com/rss/ai-artificial-intelligence/index.xml", "The Verge AI", "AI"),
    ],
    "fintech_regtech": [
        Feed("https://www.pymnts.com/feed/", "PYMNTS", "FIN"),
        Feed("https://techcrunch.com/category/fintech/feed/", "TechCrunch Fintech", "FIN"),
        Feed("https://www.coindesk.com/arc/outboundfeeds/rss/", "CoinDesk", "CRYPTO"),
    ],
    "rpa_enterprise_ai": [
        Feed("https://siliconangle.com/category/cloud/feed/", "SiliconANGLE Cloud", "ENT"),
        Feed("https://techcrunch.com/category/enterprise/feed/", "TechCrunch Enterprise", "ENT"),
    ],
    "semi_supply_chain": [
        Feed("https://www.tomshardware.com/feeds/all", "Tom's Hardware", "SEMI"),
        Feed("https://wccftech.com/feed/", "Wccftech", "SEMI"),
    ],
    "cybersecurity": [
        Feed("https://krebsonsecurity.com/feed/", "Krebs on Security", "SEC"),
        Feed("https://feeds.feedburner.com/TheHackersNews", "The Hacker News", "SEC"),
        Feed("https://www.helpnetsecurity.com/feed/", "Help Net Security", "SEC"),
    ],
    "geopolitics": [
        Feed("https://feeds.bbci.co.uk/news/world/rss.xml", "BBC World", "GEO"),
        Feed("https://foreignpolicy.com/feed/", "Foreign Policy", "GEO"),
    ],
}


def _entry_date(entry) -> date | None:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return date(parsed.tm_year, parsed.tm_mon, parsed.tm_mday)


def parse_feed(body: bytes, feed: Feed, category: str, target_date: date, limit: int) -> list[NewsArticle]:
    """Entries from one feed body published within a day of `target_date` (undated entries kept)."""
    parsed = feedparser.parse(body)
    if parsed.bozo and not parsed.entries:
        raise ValueError(f"Unparseable feed: {parsed.get('bozo_exception')}")

    earliest = target_date - timedelta(days=FRESHNESS_DAYS)
    articles = []
    for entry in parsed.entries:
        title = (entry.get("title") or "").strip()
        link = entry.get("link") or ""
        if not title or not link:
            continue
        published = _entry_date(entry)
        if published is not None and not (earliest <= published <= target_date):
            continue
        articles.append(NewsArticle(ticker=feed.ticker, headline=title, url=link, source=feed.source, category=category))
        if len(articles) >= limit:
            break
    return articles


class RssNewsSource(NewsSource):
    def __init__(
        self,
        feeds: dict[str, list[Feed]] | None = None,
        max_per_feed: int = 10,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.feeds = feeds or RSS_FEEDS
        self.max_per_feed = max_per_feed
        self.timeout = timeout
        self._transport = transport

    async def _fetch_feed(
        self, client: httpx.AsyncClient, category: str, feed: Feed, target_date: date,
    ) -> list[NewsArticle] | None:
        try:
            resp = await client.get(feed.url)
            resp.raise_for_status()
            return parse_feed(resp.content, feed, category, target_date, self.max_per_feed)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("RSS feed %s failed: %s", feed.source, e)
            return None

    async def fetch_articles(self, target_date: date) -> dict[str, list[NewsArticle]]:
        jobs = [(category, feed) for category, feeds in self.feeds.items() for feed in feeds]
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            results = await asyncio.gather(*[
                self._fetch_feed(client, category, feed, target_date) for category, feed in jobs
            ])

        if jobs and all(r is None for r in results):
            NEWS_FETCH_FAILURES.labels(source="rss").inc()
            raise NewsFetchError(f"All {len(jobs)} RSS feeds failed for {target_date}")

        grouped: dict[str, list[NewsArticle]] = {}
        seen: set[str] = set()
        for (category, _), articles in zip(jobs, results):
            for article in articles or []:
                title_key = article.headline.lower()
                if title_key in seen:
                    continue
                seen.add(title_key)
                grouped.setdefault(category, []).append(article)

        logger.info(
            "Fetched %d RSS articles across %d categories for %s",
            sum(len(a) for a in grouped.values()), len(grouped), target_date,
        )
        return grouped
