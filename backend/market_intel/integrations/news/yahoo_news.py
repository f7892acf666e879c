"""Ticker news from Yahoo Finance, grouped into intelligence categories."""

import asyncio
import logging
from datetime import date, datetime, timedelta

import yfinance as yf

from market_intel.core.metrics import NEWS_FETCH_FAILURES
from market_intel.integrations.news.base import NewsFetchError, NewsSource
from market_intel.schemas.intelligence import NewsArticle

logger = logging.getLogger("market_intel.news")

# Category → tickers whose Yahoo news feed represents the category
CATEGORY_WATCHLIST: dict[str, list[str]] = {
    "ai_compute_infra": ["NVDA", "AMD", "MSFT", "GOOGL"],
    "fintech_regtech": ["PYPL", "V", "MA", "COIN"],
    "rpa_enterprise_ai": ["PATH", "NOW", "CRM", "PLTR"],
    "semi_supply_chain": ["TSM", "ASML", "AMAT", "INTC"],
    "cybersecurity": ["CRWD", "PANW", "ZS", "FTNT"],
    "geopolitics": ["ITA", "LMT", "RTX"],
    "macro_finance": ["SPY", "TLT", "GLD", "JPM"],
}

# Items older than this many days before the target date are ignored
FRESHNESS_DAYS = 1


def _parse_pub_date(raw: str) -> date | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_news_item(item: dict, ticker: str, category: str) -> tuple[NewsArticle, date | None] | None:
    """Convert one yfinance news item into a NewsArticle plus its publish date.

    Handles the nested `content` layout yfinance returns; items without a
    title are skipped.
    """
    content = item.get("content") or item
    title = (content.get("title") or "").strip()
    if not title:
        return None

    url = ""
    for key in ("canonicalUrl", "clickThroughUrl"):
        link = content.get(key) or {}
        if isinstance(link, dict) and link.get("url"):
            url = link["url"]
            break
    if not url:
        url = content.get("link", "") or ""

    provider = content.get("provider") or {}
    source = provider.get("displayName", "") if isinstance(provider, dict) else str(provider)
    published = _parse_pub_date(content.get("pubDate", "") or content.get("displayTime", ""))

    article = NewsArticle(ticker=ticker, headline=title, url=url, source=source, category=category)
    return article, published


class YahooNewsSource(NewsSource):
    def __init__(self, watchlist: dict[str, list[str]] | None = None, max_per_ticker: int = 5):
        self.watchlist = watchlist or CATEGORY_WATCHLIST
        self.max_per_ticker = max_per_ticker

    def _fetch_category(
        self, category: str, tickers: list[str], target_date: date,
    ) -> tuple[list[NewsArticle], int]:
        """Articles for one category plus the number of tickers that could not be fetched."""
        earliest = target_date - timedelta(days=FRESHNESS_DAYS)
        seen_titles: set[str] = set()
        articles: list[NewsArticle] = []
        failures = 0

        for ticker_symbol in tickers:
            try:
                ticker_news = yf.Ticker(ticker_symbol).news or []
            except Exception as e:
                logger.debug("Failed to fetch news for %s: %s", ticker_symbol, e)
                failures += 1
                continue

            kept = 0
            for item in ticker_news:
                if kept >= self.max_per_ticker:
                    break
                parsed = parse_news_item(item, ticker_symbol, category)
                if parsed is None:
                    continue
                article, published = parsed
                if published is not None and not (earliest <= published <= target_date):
                    continue
                if article.headline in seen_titles:
                    continue
                seen_titles.add(article.headline)
                articles.append(article)
                kept += 1

        return articles, failures

    async def fetch_articles(self, target_date: date) -> dict[str, list[NewsArticle]]:
        results = await asyncio.gather(*[
            asyncio.to_thread(self._fetch_category, category, tickers, target_date)
            for category, tickers in self.watchlist.items()
        ])
        attempted = sum(len(tickers) for tickers in self.watchlist.values())
        failed = sum(failures for _, failures in results)
        if attempted and failed == attempted:
            NEWS_FETCH_FAILURES.labels(source="yahoo").inc()
            raise NewsFetchError(f"All {attempted} ticker news requests failed for {target_date}")

        grouped = {
            category: articles
            for category, (articles, _) in zip(self.watchlist.keys(), results)
            if articles
        }
        logger.info(
            "Fetched %d articles across %d categories for %s",
            sum(len(a) for a in grouped.values()), len(grouped), target_date,
        )
        return grouped
