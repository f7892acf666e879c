"""Tests for the news sources: Yahoo Finance tickers, curated RSS feeds and their combination."""

from datetime import date
from unittest.mock import MagicMock, patch

import httpx
import pytest

from market_intel.config import Settings
from market_intel.core.metrics import NEWS_FETCH_FAILURES
from market_intel.integrations.news.base import NewsFetchError, NewsSource
from market_intel.integrations.news.factory import CombinedNewsSource, build_news_source
from market_intel.integrations.news.rss_news import Feed, RssNewsSource, parse_feed
from market_intel.integrations.news.yahoo_news import YahooNewsSource, parse_news_item

TARGET = date(2026, 3, 10)


def _item(title, pub="2026-03-10T12:00:00Z", url="https://news.example/a"):
    return {
        "id": "x",
        "content": {
            "title": title,
            "pubDate": pub,
            "canonicalUrl": {"url": url},
            "provider": {"displayName": "Reuters"},
        },
    }


class TestParseNewsItem:
    def test_nested_content(self):
        article, published = parse_news_item(_item("Nvidia raises outlook"), "NVDA", "ai_compute_infra")
        assert article.headline == "Nvidia raises outlook"
        assert article.url == "https://news.example/a"
        assert article.source == "Reuters"
        assert article.category == "ai_compute_infra"
        assert published == TARGET

    def test_flat_layout_with_link(self):
        article, published = parse_news_item(
            {"title": " Flat item ", "link": "https://flat.example", "provider": "AP"}, "SPY", "macro_finance",
        )
        assert article.headline == "Flat item"
        assert article.url == "https://flat.example"
        assert article.source == "AP"
        assert published is None

    def test_missing_title_skipped(self):
        assert parse_news_item({"content": {"title": ""}}, "SPY", "macro_finance") is None

    def test_bad_date_ignored(self):
        _, published = parse_news_item(_item("Title", pub="yesterday"), "SPY", "macro_finance")
        assert published is None


class TestYahooNewsSource:
    @pytest.mark.asyncio
    async def test_groups_by_category_and_filters(self):
        feeds = {
            "NVDA": [_item("Nvidia raises outlook"), _item("Old story", pub="2026-02-01T00:00:00Z")],
            "AMD": [_item("Nvidia raises outlook"), _item("AMD wins order")],
            "CRWD": [],
        }

        def fake_ticker(symbol):
            ticker = MagicMock()
            ticker.news = feeds[symbol]
            return ticker

        source = YahooNewsSource(watchlist={
            "ai_compute_infra": ["NVDA", "AMD"],
            "cybersecurity": ["CRWD"],
        })
        with patch("market_intel.integrations.news.yahoo_news.yf.Ticker", side_effect=fake_ticker):
            grouped = await source.fetch_articles(TARGET)

        # Empty categories dropped, duplicate headlines kept once
        assert list(grouped) == ["ai_compute_infra"]
        assert [a.headline for a in grouped["ai_compute_infra"]] == ["Nvidia raises outlook", "AMD wins order"]
        assert [a.ticker for a in grouped["ai_compute_infra"]] == ["NVDA", "AMD"]

    @pytest.mark.asyncio
    async def test_ticker_failure_skipped(self):
        def fake_ticker(symbol):
            if symbol == "BAD":
                raise RuntimeError("blocked")
            ticker = MagicMock()
            ticker.news = [_item("Good story")]
            return ticker

        source = YahooNewsSource(watchlist={"macro_finance": ["BAD", "SPY"]})
        with patch("market_intel.integrations.news.yahoo_news.yf.Ticker", side_effect=fake_ticker):
            grouped = await source.fetch_articles(TARGET)
        assert [a.ticker for a in grouped["macro_finance"]] == ["SPY"]

    @pytest.mark.asyncio
    async def test_every_ticker_failing_is_an_error(self):
        counter = NEWS_FETCH_FAILURES.labels(source="yahoo")
        before = counter._value.get()
        source = YahooNewsSource(watchlist={"macro_finance": ["SPY", "TLT"], "geopolitics": ["ITA"]})
        with patch("market_intel.integrations.news.yahoo_news.yf.Ticker", side_effect=RuntimeError("blocked")):
            with pytest.raises(NewsFetchError):
                await source.fetch_articles(TARGET)
        assert counter._value.get() == before + 1

    @pytest.mark.asyncio
    async def test_quiet_feeds_are_not_an_error(self):
        ticker = MagicMock()
        ticker.news = []
        source = YahooNewsSource(watchlist={"macro_finance": ["SPY"]})
        with patch("market_intel.integrations.news.yahoo_news.yf.Ticker", return_value=ticker):
            assert await source.fetch_articles(TARGET) == {}


def _rss(*items):
    entries = []
    for title, link, pub in items:
        pub_tag = f"<pubDate>{pub}</pubDate>" if pub else ""
        entries.append(f"<item><title>{title}</title><link>{link}</link>{pub_tag}</item>")
    return (
        '<?xml version="1.0"?><rss version="2.0"><channel><title>Feed</title>'
        + "".join(entries)
        + "</channel></rss>"
    ).encode()


SEC_A = Feed("https://a.example/rss", "Feed A", "SEC")
SEC_B = Feed("https://b.example/rss", "Feed B", "SEC")
GEO = Feed("https://c.example/rss", "Feed C", "GEO")


def _transport(bodies):
    def handler(request):
        body = bodies.get(str(request.url))
        if body is None:
            return httpx.Response(503)
        return httpx.Response(200, content=body)
    return httpx.MockTransport(handler)


class TestParseFeed:
    def test_freshness_window(self):
        body = _rss(
            ("Breach disclosed", "https://a.example/1", "Tue, 10 Mar 2026 12:00:00 GMT"),
            ("Patch released", "https://a.example/2", "Mon, 09 Mar 2026 08:00:00 GMT"),
            ("Old advisory", "https://a.example/3", "Sun, 01 Mar 2026 08:00:00 GMT"),
            ("Tomorrow's story", "https://a.example/4", "Wed, 11 Mar 2026 08:00:00 GMT"),
            ("Undated note", "https://a.example/5", None),
        )
        articles = parse_feed(body, SEC_A, "cybersecurity", TARGET, limit=10)
        assert [a.headline for a in articles] == ["Breach disclosed", "Patch released", "Undated note"]
        assert articles[0].source == "Feed A"
        assert articles[0].ticker == "SEC"
        assert articles[0].category == "cybersecurity"
        assert articles[0].url == "https://a.example/1"

    def test_limit_and_missing_link(self):
        body = _rss(
            ("No link", "", None),
            ("One", "https://a.example/1", None),
            ("Two", "https://a.example/2", None),
        )
        assert [a.headline for a in parse_feed(body, SEC_A, "cybersecurity", TARGET, limit=1)] == ["One"]


class TestRssNewsSource:
    @pytest.mark.asyncio
    async def test_grouped_and_deduplicated(self):
        bodies = {
            SEC_A.url: _rss(("Ransomware hits port", "https://a.example/1", None)),
            SEC_B.url: _rss(
                ("RANSOMWARE HITS PORT", "https://b.example/1", None),
                ("Zero-day patched", "https://b.example/2", None),
            ),
            GEO.url: _rss(("Summit ends", "https://c.example/1", None)),
        }
        source = RssNewsSource(
            feeds={"cybersecurity": [SEC_A, SEC_B], "geopolitics": [GEO]}, transport=_transport(bodies),
        )
        grouped = await source.fetch_articles(TARGET)
        assert [a.headline for a in grouped["cybersecurity"]] == ["Ransomware hits port", "Zero-day patched"]
        assert [a.headline for a in grouped["geopolitics"]] == ["Summit ends"]

    @pytest.mark.asyncio
    async def test_failed_feed_skipped(self):
        bodies = {SEC_B.url: _rss(("Zero-day patched", "https://b.example/2", None))}
        source = RssNewsSource(feeds={"cybersecurity": [SEC_A, SEC_B]}, transport=_transport(bodies))
        grouped = await source.fetch_articles(TARGET)
        assert [a.source for a in grouped["cybersecurity"]] == ["Feed B"]

    @pytest.mark.asyncio
    async def test_every_feed_failing_is_an_error(self):
        counter = NEWS_FETCH_FAILURES.labels(source="rss")
        before = counter._value.get()
        source = RssNewsSource(feeds={"cybersecurity": [SEC_A, SEC_B]}, transport=_transport({}))
        with pytest.raises(NewsFetchError):
            await source.fetch_articles(TARGET)
        assert counter._value.get() == before + 1

    @pytest.mark.asyncio
    async def test_stale_feeds_are_a_quiet_day(self):
        bodies = {SEC_A.url: _rss(("Old advisory", "https://a.example/3", "Sun, 01 Mar 2026 08:00:00 GMT"))}
        source = RssNewsSource(feeds={"cybersecurity": [SEC_A]}, transport=_transport(bodies))
        assert await source.fetch_articles(TARGET) == {}


class _StaticNews(NewsSource):
    def __init__(self, grouped):
        self.grouped = grouped

    async def fetch_articles(self, target_date):
        return self.grouped


class _DownNews(NewsSource):
    async def fetch_articles(self, target_date):
        raise NewsFetchError("down")


class TestCombinedNewsSource:
    @pytest.mark.asyncio
    async def test_first_source_keeps_shared_headline(self, article_factory):
        first = _StaticNews({"ai_compute_infra": [article_factory("Nvidia raises outlook", "NVDA")]})
        second = _StaticNews({
            "ai_compute_infra": [article_factory("nvidia raises outlook", "AI")],
            "cybersecurity": [article_factory("Breach disclosed", "SEC", "cybersecurity")],
        })
        merged = await CombinedNewsSource([first, second]).fetch_articles(TARGET)
        assert [a.ticker for a in merged["ai_compute_infra"]] == ["NVDA"]
        assert [a.headline for a in merged["cybersecurity"]] == ["Breach disclosed"]

    @pytest.mark.asyncio
    async def test_one_source_down(self, article_factory):
        up = _StaticNews({"ai_compute_infra": [article_factory()]})
        merged = await CombinedNewsSource([_DownNews(), up]).fetch_articles(TARGET)
        assert len(merged["ai_compute_infra"]) == 1

    @pytest.mark.asyncio
    async def test_all_sources_down(self):
        with pytest.raises(NewsFetchError):
            await CombinedNewsSource([_DownNews(), _DownNews()]).fetch_articles(TARGET)


class TestBuildNewsSource:
    def test_single_source(self):
        source = build_news_source(Settings(_env_file=None, news_sources=["rss"], rss_timeout_seconds=3.0))
        assert isinstance(source, RssNewsSource)
        assert source.timeout == 3.0

    def test_default_combines_yahoo_and_rss(self):
        source = build_news_source(Settings(_env_file=None))
        assert isinstance(source, CombinedNewsSource)
        assert [type(s) for s in source.sources] == [YahooNewsSource, RssNewsSource]

    @pytest.mark.parametrize("names", [["bloomberg"], []])
    def test_invalid_configuration(self, names):
        with pytest.raises(ValueError):
            build_news_source(Settings(_env_file=None, news_sources=names))
