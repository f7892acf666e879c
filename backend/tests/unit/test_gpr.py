"""Tests for the geopolitical-risk index."""

from datetime import date, timedelta

from market_intel.schemas.intelligence import GPRDataPoint
from market_intel.services.gpr import calculate_daily_gpr, gpr_index

DAY = date(2026, 3, 10)


def _filler(enriched_factory, n):
    return [enriched_factory(f"Quarterly results beat forecasts {i}", "MSFT") for i in range(n)]


class TestDailyGPR:
    def test_weighted_score(self, enriched_factory):
        articles = [enriched_factory("New tariff on chip imports", "NVDA")] + _filler(enriched_factory, 9)
        point = calculate_daily_gpr(articles, DAY)
        # 1.5 / 10 * 100 * 2.5
        assert point.score == 38
        assert point.keyword_counts == {"tariff": 1}
        assert point.top_keywords == ["tariff"]
        assert point.article_count == 10

    def test_keyword_in_two_categories_counted_once(self, enriched_factory):
        articles = [enriched_factory("Cyber attack hits regional bank", "JPM")] + _filler(enriched_factory, 9)
        point = calculate_daily_gpr(articles, DAY)
        assert point.keyword_counts == {"attack": 1}
        assert point.score == 25

    def test_multi_word_phrases(self, enriched_factory):
        point = calculate_daily_gpr([enriched_factory("Trade war fears weigh on futures", "SPY")], DAY)
        assert point.keyword_counts == {"war": 1, "trade war": 1}

    def test_word_boundaries(self, enriched_factory):
        point = calculate_daily_gpr([enriched_factory("Warner Bros earnings preview", "WBD")], DAY)
        assert point.keyword_counts == {}
        assert point.score == 0

    def test_capped_at_100(self, enriched_factory):
        point = calculate_daily_gpr([enriched_factory("Nuclear missile invasion fears", "SPY")], DAY)
        assert point.score == 100

    def test_no_articles(self):
        point = calculate_daily_gpr([], DAY)
        assert point.score == 0
        assert point.article_count == 0


class TestGPRIndex:
    @staticmethod
    def _series(scores):
        start = DAY - timedelta(days=len(scores) - 1)
        return [GPRDataPoint(date=start + timedelta(days=i), score=s) for i, s in enumerate(scores)]

    def test_short_history_is_stable(self):
        index = gpr_index(self._series([10, 20, 90]))
        assert index.current == 90
        assert index.trend == "stable"
        assert index.percent_change_7d == 0.0

    def test_rising(self):
        index = gpr_index(self._series([10] * 7 + [20] * 7))
        assert index.trend == "rising"
        assert index.percent_change_7d == 100.0

    def test_falling(self):
        index = gpr_index(self._series([40] * 7 + [20] * 7))
        assert index.trend == "falling"
        assert index.percent_change_7d == -50.0

    def test_within_band_is_stable(self):
        index = gpr_index(self._series([50] * 7 + [54] * 7))
        assert index.trend == "stable"

    def test_zero_baseline_is_stable(self):
        index = gpr_index(self._series([0] * 7 + [30] * 7))
        assert index.trend == "stable"

    def test_history_sorted(self):
        points = list(reversed(self._series([5, 6, 7])))
        index = gpr_index(points)
        assert [p.score for p in index.history] == [5, 6, 7]
        assert index.current == 7

    def test_empty(self):
        index = gpr_index([])
        assert index.current == 0
        assert index.history == []
