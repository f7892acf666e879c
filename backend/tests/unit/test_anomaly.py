"""Tests for per-category article-volume anomaly detection."""

from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from market_intel.schemas.signals import CategoryVolume
from market_intel.services.anomaly import category_volumes, detect_anomalies, detect_anomalies_for_date

DAY = date(2026, 3, 10)


class TestCategoryVolumes:
    def test_counts_per_category(self, enriched_factory):
        articles = [
            enriched_factory("A"), enriched_factory("B"),
            enriched_factory("C", category="cybersecurity"),
        ]
        volumes = {v.category: v.article_count for v in category_volumes(articles, DAY)}
        assert volumes == {"ai_compute_infra": 2, "cybersecurity": 1}

    def test_no_articles(self):
        assert category_volumes([], DAY) == []


class TestDetectAnomalies:
    def test_spike_above_two_sigma(self):
        alerts = detect_anomalies({"cybersecurity": 12}, {"cybersecurity": [2, 3, 2, 3]}, DAY)
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.rolling_avg_7d == 2.5
        assert alert.standard_dev == 0.5
        assert alert.z_score == 19.0
        assert alert.is_anomaly is True
        assert alert.message == "4.8x normal coverage on Cybersecurity"

    def test_exactly_two_sigma_not_flagged(self):
        # mean 2, population std 1
        assert detect_anomalies({"geopolitics": 4}, {"geopolitics": [1, 3, 1, 3]}, DAY) == []

    def test_requires_three_days_of_history(self):
        assert detect_anomalies({"geopolitics": 50}, {"geopolitics": [1, 2]}, DAY) == []

    def test_flat_history_never_alerts(self):
        assert detect_anomalies({"geopolitics": 50}, {"geopolitics": [4, 4, 4, 4]}, DAY) == []

    def test_only_last_seven_days_used(self):
        history = [100, 100, 100, 2, 3, 2, 3, 2, 3, 2]
        alerts = detect_anomalies({"geopolitics": 12}, {"geopolitics": history}, DAY)
        assert alerts[0].rolling_avg_7d == 2.4

    def test_highest_z_first(self):
        alerts = detect_anomalies(
            {"cybersecurity": 6, "geopolitics": 20},
            {"cybersecurity": [2, 3, 2, 3], "geopolitics": [2, 3, 2, 3]},
            DAY,
        )
        assert [a.category for a in alerts] == ["geopolitics", "cybersecurity"]


class TestDetectForDate:
    @pytest.mark.asyncio
    async def test_splits_stored_rows_into_today_and_history(self):
        rows = [CategoryVolume(date=DAY, category="cybersecurity", article_count=12)] + [
            CategoryVolume(date=DAY - timedelta(days=n), category="cybersecurity", article_count=c)
            for n, c in ((1, 3), (2, 2), (3, 3), (4, 2))
        ]
        store = MagicMock()
        store.get_daily_volumes = AsyncMock(return_value=rows)

        alerts = await detect_anomalies_for_date(store, DAY)

        store.get_daily_volumes.assert_awaited_once_with(DAY - timedelta(days=7), DAY)
        assert [(a.category, a.current_volume, a.date) for a in alerts] == [("cybersecurity", 12, DAY)]

    @pytest.mark.asyncio
    async def test_category_missing_today_is_not_flagged(self):
        rows = [
            CategoryVolume(date=DAY - timedelta(days=n), category="cybersecurity", article_count=c)
            for n, c in ((1, 3), (2, 2), (3, 3))
        ]
        store = MagicMock()
        store.get_daily_volumes = AsyncMock(return_value=rows)
        assert await detect_anomalies_for_date(store, DAY) == []
