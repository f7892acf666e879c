"""Tests for entity name cleanup and per-entity sentiment timelines."""

from datetime import date, timedelta

import pytest

from market_intel.schemas.signals import EntitySentimentPoint
from market_intel.services.entity_tracker import normalize_entity, top_entities, track_entities

DAY = date(2026, 3, 10)


class TestNormalizeEntity:
    @pytest.mark.parametrize("raw,expected", [
        ("NVIDIA", "Nvidia"),
        ("  federal reserve ", "Federal Reserve"),
        ("TSMC", "Tsmc"),
    ])
    def test_title_cased(self, raw, expected):
        assert normalize_entity(raw) == expected

    @pytest.mark.parametrize("raw", [
        "AI", "Nvidia's", "[Reuters]", "Intel…", "Apple.", ",Google",
        "The Fed", "Market", "billion", "March",
    ])
    def test_noise_rejected(self, raw):
        assert normalize_entity(raw) is None


class TestTrackEntities:
    def test_average_over_mentioning_articles(self, enriched_factory):
        articles = [
            enriched_factory("A", sentiment=0.6, entities=["Nvidia"]),
            enriched_factory("B", sentiment=-0.2, entities=["NVIDIA", "TSMC"]),
            enriched_factory("C", sentiment=0.1, entities=["Intel"]),
        ]
        points = track_entities(articles, DAY)
        assert points == [EntitySentimentPoint(entity="Nvidia", date=DAY, avg_sentiment=0.2, article_count=2)]

    def test_counted_once_per_article(self, enriched_factory):
        articles = [enriched_factory("A", sentiment=0.5, entities=["Nvidia", "nvidia", "NVIDIA"])]
        assert track_entities(articles, DAY) == []

    def test_most_mentioned_first(self, enriched_factory):
        articles = [
            enriched_factory(str(n), entities=["Intel", "Tsmc"] if n < 3 else ["Intel"])
            for n in range(4)
        ]
        assert [(p.entity, p.article_count) for p in track_entities(articles, DAY)] == [("Intel", 4), ("Tsmc", 3)]


class TestTopEntities:
    def test_sentiment_weighted_by_mentions(self):
        points = [
            EntitySentimentPoint(entity="Nvidia", date=DAY, avg_sentiment=0.5, article_count=3),
            EntitySentimentPoint(entity="Nvidia", date=DAY - timedelta(days=2), avg_sentiment=0.1, article_count=1),
            EntitySentimentPoint(entity="Intel", date=DAY - timedelta(days=1), avg_sentiment=-0.3, article_count=2),
        ]
        ranked = top_entities(points)
        assert [e.entity for e in ranked] == ["Nvidia", "Intel"]
        assert ranked[0].total_mentions == 4
        assert ranked[0].avg_sentiment == 0.4
        assert ranked[0].days_seen == 2
        assert ranked[0].last_seen == DAY

    def test_limit_and_tie_break_by_name(self):
        points = [
            EntitySentimentPoint(entity=name, date=DAY, avg_sentiment=0.0, article_count=2)
            for name in ("Tsmc", "Amd", "Intel")
        ]
        assert [e.entity for e in top_entities(points, limit=2)] == ["Amd", "Intel"]

    def test_empty(self):
        assert top_entities([]) == []
