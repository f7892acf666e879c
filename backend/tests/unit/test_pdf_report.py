"""Tests for PDF export of a daily analysis."""

from datetime import date

from market_intel.schemas.intelligence import (
    DailyAnalysis,
    GPRDataPoint,
    MarketSentiment,
    Opportunity,
    Risk,
    StrategistReport,
    Trend,
    TrendReport,
)
from market_intel.services.pdf_report import _signed, generate_briefing_report

DAY = date(2026, 3, 10)


def _analysis(articles, trends=None, opportunities=None, risks=None, briefing="Quiet session."):
    return DailyAnalysis(
        date=DAY,
        briefing=briefing,
        trend_report=TrendReport(trends=trends or [], cross_category_insights="Budgets converge."),
        strategist_report=StrategistReport(
            opportunities=opportunities or [],
            risks=risks or [],
            market_sentiment=MarketSentiment(overall=12, by_category={"ai_compute_infra": 12}),
        ),
        enriched_articles=articles,
    )


class TestSigned:
    def test_formats(self):
        assert _signed(12) == "+12"
        assert _signed(-3) == "-3"
        assert _signed(0.25) == "+0.25"


class TestBriefingReport:
    def test_full_report(self, enriched_factory):
        articles = [enriched_factory(f"Story {i} & <more>", "NVDA", impact=i * 7) for i in range(14)]
        analysis = _analysis(
            articles,
            trends=[Trend(name="AI capex", sectors=["ai_compute_infra"], momentum="accelerating", confidence=80)],
            opportunities=[Opportunity(
                category="ai_compute_infra", score=75, insight="Capex <cycle>", tickers=["NVDA"], time_horizon="medium",
            )],
            risks=[Risk(factor="Export curbs", severity="high", affected_sectors=["ai_compute_infra"])],
            briefing="First paragraph with <tags> & symbols.\n\nSecond paragraph.",
        )
        pdf = generate_briefing_report(analysis, GPRDataPoint(date=DAY, score=33))
        assert isinstance(pdf, bytes)
        assert pdf.startswith(b"%PDF")
        assert len(pdf) > 1000

    def test_minimal_report(self):
        pdf = generate_briefing_report(_analysis([]))
        assert pdf.startswith(b"%PDF")
