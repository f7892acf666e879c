"""PDF export of a daily intelligence analysis."""

from __future__ import annotations

import io
from datetime import datetime
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable,
)

from market_intel.schemas.intelligence import DailyAnalysis, GPRDataPoint, category_display_name


PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
BRAND_COLOR = colors.HexColor("#3B82F6")
GREEN = colors.HexColor("#10B981")
RED = colors.HexColor("#EF4444")
GRAY = colors.HexColor("#6B7280")
DARK = colors.HexColor("#1F2937")

TOP_ARTICLES = 10


def _build_styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "Title", parent=base["Title"],
            fontSize=22, textColor=DARK, spaceAfter=6,
        ),
        "subtitle": ParagraphStyle(
            "Subtitle", parent=base["Normal"],
            fontSize=11, textColor=GRAY, spaceAfter=14,
        ),
        "heading": ParagraphStyle(
            "Heading", parent=base["Heading2"],
            fontSize=14, textColor=BRAND_COLOR, spaceBefore=16, spaceAfter=8,
        ),
        "body": ParagraphStyle(
            "Body", parent=base["Normal"],
            fontSize=10, textColor=DARK, spaceAfter=6, leading=14,
        ),
        "cell": ParagraphStyle(
            "Cell", parent=base["Normal"],
            fontSize=8, textColor=DARK, leading=10,
        ),
        "small": ParagraphStyle(
            "Small", parent=base["Normal"],
            fontSize=8, textColor=GRAY,
        ),
    }


def _make_table(headers: list[str], rows: list[list[Any]],
                col_widths: list[float] | None = None) -> Table:
    """Build a styled table from header + row data."""
    data = [headers] + rows
    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#D1D5DB")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F9FAFB")]),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    return t


def _signed(value: float) -> str:
    return f"{value:+d}" if isinstance(value, int) else f"{value:+.2f}"


def _sentiment_color(value: float) -> colors.Color:
    if value > 0:
        return GREEN
    if value < 0:
        return RED
    return GRAY


def generate_briefing_report(analysis: DailyAnalysis, gpr: GPRDataPoint | None = None) -> bytes:
    """Render a DailyAnalysis as a PDF.

    Returns:
        PDF content as bytes
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=MARGIN, rightMargin=MARGIN,
        topMargin=MARGIN, bottomMargin=MARGIN,
        title=f"Market Intelligence {analysis.date.isoformat()}",
    )

    styles = _build_styles()
    elements: list[Any] = []
    sentiment = analysis.strategist_report.market_sentiment

    # ── Header ──
    elements.append(Paragraph(f"Market Intelligence: {analysis.date.isoformat()}", styles["title"]))
    elements.append(Paragraph(
        f"Generated {datetime.now().strftime('%Y-%m-%d %H:%M')} from "
        f"{len(analysis.enriched_articles)} articles",
        styles["subtitle"],
    ))
    elements.append(HRFlowable(width="100%", color=BRAND_COLOR, thickness=1))
    elements.append(Spacer(1, 10))

    # ── Briefing ──
    elements.append(Paragraph("Daily Briefing", styles["heading"]))
    for paragraph in analysis.briefing.split("\n\n"):
        if paragraph.strip():
            elements.append(Paragraph(escape(paragraph.strip()), styles["body"]))

    # ── Sentiment ──
    elements.append(Paragraph("Market Sentiment", styles["heading"]))
    sentiment_rows = [["Overall", _signed(sentiment.overall)]]
    for category, score in sorted(sentiment.by_category.items()):
        sentiment_rows.append([category_display_name(category), _signed(score)])
    if gpr is not None:
        sentiment_rows.append(["Geopolitical Risk (0-100)", str(gpr.score)])
    t = _make_table(["Scope", "Score"], sentiment_rows, col_widths=[250, 150])
    t.setStyle(TableStyle([("TEXTCOLOR", (1, 1), (1, 1), _sentiment_color(sentiment.overall))]))
    elements.append(t)
    elements.append(Spacer(1, 10))

    # ── Trends ──
    trends = analysis.trend_report.trends
    if trends:
        elements.append(Paragraph("Trends", styles["heading"]))
        trend_rows = [
            [
                Paragraph(escape(tr.name), styles["cell"]),
                Paragraph(escape(", ".join(category_display_name(s) for s in tr.sectors)), styles["cell"]),
                tr.momentum.title(),
                f"{tr.confidence:.0f}",
            ]
            for tr in trends
        ]
        elements.append(_make_table(
            ["Trend", "Sectors", "Momentum", "Confidence"], trend_rows,
            col_widths=[150, 170, 80, 70],
        ))
    if analysis.trend_report.cross_category_insights:
        elements.append(Spacer(1, 6))
        elements.append(Paragraph(escape(analysis.trend_report.cross_category_insights), styles["body"]))

    # ── Opportunities & Risks ──
    opportunities = analysis.strategist_report.opportunities
    if opportunities:
        elements.append(Paragraph("Opportunities", styles["heading"]))
        rows = [
            [
                category_display_name(o.category),
                f"{o.score:.0f}",
                Paragraph(escape(o.insight), styles["cell"]),
                ", ".join(o.tickers),
                o.time_horizon,
            ]
            for o in opportunities
        ]
        elements.append(_make_table(
            ["Category", "Score", "Insight", "Tickers", "Horizon"], rows,
            col_widths=[100, 40, 200, 80, 50],
        ))

    risks = analysis.strategist_report.risks
    if risks:
        elements.append(Paragraph("Risks", styles["heading"]))
        rows = [
            [
                Paragraph(escape(r.factor), styles["cell"]),
                r.severity.upper(),
                ", ".join(r.affected_sectors),
                Paragraph(escape(r.mitigation), styles["cell"]),
            ]
            for r in risks
        ]
        elements.append(_make_table(
            ["Risk", "Severity", "Sectors", "Mitigation"], rows,
            col_widths=[140, 60, 100, 170],
        ))

    # ── Top Articles ──
    top = sorted(analysis.enriched_articles, key=lambda a: a.impact_score, reverse=True)[:TOP_ARTICLES]
    if top:
        elements.append(Paragraph("Highest-Impact Articles", styles["heading"]))
        rows = [
            [
                a.ticker,
                Paragraph(escape(a.headline), styles["cell"]),
                f"{a.sentiment_score:+.2f}",
                f"{a.impact_score:.0f}",
            ]
            for a in top
        ]
        elements.append(_make_table(
            ["Ticker", "Headline", "Sentiment", "Impact"], rows,
            col_widths=[50, 300, 60, 50],
        ))

    # ── Footer ──
    elements.append(Spacer(1, 20))
    elements.append(HRFlowable(width="100%", color=GRAY, thickness=0.5))
    elements.append(Paragraph(
        "Automated market intelligence. This report is for informational purposes only "
        "and does not constitute financial advice.",
        styles["small"],
    ))

    doc.build(elements)
    return buf.getvalue()
