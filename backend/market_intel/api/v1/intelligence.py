"""Market intelligence API: daily analyses, history, narratives, signals, validation and exports."""

import asyncio
import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from market_intel.api.v1.deps import (
    get_market_data,
    get_news_source,
    get_store,
    get_text_generator,
    require_admin,
)
from market_intel.integrations.llm.base import TextGenerator
from market_intel.integrations.market_data.base import MarketDataProvider
from market_intel.integrations.news.base import NewsSource
from market_intel.schemas.intelligence import (
    DailyAnalysis,
    GPRIndex,
    PipelineRunResponse,
    SentimentHistoryRecord,
)
from market_intel.schemas.narrative import NarrativeRollupResponse
from market_intel.schemas.signals import AnomalyAlert, EntitySentimentPoint, TodaySignal, TopEntity
from market_intel.schemas.validation import ValidationResult, WeeklyReport
from market_intel.services.anomaly import detect_anomalies_for_date
from market_intel.services.email_service import send_daily_digest
from market_intel.services.entity_tracker import top_entities
from market_intel.services.gpr import gpr_index
from market_intel.services.hindsight_validator import run_backtest
from market_intel.services.intelligence_store import IntelligenceStore
from market_intel.services.market_intelligence import run_daily_pipeline
from market_intel.services.narrative_tracker import run_narrative_rollup
from market_intel.services.pdf_report import generate_briefing_report
from market_intel.services.scorecard import generate_weekly_scorecard
from market_intel.services.signal import build_today_signal

logger = logging.getLogger(__name__)
router = APIRouter()


def _window_start(days: int) -> date:
    return date.today() - timedelta(days=days - 1)


async def _analysis_or_404(store: IntelligenceStore, analysis_date: date) -> DailyAnalysis:
    analysis = await store.get_analysis(analysis_date)
    if analysis is None:
        raise HTTPException(status_code=404, detail=f"No analysis for {analysis_date.isoformat()}")
    return analysis


# ── Daily analyses ───────────────────────────────────────────


@router.get("/latest", response_model=DailyAnalysis)
async def get_latest(store: IntelligenceStore = Depends(get_store)):
    analysis = await store.get_latest_analysis()
    if analysis is None:
        raise HTTPException(status_code=404, detail="No analysis available yet")
    return analysis


@router.get("/analysis/{analysis_date}", response_model=DailyAnalysis)
async def get_analysis(analysis_date: date, store: IntelligenceStore = Depends(get_store)):
    return await _analysis_or_404(store, analysis_date)


@router.get("/history", response_model=list[DailyAnalysis])
async def get_history(
    days: int = Query(7, ge=1, le=90),
    store: IntelligenceStore = Depends(get_store),
):
    """Recent analyses, newest first (article lists omitted)."""
    return await store.get_recent_analyses(_window_start(days))


@router.get("/sentiment-history", response_model=list[SentimentHistoryRecord])
async def get_sentiment_history(
    days: int = Query(30, ge=1, le=365),
    store: IntelligenceStore = Depends(get_store),
):
    return await store.get_sentiment_history(_window_start(days), date.today())


@router.post("/run", response_model=PipelineRunResponse, dependencies=[Depends(require_admin)])
async def run_pipeline(
    store: IntelligenceStore = Depends(get_store),
    generator: TextGenerator = Depends(get_text_generator),
    news_source: NewsSource = Depends(get_news_source),
):
    """Run the full daily pipeline for today."""
    analysis = await run_daily_pipeline(news_source, generator, store)
    return PipelineRunResponse(
        status="completed",
        date=analysis.date,
        article_count=len(analysis.enriched_articles),
        trend_count=len(analysis.trend_report.trends),
        overall_sentiment=analysis.strategist_report.market_sentiment.overall,
    )


# ── Narratives & GPR ─────────────────────────────────────────


@router.get("/narratives", response_model=NarrativeRollupResponse)
async def get_narratives(
    days: int = Query(14, ge=1, le=60),
    store: IntelligenceStore = Depends(get_store),
):
    return await run_narrative_rollup(store, date.today(), days)


@router.get("/gpr", response_model=GPRIndex)
async def get_gpr(
    days: int = Query(30, ge=1, le=365),
    store: IntelligenceStore = Depends(get_store),
):
    history = await store.get_gpr_history(_window_start(days), date.today())
    return gpr_index(history)


# ── Signals: anomalies, entities, today's signal ───────────


@router.get("/anomalies", response_model=list[AnomalyAlert])
async def get_anomalies(
    anomaly_date: date | None = Query(None, alias="date"),
    store: IntelligenceStore = Depends(get_store),
):
    """Volume spikes for a date (default: the latest analysis date)."""
    if anomaly_date is None:
        latest = await store.get_latest_analysis()
        if latest is None:
            return []
        anomaly_date = latest.date
    return await detect_anomalies_for_date(store, anomaly_date)


@router.get("/entities/top", response_model=list[TopEntity])
async def get_top_entities(
    days: int = Query(7, ge=1, le=90),
    limit: int = Query(10, ge=1, le=50),
    store: IntelligenceStore = Depends(get_store),
):
    points = await store.get_entity_sentiment(_window_start(days), date.today())
    return top_entities(points, limit)


@router.get("/entity/{entity}", response_model=list[EntitySentimentPoint])
async def get_entity_timeline(
    entity: str,
    days: int = Query(30, ge=1, le=365),
    store: IntelligenceStore = Depends(get_store),
):
    return await store.get_entity_sentiment(_window_start(days), date.today(), entity=entity)


@router.get("/signal", response_model=TodaySignal)
async def get_signal(store: IntelligenceStore = Depends(get_store)):
    return await build_today_signal(store)


# ── Validation ───────────────────────────────────────────────


@router.post("/backtest", response_model=ValidationResult)
async def post_backtest(
    days: int = Query(30, ge=1, le=365),
    store: IntelligenceStore = Depends(get_store),
    market_data: MarketDataProvider = Depends(get_market_data),
):
    """Validate sentiment against next-day returns over the trailing window."""
    return await run_backtest(store, market_data, days=days)


@router.get("/backtest/latest", response_model=ValidationResult)
async def get_latest_backtest(store: IntelligenceStore = Depends(get_store)):
    result = await store.get_latest_backtest()
    if result is None:
        raise HTTPException(status_code=404, detail="No backtest has been run yet")
    return result


@router.get("/scorecard", response_model=WeeklyReport)
async def get_scorecard(
    store: IntelligenceStore = Depends(get_store),
    market_data: MarketDataProvider = Depends(get_market_data),
):
    """Grade the current week (regenerated on each call)."""
    return await generate_weekly_scorecard(store, market_data)


@router.get("/scorecard/history", response_model=list[WeeklyReport])
async def get_scorecard_history(
    weeks: int = Query(8, ge=1, le=52),
    store: IntelligenceStore = Depends(get_store),
):
    return await store.get_scorecard_history(limit=weeks)


# ── Exports ──────────────────────────────────────────────────


@router.get("/export/{analysis_date}/pdf")
async def export_pdf(analysis_date: date, store: IntelligenceStore = Depends(get_store)):
    analysis = await _analysis_or_404(store, analysis_date)
    gpr = await store.get_gpr_history(analysis_date, analysis_date)
    pdf = await asyncio.to_thread(generate_briefing_report, analysis, gpr[0] if gpr else None)
    filename = f"market-intelligence-{analysis_date.isoformat()}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/export/{analysis_date}/email", dependencies=[Depends(require_admin)])
async def export_email(analysis_date: date, store: IntelligenceStore = Depends(get_store)):
    """Send the digest for a date to the configured recipients, ignoring alert thresholds."""
    analysis = await _analysis_or_404(store, analysis_date)
    gpr = await store.get_gpr_history(analysis_date, analysis_date)
    sent = await asyncio.to_thread(send_daily_digest, analysis, gpr[0] if gpr else None, None, True)
    logger.info("Manual digest for %s delivered to %d recipients", analysis_date, sent)
    return {"date": analysis_date, "sent": sent}
