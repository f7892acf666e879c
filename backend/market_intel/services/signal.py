"""Today's Signal: one rule-based sentence summarizing the latest analysis.

Inputs are the latest DailyAnalysis (at most a week old), the GPR index, the
day's volume anomalies and its most impactful cluster. No model call is made,
so the same inputs always give the same signal.
"""

import logging
from datetime import date, datetime, timedelta, timezone

from market_intel.schemas.intelligence import DailyAnalysis, GPRIndex
from market_intel.schemas.narrative import ArticleCluster
from market_intel.schemas.signals import AnomalyAlert, TodaySignal
from market_intel.services.anomaly import detect_anomalies_for_date
from market_intel.services.clustering import cluster_articles
from market_intel.services.gpr import gpr_index

logger = logging.getLogger("market_intel.signal")

MAX_ANALYSIS_AGE_DAYS = 7
GPR_LOOKBACK_DAYS = 30

BULLISH_SENTIMENT = 15
BEARISH_SENTIMENT = -15
HIGH_GPR = 65
LOW_GPR = 25

NO_SIGNAL = "No signal available. Run the intelligence pipeline to generate today's analysis."


def _now() -> datetime:
    return datetime.now(timezone.utc)


def empty_signal() -> TodaySignal:
    return TodaySignal(signal=NO_SIGNAL, sentiment="neutral", confidence="low", key_metric="N/A", timestamp=_now())


def _confidence(gpr: int, sentiment: int) -> str:
    # High risk with bearish tape, or low risk with bullish tape
    if (gpr > 50 and sentiment < -10) or (gpr < 30 and sentiment > 10):
        return "high"
    if abs(sentiment) > 20:
        return "medium"
    return "low"


def generate_signal(
    analysis: DailyAnalysis,
    gpr: GPRIndex,
    anomalies: list[AnomalyAlert],
    top_cluster: ArticleCluster | None = None,
) -> TodaySignal:
    sentiment = analysis.strategist_report.market_sentiment.overall
    if sentiment > BULLISH_SENTIMENT:
        label = "bullish"
    elif sentiment < BEARISH_SENTIMENT:
        label = "bearish"
    else:
        label = "neutral"

    parts: list[str] = []
    key_metric = ""

    if anomalies:
        top = anomalies[0]
        parts.append(f"Volume spike detected: {top.message}.")
        key_metric = f"{top.z_score:.1f}σ above normal"

    if gpr.current > HIGH_GPR:
        parts.append(f"Geopolitical risk elevated at {gpr.current}/100 ({gpr.trend}).")
        if label == "bearish":
            parts.append("Market sentiment confirms defensive posture.")
        else:
            parts.append("Markets have not priced in the risk yet, watch for corrections.")
        key_metric = key_metric or f"GPR: {gpr.current}/100"
    elif gpr.current < LOW_GPR and label == "bullish":
        parts.append(f"Low geopolitical risk ({gpr.current}/100) with bullish sentiment ({sentiment:+.1f}).")
        parts.append(f"{top_cluster.topic} driving optimism." if top_cluster else "Conditions favor risk-on positioning.")
        key_metric = key_metric or f"Sentiment: {sentiment:+.1f}"
    else:
        direction = "positive" if sentiment > 0 else "negative" if sentiment < 0 else "neutral"
        shown = f"{sentiment:+.1f}" if sentiment else "0.0"
        parts.append(f"Market sentiment is {direction} ({shown}) with GPR at {gpr.current}/100.")
        if top_cluster:
            parts.append(f"Top story: {top_cluster.topic}.")
        key_metric = key_metric or f"Sentiment: {shown}"

    return TodaySignal(
        signal=" ".join(parts),
        sentiment=label,
        confidence=_confidence(gpr.current, sentiment),
        key_metric=key_metric,
        analysis_date=analysis.date,
        timestamp=_now(),
    )


async def build_today_signal(store, today: date | None = None) -> TodaySignal:
    """Signal for the most recent analysis no older than a week."""
    today = today or date.today()
    analysis = await store.get_latest_analysis()
    if analysis is None or analysis.date < today - timedelta(days=MAX_ANALYSIS_AGE_DAYS):
        return empty_signal()

    history = await store.get_gpr_history(analysis.date - timedelta(days=GPR_LOOKBACK_DAYS - 1), analysis.date)
    anomalies = await detect_anomalies_for_date(store, analysis.date)
    clusters = cluster_articles(analysis.enriched_articles, analysis.date)

    signal = generate_signal(analysis, gpr_index(history), anomalies, clusters[0] if clusters else None)
    logger.debug("Signal for %s: %s", analysis.date, signal.signal)
    return signal
