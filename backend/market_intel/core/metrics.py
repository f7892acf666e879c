"""Prometheus metrics for the market intelligence backend.

Pipeline metrics: model calls, stage fallbacks, run duration, news and volume alerts
System metrics: HTTP requests, circuit breakers, persistence skips
"""

from prometheus_client import Counter, Histogram, Gauge, Info

# ── Pipeline Metrics ─────────────────────────────────────────

LLM_CALLS_TOTAL = Counter(
    "market_intel_llm_calls_total",
    "Language-model calls by pipeline stage and outcome",
    ["stage", "outcome"],
)

LLM_FALLBACKS_TOTAL = Counter(
    "market_intel_llm_fallbacks_total",
    "Stage outputs produced by the deterministic fallback",
    ["stage"],
)

LLM_CALL_DURATION = Histogram(
    "market_intel_llm_call_duration_seconds",
    "Language-model call latency",
    ["stage"],
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 45.0],
)

PIPELINE_DURATION = Histogram(
    "market_intel_pipeline_duration_seconds",
    "Duration of a full daily pipeline run",
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0],
)

ARTICLES_PROCESSED = Counter(
    "market_intel_articles_processed_total",
    "Articles enriched by the reader stage",
    ["category"],
)

ANOMALIES_DETECTED = Counter(
    "market_intel_volume_anomalies_total",
    "Categories flagged for unusual article volume",
    ["category"],
)

NEWS_FETCH_FAILURES = Counter(
    "market_intel_news_fetch_failures_total",
    "News source fetches where no feed answered",
    ["source"],
)

PERSISTENCE_SKIPS = Counter(
    "market_intel_persistence_skips_total",
    "Writes skipped because the store was unavailable",
    ["table", "reason"],
)

# ── System Metrics ───────────────────────────────────────────

HTTP_REQUESTS = Counter(
    "market_intel_http_requests_total",
    "Total HTTP requests to the API",
    ["method", "path", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "market_intel_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

CIRCUIT_BREAKER_STATE = Gauge(
    "market_intel_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["name"],
)

APP_INFO = Info("market_intel_app", "Market intelligence application info")
