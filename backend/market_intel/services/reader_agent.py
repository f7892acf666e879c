"""Reader stage: attach sentiment, impact, entities and trend direction to each article.

Articles are sent to the model in fixed-size batches, one request per batch.
Anything the model gets wrong degrades to neutral defaults for the affected
articles only; a failed request degrades the whole batch. The stage never
raises.
"""

import asyncio
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from market_intel.config import get_settings
from market_intel.core.metrics import ARTICLES_PROCESSED, LLM_FALLBACKS_TOTAL
from market_intel.integrations.llm.base import LLMResponseError, TextGenerator
from market_intel.integrations.llm.generator import request_json
from market_intel.schemas.intelligence import EnrichedArticle, NewsArticle, TrendDirection

logger = logging.getLogger("market_intel.reader")

READER_TEMPERATURE = 0.3
READER_MAX_TOKENS = 1500
MAX_ENTITIES = 10

NEUTRAL_SENTIMENT = 0.0
NEUTRAL_IMPACT = 50.0


class ReaderEntry(BaseModel):
    """One element of the model's JSON array. Strict: no string-to-number coercion."""
    model_config = ConfigDict(strict=True)

    index: int
    sentiment_score: float = Field(ge=-1, le=1)
    impact_score: float = Field(ge=0, le=100)
    key_entities: list[str] = []
    trend_direction: TrendDirection

    @field_validator("trend_direction", mode="before")
    @classmethod
    def _lower_direction(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        cleaned = v.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            out.append(cleaned)
    return out[:MAX_ENTITIES]


def _base_fields(article: NewsArticle) -> dict:
    return article.model_dump(exclude={"article_key"})


def neutral_enrichment(article: NewsArticle) -> EnrichedArticle:
    return EnrichedArticle(
        **_base_fields(article),
        sentiment_score=NEUTRAL_SENTIMENT,
        impact_score=NEUTRAL_IMPACT,
        key_entities=[],
        trend_direction="neutral",
    )


def build_reader_prompt(batch: list[NewsArticle]) -> str:
    lines = [
        f'{i}. [{a.category}] ({a.ticker}) "{a.headline}"' + (f" - {a.source}" if a.source else "")
        for i, a in enumerate(batch, start=1)
    ]
    return (
        "You are a financial news analyst. Score each headline below.\n\n"
        "Headlines:\n" + "\n".join(lines) + "\n\n"
        "Return ONLY a JSON array with one object per headline:\n"
        '[{"index": 1, "sentiment_score": -1.0 to 1.0, "impact_score": 0 to 100, '
        '"key_entities": ["company, person or place"], '
        '"trend_direction": "bullish" | "bearish" | "neutral"}]\n'
        f"Use the headline numbers 1-{len(batch)} as index. "
        "sentiment_score is market sentiment for the named ticker, impact_score is "
        "how much the story could move markets."
    )


def apply_enrichment(batch: list[NewsArticle], payload) -> list[EnrichedArticle]:
    """Match the model's indexed entries back onto the batch.

    Articles whose index is missing, or whose entry fails validation, get
    neutral defaults.

    Raises:
        LLMResponseError: when the payload is not a JSON array.
    """
    if not isinstance(payload, list):
        raise LLMResponseError(f"Reader expected a JSON array, got {type(payload).__name__}")

    entries: dict[int, ReaderEntry] = {}
    rejected = 0
    for raw in payload:
        try:
            entry = ReaderEntry.model_validate(raw)
        except ValidationError:
            rejected += 1
            continue
        if 1 <= entry.index <= len(batch) and entry.index not in entries:
            entries[entry.index] = entry

    if rejected:
        logger.warning("Reader rejected %d invalid entries in a batch of %d", rejected, len(batch))

    enriched: list[EnrichedArticle] = []
    for i, article in enumerate(batch, start=1):
        entry = entries.get(i)
        if entry is None:
            enriched.append(neutral_enrichment(article))
            continue
        enriched.append(EnrichedArticle(
            **_base_fields(article),
            sentiment_score=entry.sentiment_score,
            impact_score=entry.impact_score,
            key_entities=_dedupe(entry.key_entities),
            trend_direction=entry.trend_direction,
        ))
    return enriched


async def enrich_batch(batch: list[NewsArticle], generator: TextGenerator) -> list[EnrichedArticle]:
    try:
        payload = await request_json(
            generator,
            build_reader_prompt(batch),
            stage="reader",
            temperature=READER_TEMPERATURE,
            max_output_tokens=READER_MAX_TOKENS,
        )
        return apply_enrichment(batch, payload)
    except Exception as e:
        LLM_FALLBACKS_TOTAL.labels(stage="reader").inc()
        logger.warning("Reader batch of %d fell back to neutral defaults: %s", len(batch), e)
        return [neutral_enrichment(a) for a in batch]


async def run_reader_agent(
    articles: list[NewsArticle],
    generator: TextGenerator,
    *,
    batch_size: int | None = None,
    batch_delay: float | None = None,
) -> list[EnrichedArticle]:
    """Enrich articles batch by batch; output matches the input in length and order."""
    settings = get_settings()
    size = max(1, batch_size or settings.reader_batch_size)
    delay = settings.reader_batch_delay_seconds if batch_delay is None else batch_delay

    enriched: list[EnrichedArticle] = []
    batches = [articles[i:i + size] for i in range(0, len(articles), size)]
    for n, batch in enumerate(batches):
        enriched.extend(await enrich_batch(batch, generator))
        if delay > 0 and n < len(batches) - 1:
            await asyncio.sleep(delay)

    for article in enriched:
        ARTICLES_PROCESSED.labels(category=article.category).inc()

    logger.info("Reader enriched %d articles in %d batches", len(enriched), len(batches))
    return enriched
