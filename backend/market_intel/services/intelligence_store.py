"""Persistence adapter for the intelligence pipeline.

Every write is an idempotent upsert on a natural key (INSERT ... ON CONFLICT
DO UPDATE), so re-running a date replaces that date's rows. Storage problems
never abort a run: a missing table is logged as a warning, any other database
error is logged as an error, and reads fall back to empty results.
"""

import logging
import uuid
from datetime import date
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from market_intel.core.metrics import PERSISTENCE_SKIPS
from market_intel.models.daily_analysis import (
    DailyAnalysisRecord,
    EnrichedArticleRecord,
    SentimentHistoryEntry,
)
from market_intel.models.narrative import NarrativeThreadRecord
from market_intel.models.signals import DailyVolumeEntry, EntitySentimentEntry
from market_intel.models.validation import (
    BacktestResultRecord,
    GPRHistoryEntry,
    WeeklyScorecardRecord,
)
from market_intel.schemas.intelligence import (
    DailyAnalysis,
    EnrichedArticle,
    GPRDataPoint,
    SentimentHistoryRecord,
    StrategistReport,
    TrendReport,
)
from market_intel.schemas.narrative import NarrativeThread
from market_intel.schemas.signals import CategoryVolume, EntitySentimentPoint
from market_intel.schemas.validation import ValidationResult, WeeklyReport

logger = logging.getLogger("market_intel.store")

T = TypeVar("T")

UNDEFINED_TABLE_SQLSTATE = "42P01"


def is_missing_table_error(exc: BaseException) -> bool:
    """True for PostgreSQL "relation does not exist" (SQLSTATE 42P01)."""
    orig = getattr(exc, "orig", None)
    for source in (exc, orig, getattr(orig, "__cause__", None)):
        if source is None:
            continue
        code = getattr(source, "sqlstate", None) or getattr(source, "pgcode", None)
        if code == UNDEFINED_TABLE_SQLSTATE:
            return True
    return "does not exist" in str(exc)


def _upsert(model, rows: list[dict], conflict_columns: list[str]):
    stmt = pg_insert(model).values(rows)
    skip = set(conflict_columns) | {"id", "created_at"}
    update_cols = {
        key: stmt.excluded[key] for key in rows[0].keys() if key not in skip
    }
    update_cols["updated_at"] = func.now()
    return stmt.on_conflict_do_update(index_elements=conflict_columns, set_=update_cols)


# ── Record ↔ schema conversion ───────────────────────────────


def _article_row(day: date, article: EnrichedArticle) -> dict:
    return {
        "id": uuid.uuid4(),
        "article_date": day,
        "article_key": article.article_key,
        "ticker": article.ticker,
        "category": article.category,
        "headline": article.headline,
        "url": article.url,
        "source": article.source,
        "sentiment_score": article.sentiment_score,
        "impact_score": article.impact_score,
        "key_entities": list(article.key_entities),
        "trend_direction": article.trend_direction,
    }


def _article_from_record(r: EnrichedArticleRecord) -> EnrichedArticle:
    return EnrichedArticle(
        ticker=r.ticker,
        headline=r.headline,
        url=r.url,
        source=r.source,
        category=r.category,
        sentiment_score=r.sentiment_score,
        impact_score=r.impact_score,
        key_entities=list(r.key_entities or []),
        trend_direction=r.trend_direction,
    )


def _sentiment_from_record(r: SentimentHistoryEntry) -> SentimentHistoryRecord:
    return SentimentHistoryRecord(
        date=r.history_date,
        category=r.category,
        avg_sentiment=r.avg_sentiment,
        article_count=r.article_count,
        top_topics=list(r.top_topics or []),
        trend_momentum=r.trend_momentum,
    )


def _gpr_from_record(r: GPRHistoryEntry) -> GPRDataPoint:
    return GPRDataPoint(
        date=r.gpr_date,
        score=r.score,
        keyword_counts=dict(r.keyword_counts or {}),
        top_keywords=list(r.top_keywords or []),
        article_count=r.article_count,
    )


def _scorecard_from_record(r: WeeklyScorecardRecord) -> WeeklyReport:
    return WeeklyReport(
        week_start=r.week_start,
        week_end=r.week_end,
        direction_accuracy=r.direction_accuracy,
        pearson_r=r.pearson_r,
        spearman_r=r.spearman_r,
        sample_size=r.sample_size,
        avg_sentiment=r.avg_sentiment,
        avg_return=r.avg_return,
        grade=r.grade,
    )


class IntelligenceStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ── Error policy ──────────────────────────────────────────

    def _log_failure(self, table: str, action: str, exc: BaseException) -> None:
        if is_missing_table_error(exc):
            PERSISTENCE_SKIPS.labels(table=table, reason="missing_table").inc()
            logger.warning("Table %s not provisioned, skipping %s", table, action)
        else:
            PERSISTENCE_SKIPS.labels(table=table, reason="error").inc()
            logger.error("Database %s on %s failed: %s", action, table, exc)

    async def _write(self, table: str, work: Callable[[AsyncSession], Awaitable[None]]) -> bool:
        try:
            async with self.session_factory() as session:
                await work(session)
                await session.commit()
            return True
        except (SQLAlchemyError, OSError) as e:
            self._log_failure(table, "write", e)
            return False

    async def _read(self, table: str, work: Callable[[AsyncSession], Awaitable[T]], default: T) -> T:
        try:
            async with self.session_factory() as session:
                return await work(session)
        except (SQLAlchemyError, OSError) as e:
            self._log_failure(table, "read", e)
            return default

    # ── Daily analysis ────────────────────────────────────────

    async def save_daily_analysis(self, analysis: DailyAnalysis) -> bool:
        row = {
            "id": uuid.uuid4(),
            "analysis_date": analysis.date,
            "briefing": analysis.briefing,
            "trend_report": analysis.trend_report.model_dump(mode="json"),
            "strategist_report": analysis.strategist_report.model_dump(mode="json"),
            "article_count": len(analysis.enriched_articles),
        }

        async def work(session: AsyncSession) -> None:
            await session.execute(_upsert(DailyAnalysisRecord, [row], ["analysis_date"]))

        return await self._write("daily_analyses", work)

    async def save_enriched_articles(self, day: date, articles: list[EnrichedArticle]) -> bool:
        rows = list({a.article_key: _article_row(day, a) for a in articles}.values())

        async def work(session: AsyncSession) -> None:
            # Rows from an earlier run of the same date that this run no longer has
            await session.execute(
                delete(EnrichedArticleRecord).where(
                    EnrichedArticleRecord.article_date == day,
                    EnrichedArticleRecord.article_key.not_in([r["article_key"] for r in rows]),
                )
            )
            if rows:
                await session.execute(
                    _upsert(EnrichedArticleRecord, rows, ["article_date", "article_key"])
                )

        return await self._write("enriched_articles", work)

    async def save_sentiment_history(self, day: date, records: list[SentimentHistoryRecord]) -> bool:
        rows = [
            {
                "id": uuid.uuid4(),
                "history_date": r.date,
                "category": r.category,
                "avg_sentiment": r.avg_sentiment,
                "article_count": r.article_count,
                "top_topics": list(r.top_topics),
                "trend_momentum": r.trend_momentum,
            }
            for r in records
        ]

        async def work(session: AsyncSession) -> None:
            await session.execute(
                delete(SentimentHistoryEntry).where(
                    SentimentHistoryEntry.history_date == day,
                    SentimentHistoryEntry.category.not_in([r["category"] for r in rows]),
                )
            )
            if rows:
                await session.execute(
                    _upsert(SentimentHistoryEntry, rows, ["history_date", "category"])
                )

        return await self._write("sentiment_history", work)

    async def save_gpr(self, point: GPRDataPoint) -> bool:
        row = {
            "id": uuid.uuid4(),
            "gpr_date": point.date,
            "score": point.score,
            "keyword_counts": dict(point.keyword_counts),
            "top_keywords": list(point.top_keywords),
            "article_count": point.article_count,
        }

        async def work(session: AsyncSession) -> None:
            await session.execute(_upsert(GPRHistoryEntry, [row], ["gpr_date"]))

        return await self._write("gpr_history", work)

    async def _analysis_from_record(self, session: AsyncSession, record: DailyAnalysisRecord) -> DailyAnalysis:
        result = await session.execute(
            select(EnrichedArticleRecord)
            .where(EnrichedArticleRecord.article_date == record.analysis_date)
            .order_by(EnrichedArticleRecord.category, EnrichedArticleRecord.created_at)
        )
        return DailyAnalysis(
            date=record.analysis_date,
            briefing=record.briefing,
            trend_report=TrendReport.model_validate(record.trend_report),
            strategist_report=StrategistReport.model_validate(record.strategist_report),
            enriched_articles=[_article_from_record(r) for r in result.scalars().all()],
        )

    async def get_analysis(self, day: date) -> DailyAnalysis | None:
        async def work(session: AsyncSession) -> DailyAnalysis | None:
            result = await session.execute(
                select(DailyAnalysisRecord).where(DailyAnalysisRecord.analysis_date == day)
            )
            record = result.scalar_one_or_none()
            return await self._analysis_from_record(session, record) if record else None

        return await self._read("daily_analyses", work, None)

    async def get_latest_analysis(self) -> DailyAnalysis | None:
        async def work(session: AsyncSession) -> DailyAnalysis | None:
            result = await session.execute(
                select(DailyAnalysisRecord).order_by(DailyAnalysisRecord.analysis_date.desc()).limit(1)
            )
            record = result.scalar_one_or_none()
            return await self._analysis_from_record(session, record) if record else None

        return await self._read("daily_analyses", work, None)

    async def get_recent_analyses(self, since: date) -> list[DailyAnalysis]:
        """Analyses on or after `since`, newest first, without their article rows."""
        async def work(session: AsyncSession) -> list[DailyAnalysis]:
            result = await session.execute(
                select(DailyAnalysisRecord)
                .where(DailyAnalysisRecord.analysis_date >= since)
                .order_by(DailyAnalysisRecord.analysis_date.desc())
            )
            return [
                DailyAnalysis(
                    date=r.analysis_date,
                    briefing=r.briefing,
                    trend_report=TrendReport.model_validate(r.trend_report),
                    strategist_report=StrategistReport.model_validate(r.strategist_report),
                )
                for r in result.scalars().all()
            ]

        return await self._read("daily_analyses", work, [])

    # ── History reads ─────────────────────────────────────────

    async def get_sentiment_history(self, start: date, end: date) -> list[SentimentHistoryRecord]:
        async def work(session: AsyncSession) -> list[SentimentHistoryRecord]:
            result = await session.execute(
                select(SentimentHistoryEntry)
                .where(SentimentHistoryEntry.history_date.between(start, end))
                .order_by(SentimentHistoryEntry.history_date, SentimentHistoryEntry.category)
            )
            return [_sentiment_from_record(r) for r in result.scalars().all()]

        return await self._read("sentiment_history", work, [])

    async def get_enriched_articles(self, start: date, end: date) -> dict[date, list[EnrichedArticle]]:
        async def work(session: AsyncSession) -> dict[date, list[EnrichedArticle]]:
            result = await session.execute(
                select(EnrichedArticleRecord)
                .where(EnrichedArticleRecord.article_date.between(start, end))
                .order_by(EnrichedArticleRecord.article_date, EnrichedArticleRecord.created_at)
            )
            grouped: dict[date, list[EnrichedArticle]] = {}
            for r in result.scalars().all():
                grouped.setdefault(r.article_date, []).append(_article_from_record(r))
            return grouped

        return await self._read("enriched_articles", work, {})

    async def get_gpr_history(self, start: date, end: date) -> list[GPRDataPoint]:
        async def work(session: AsyncSession) -> list[GPRDataPoint]:
            result = await session.execute(
                select(GPRHistoryEntry)
                .where(GPRHistoryEntry.gpr_date.between(start, end))
                .order_by(GPRHistoryEntry.gpr_date)
            )
            return [_gpr_from_record(r) for r in result.scalars().all()]

        return await self._read("gpr_history", work, [])

    # ── Volumes and entity sentiment ──────────────────────────

    async def save_daily_volumes(self, day: date, volumes: list[CategoryVolume]) -> bool:
        rows = [
            {"id": uuid.uuid4(), "volume_date": day, "category": v.category, "article_count": v.article_count}
            for v in volumes
        ]

        async def work(session: AsyncSession) -> None:
            await session.execute(
                delete(DailyVolumeEntry).where(
                    DailyVolumeEntry.volume_date == day,
                    DailyVolumeEntry.category.not_in([r["category"] for r in rows]),
                )
            )
            if rows:
                await session.execute(_upsert(DailyVolumeEntry, rows, ["volume_date", "category"]))

        return await self._write("daily_volumes", work)

    async def get_daily_volumes(self, start: date, end: date) -> list[CategoryVolume]:
        async def work(session: AsyncSession) -> list[CategoryVolume]:
            result = await session.execute(
                select(DailyVolumeEntry)
                .where(DailyVolumeEntry.volume_date.between(start, end))
                .order_by(DailyVolumeEntry.volume_date, DailyVolumeEntry.category)
            )
            return [
                CategoryVolume(date=r.volume_date, category=r.category, article_count=r.article_count)
                for r in result.scalars().all()
            ]

        return await self._read("daily_volumes", work, [])

    async def save_entity_sentiment(self, day: date, points: list[EntitySentimentPoint]) -> bool:
        rows = [
            {
                "id": uuid.uuid4(),
                "sentiment_date": day,
                "entity": p.entity,
                "avg_sentiment": p.avg_sentiment,
                "article_count": p.article_count,
            }
            for p in points
        ]

        async def work(session: AsyncSession) -> None:
            await session.execute(
                delete(EntitySentimentEntry).where(
                    EntitySentimentEntry.sentiment_date == day,
                    EntitySentimentEntry.entity.not_in([r["entity"] for r in rows]),
                )
            )
            if rows:
                await session.execute(_upsert(EntitySentimentEntry, rows, ["sentiment_date", "entity"]))

        return await self._write("entity_sentiment", work)

    async def get_entity_sentiment(
        self, start: date, end: date, entity: str | None = None,
    ) -> list[EntitySentimentPoint]:
        """Daily points in the window, oldest first; one entity's timeline when `entity` is given."""
        async def work(session: AsyncSession) -> list[EntitySentimentPoint]:
            stmt = select(EntitySentimentEntry).where(EntitySentimentEntry.sentiment_date.between(start, end))
            if entity is not None:
                stmt = stmt.where(func.lower(EntitySentimentEntry.entity) == entity.lower())
            result = await session.execute(
                stmt.order_by(EntitySentimentEntry.sentiment_date, EntitySentimentEntry.entity)
            )
            return [
                EntitySentimentPoint(
                    entity=r.entity,
                    date=r.sentiment_date,
                    avg_sentiment=r.avg_sentiment,
                    article_count=r.article_count,
                )
                for r in result.scalars().all()
            ]

        return await self._read("entity_sentiment", work, [])

    # ── Narratives ────────────────────────────────────────────

    async def upsert_narrative_threads(self, threads: list[NarrativeThread]) -> bool:
        """Upsert the rollup's threads and resolve stored active threads it no longer contains.

        A thread whose last cluster slid out of the window is absent from the
        rollup, so its stored row would otherwise stay active forever.
        """
        rows = [
            {
                "id": uuid.uuid4(),
                "thread_id": t.id,
                "title": t.title,
                "first_seen": t.first_seen,
                "last_seen": t.last_seen,
                "duration_days": t.duration_days,
                "cluster_ids": list(t.cluster_ids),
                "sentiment_arc": list(t.sentiment_arc),
                "entities": list(t.entities),
                "keywords": list(t.keywords),
                "categories": list(t.categories),
                "escalation": t.escalation,
                "status": t.status,
            }
            for t in threads
        ]

        async def work(session: AsyncSession) -> None:
            if rows:
                await session.execute(_upsert(NarrativeThreadRecord, rows, ["thread_id"]))
            await session.execute(
                update(NarrativeThreadRecord)
                .where(
                    NarrativeThreadRecord.status == "active",
                    NarrativeThreadRecord.thread_id.not_in([r["thread_id"] for r in rows]),
                )
                .values(status="resolved", updated_at=func.now())
            )

        return await self._write("narrative_threads", work)

    # ── Backtests and scorecards ──────────────────────────────

    async def save_backtest_result(self, result: ValidationResult) -> bool:
        row = {
            "id": uuid.uuid4(),
            "period_start": result.period_start,
            "period_end": result.period_end,
            "sentiment_accuracy": result.sentiment_accuracy,
            "pearson_correlation": result.pearson_correlation,
            "spearman_correlation": result.spearman_correlation,
            "gpr_correlation": result.gpr_correlation,
            "sample_size": result.sample_size,
            "result": result.model_dump(mode="json"),
        }

        async def work(session: AsyncSession) -> None:
            await session.execute(_upsert(BacktestResultRecord, [row], ["period_start", "period_end"]))

        return await self._write("backtest_results", work)

    async def get_latest_backtest(self) -> ValidationResult | None:
        async def work(session: AsyncSession) -> ValidationResult | None:
            result = await session.execute(
                select(BacktestResultRecord).order_by(BacktestResultRecord.updated_at.desc()).limit(1)
            )
            record = result.scalar_one_or_none()
            return ValidationResult.model_validate(record.result) if record else None

        return await self._read("backtest_results", work, None)

    async def upsert_weekly_scorecard(self, report: WeeklyReport) -> bool:
        row: dict[str, Any] = {"id": uuid.uuid4(), **report.model_dump()}

        async def work(session: AsyncSession) -> None:
            await session.execute(_upsert(WeeklyScorecardRecord, [row], ["week_start"]))

        return await self._write("weekly_scorecards", work)

    async def get_scorecard_history(self, limit: int = 8) -> list[WeeklyReport]:
        """Most recent weeks first."""
        async def work(session: AsyncSession) -> list[WeeklyReport]:
            result = await session.execute(
                select(WeeklyScorecardRecord).order_by(WeeklyScorecardRecord.week_start.desc()).limit(limit)
            )
            return [_scorecard_from_record(r) for r in result.scalars().all()]

        return await self._read("weekly_scorecards", work, [])
