"""create market intelligence tables

Revision ID: a1c4e7f2b9d3
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'a1c4e7f2b9d3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('daily_analyses',
        sa.Column('analysis_date', sa.Date(), nullable=False),
        sa.Column('briefing', sa.Text(), nullable=False),
        sa.Column('trend_report', postgresql.JSONB(), nullable=False),
        sa.Column('strategist_report', postgresql.JSONB(), nullable=False),
        sa.Column('article_count', sa.Integer(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_daily_analyses_analysis_date', 'daily_analyses', ['analysis_date'], unique=True)

    op.create_table('enriched_articles',
        sa.Column('article_date', sa.Date(), nullable=False),
        sa.Column('article_key', sa.String(length=40), nullable=False),
        sa.Column('ticker', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('headline', sa.Text(), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('source', sa.String(length=200), nullable=False),
        sa.Column('sentiment_score', sa.Float(), nullable=False),
        sa.Column('impact_score', sa.Float(), nullable=False),
        sa.Column('key_entities', postgresql.JSONB(), nullable=False),
        sa.Column('trend_direction', sa.String(length=10), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('article_date', 'article_key', name='uq_enriched_articles_date_key'),
    )
    op.create_index('ix_enriched_articles_article_date', 'enriched_articles', ['article_date'])
    op.create_index('ix_enriched_articles_category', 'enriched_articles', ['category'])

    op.create_table('sentiment_history',
        sa.Column('history_date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('avg_sentiment', sa.Float(), nullable=False),
        sa.Column('article_count', sa.Integer(), nullable=False),
        sa.Column('top_topics', postgresql.JSONB(), nullable=False),
        sa.Column('trend_momentum', sa.String(length=20), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('history_date', 'category', name='uq_sentiment_history_date_category'),
    )
    op.create_index('ix_sentiment_history_history_date', 'sentiment_history', ['history_date'])

    op.create_table('narrative_threads',
        sa.Column('thread_id', sa.String(length=80), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('first_seen', sa.Date(), nullable=False),
        sa.Column('last_seen', sa.Date(), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('cluster_ids', postgresql.JSONB(), nullable=False),
        sa.Column('sentiment_arc', postgresql.JSONB(), nullable=False),
        sa.Column('entities', postgresql.JSONB(), nullable=False),
        sa.Column('keywords', postgresql.JSONB(), nullable=False),
        sa.Column('categories', postgresql.JSONB(), nullable=False),
        sa.Column('escalation', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_narrative_threads_thread_id', 'narrative_threads', ['thread_id'], unique=True)
    op.create_index('ix_narrative_threads_last_seen', 'narrative_threads', ['last_seen'])

    op.create_table('backtest_results',
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('sentiment_accuracy', sa.Float(), nullable=False),
        sa.Column('pearson_correlation', sa.Float(), nullable=True),
        sa.Column('spearman_correlation', sa.Float(), nullable=True),
        sa.Column('gpr_correlation', sa.Float(), nullable=True),
        sa.Column('sample_size', sa.Integer(), nullable=False),
        sa.Column('result', postgresql.JSONB(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_start', 'period_end', name='uq_backtest_results_period'),
    )
    op.create_index('ix_backtest_results_period_end', 'backtest_results', ['period_end'])

    op.create_table('weekly_scorecards',
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('week_end', sa.Date(), nullable=False),
        sa.Column('direction_accuracy', sa.Float(), nullable=False),
        sa.Column('pearson_r', sa.Float(), nullable=True),
        sa.Column('spearman_r', sa.Float(), nullable=True),
        sa.Column('sample_size', sa.Integer(), nullable=False),
        sa.Column('avg_sentiment', sa.Float(), nullable=False),
        sa.Column('avg_return', sa.Float(), nullable=False),
        sa.Column('grade', sa.String(length=4), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_weekly_scorecards_week_start', 'weekly_scorecards', ['week_start'], unique=True)

    op.create_table('gpr_history',
        sa.Column('gpr_date', sa.Date(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('keyword_counts', postgresql.JSONB(), nullable=False),
        sa.Column('top_keywords', postgresql.JSONB(), nullable=False),
        sa.Column('article_count', sa.Integer(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_gpr_history_gpr_date', 'gpr_history', ['gpr_date'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_gpr_history_gpr_date', table_name='gpr_history')
    op.drop_table('gpr_history')
    op.drop_index('ix_weekly_scorecards_week_start', table_name='weekly_scorecards')
    op.drop_table('weekly_scorecards')
    op.drop_index('ix_backtest_results_period_end', table_name='backtest_results')
    op.drop_table('backtest_results')
    op.drop_index('ix_narrative_threads_last_seen', table_name='narrative_threads')
    op.drop_index('ix_narrative_threads_thread_id', table_name='narrative_threads')
    op.drop_table('narrative_threads')
    op.drop_index('ix_sentiment_history_history_date', table_name='sentiment_history')
    op.drop_table('sentiment_history')
    op.drop_index('ix_enriched_articles_category', table_name='enriched_articles')
    op.drop_index('ix_enriched_articles_article_date', table_name='enriched_articles')
    op.drop_table('enriched_articles')
    op.drop_index('ix_daily_analyses_analysis_date', table_name='daily_analyses')
    op.drop_table('daily_analyses')
