"""add daily volume and entity sentiment tables

Revision ID: c7d2e9a4f1b6
Revises: a1c4e7f2b9d3
Create Date: 2026-10-17 15:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = 'c7d2e9a4f1b6'
down_revision: Union[str, None] = 'a1c4e7f2b9d3'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('daily_volumes',
        sa.Column('volume_date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('article_count', sa.Integer(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('volume_date', 'category', name='uq_daily_volumes_date_category'),
    )
    op.create_index('ix_daily_volumes_volume_date', 'daily_volumes', ['volume_date'])

    op.create_table('entity_sentiment',
        sa.Column('sentiment_date', sa.Date(), nullable=False),
        sa.Column('entity', sa.String(length=200), nullable=False),
        sa.Column('avg_sentiment', sa.Float(), nullable=False),
        sa.Column('article_count', sa.Integer(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sentiment_date', 'entity', name='uq_entity_sentiment_date_entity'),
    )
    op.create_index('ix_entity_sentiment_sentiment_date', 'entity_sentiment', ['sentiment_date'])
    op.create_index('ix_entity_sentiment_entity', 'entity_sentiment', ['entity'])


def downgrade() -> None:
    op.drop_index('ix_entity_sentiment_entity', table_name='entity_sentiment')
    op.drop_index('ix_entity_sentiment_sentiment_date', table_name='entity_sentiment')
    op.drop_table('entity_sentiment')
    op.drop_index('ix_daily_volumes_volume_date', table_name='daily_volumes')
    op.drop_table('daily_volumes')
