"""create pick cycle tables

Revision ID: 4c1e2a7b9d10
Revises:
Create Date: 2026-10-05

"""
import uuid

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '4c1e2a7b9d10'
down_revision = None
branch_labels = None
depends_on = None


AI_MODELS = [
    ('gpt-4', 'GPT-4', 'openai'),
    ('claude', 'Claude', 'anthropic'),
    ('gemini', 'Gemini', 'google'),
    ('perplexity', 'Perplexity', 'perplexity'),
    ('javari', 'Javari', 'anthropic'),
]


def upgrade():
    op.create_table(
        'competitions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint("status IN ('active', 'ended')", name='ck_competitions_status_valid'),
    )
    op.create_index('ix_competitions_status', 'competitions', ['status'])

    ai_models = op.create_table(
        'ai_models',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(64), nullable=False, unique=True),
        sa.Column('display_name', sa.String(128), nullable=True),
        sa.Column('provider', sa.String(32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('total_picks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_wins', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_losses', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('win_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('total_profit_loss', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_win_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('worst_loss_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )

    op.create_table(
        'stock_picks',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('competition_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('competitions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ai_model_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('ai_models.id'), nullable=False),
        sa.Column('ticker', sa.String(16), nullable=False),
        sa.Column('category', sa.String(16), nullable=False),
        sa.Column('direction', sa.String(8), nullable=False, server_default='UP'),
        sa.Column('confidence', sa.Integer(), nullable=False),
        sa.Column('entry_price', sa.Numeric(20, 8), nullable=False),
        sa.Column('target_price', sa.Numeric(20, 8), nullable=False),
        sa.Column('stop_loss', sa.Numeric(20, 8), nullable=True),
        sa.Column('reasoning', sa.Text(), nullable=True),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('pick_date', sa.DateTime(), nullable=False),
        sa.Column('expiry_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('result', sa.String(8), nullable=True),
        sa.Column('profit_loss_percent', sa.Float(), nullable=True),
        sa.Column('closed_price', sa.Numeric(20, 8), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('current_price', sa.Numeric(20, 8), nullable=True),
        sa.Column('price_change', sa.Numeric(20, 8), nullable=True),
        sa.Column('price_change_pct', sa.Float(), nullable=True),
        sa.Column('last_price_update', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('confidence >= 0 AND confidence <= 100', name='ck_stock_picks_confidence_range'),
        sa.CheckConstraint("status IN ('active', 'expired')", name='ck_stock_picks_status_valid'),
        sa.CheckConstraint("result IS NULL OR result IN ('win', 'loss')", name='ck_stock_picks_result_valid'),
    )
    op.create_index('ix_stock_picks_competition_id', 'stock_picks', ['competition_id'])
    op.create_index('ix_stock_picks_ai_model_id', 'stock_picks', ['ai_model_id'])
    op.create_index('ix_stock_picks_ticker', 'stock_picks', ['ticker'])
    op.create_index('ix_stock_picks_status', 'stock_picks', ['status'])
    op.create_index('ix_stock_picks_expiry_date', 'stock_picks', ['expiry_date'])

    op.create_table(
        'ai_call_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('ai_name', sa.String(64), nullable=False),
        sa.Column('category', sa.String(16), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('model_used', sa.String(128), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )

    op.bulk_insert(ai_models, [
        {'id': uuid.uuid4(), 'name': name, 'display_name': display, 'provider': provider}
        for name, display, provider in AI_MODELS
    ])


def downgrade():
    op.drop_table('ai_call_logs')
    op.drop_index('ix_stock_picks_expiry_date', table_name='stock_picks')
    op.drop_index('ix_stock_picks_status', table_name='stock_picks')
    op.drop_index('ix_stock_picks_ticker', table_name='stock_picks')
    op.drop_index('ix_stock_picks_ai_model_id', table_name='stock_picks')
    op.drop_index('ix_stock_picks_competition_id', table_name='stock_picks')
    op.drop_table('stock_picks')
    op.drop_table('ai_models')
    op.drop_index('ix_competitions_status', table_name='competitions')
    op.drop_table('competitions')
