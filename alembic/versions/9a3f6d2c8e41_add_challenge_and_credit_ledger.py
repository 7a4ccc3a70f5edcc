"""add challenge and credit ledger

Revision ID: 9a3f6d2c8e41
Revises: 4c1e2a7b9d10
Create Date: 2026-10-09

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '9a3f6d2c8e41'
down_revision = '4c1e2a7b9d10'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'challenges',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('prize_pool', sa.Integer(), nullable=False, server_default='10000'),
        sa.Column('participant_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_challenges_status', 'challenges', ['status'])

    op.create_table(
        'challenge_enrollments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('challenge_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('challenges.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('starting_balance', sa.Numeric(12, 2), nullable=False, server_default='10000'),
        sa.Column('current_balance', sa.Numeric(12, 2), nullable=False, server_default='10000'),
        sa.Column('total_return_percent', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_trades', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('winning_trades', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('milestones_achieved', postgresql.ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('final_rank', sa.Integer(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('user_id', 'challenge_id', name='uq_enrollment_user_challenge'),
        sa.CheckConstraint("status IN ('active', 'completed', 'abandoned')", name='ck_challenge_enrollments_status_valid'),
    )
    op.create_index('ix_challenge_enrollments_user_id', 'challenge_enrollments', ['user_id'])

    op.create_table(
        'challenge_trades',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('enrollment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('challenge_enrollments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('ticker', sa.String(16), nullable=False),
        sa.Column('action', sa.String(8), nullable=False),
        sa.Column('shares', sa.Numeric(12, 4), nullable=False),
        sa.Column('price', sa.Numeric(12, 4), nullable=False),
        sa.Column('total_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('ai_model_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('ai_models.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint("action IN ('buy', 'sell')", name='ck_challenge_trades_action_valid'),
        sa.CheckConstraint('shares > 0', name='ck_challenge_trades_shares_positive'),
    )

    op.create_table(
        'user_credits',
        sa.Column('user_id', sa.String(64), primary_key=True),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )

    op.create_table(
        'credit_transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_credit_transactions_user_id', 'credit_transactions', ['user_id'])

    op.create_table(
        'user_subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('plan_id', sa.String(32), nullable=False, server_default='free'),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_user_subscriptions_user_id', 'user_subscriptions', ['user_id'])


def downgrade():
    op.drop_index('ix_user_subscriptions_user_id', table_name='user_subscriptions')
    op.drop_table('user_subscriptions')
    op.drop_index('ix_credit_transactions_user_id', table_name='credit_transactions')
    op.drop_table('credit_transactions')
    op.drop_table('user_credits')
    op.drop_table('challenge_trades')
    op.drop_index('ix_challenge_enrollments_user_id', table_name='challenge_enrollments')
    op.drop_table('challenge_enrollments')
    op.drop_index('ix_challenges_status', table_name='challenges')
    op.drop_table('challenges')
