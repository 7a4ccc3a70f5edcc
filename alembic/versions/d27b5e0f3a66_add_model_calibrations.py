"""add model calibrations

Revision ID: d27b5e0f3a66
Revises: 9a3f6d2c8e41
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = 'd27b5e0f3a66'
down_revision = '9a3f6d2c8e41'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'model_calibrations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('ai_model_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('ai_models.id', ondelete='CASCADE'), nullable=False),
        sa.Column('calibration_date', sa.DateTime(), nullable=False),
        sa.Column('total_picks', sa.Integer(), nullable=False),
        sa.Column('wins', sa.Integer(), nullable=False),
        sa.Column('losses', sa.Integer(), nullable=False),
        sa.Column('win_rate', sa.Float(), nullable=False),
        sa.Column('avg_return', sa.Float(), nullable=False),
        sa.Column('avg_confidence', sa.Float(), nullable=False),
        sa.Column('confidence_accuracy_correlation', sa.Float(), nullable=False),
        sa.Column('overconfidence_score', sa.Float(), nullable=False),
        sa.Column('best_categories', postgresql.ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('worst_categories', postgresql.ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('key_learnings', postgresql.ARRAY(sa.Text()), nullable=False, server_default='{}'),
        sa.Column('adjustments', postgresql.ARRAY(sa.Text()), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_model_calibrations_ai_model_id', 'model_calibrations', ['ai_model_id'])


def downgrade():
    op.drop_index('ix_model_calibrations_ai_model_id', table_name='model_calibrations')
    op.drop_table('model_calibrations')
