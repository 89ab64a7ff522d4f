"""add tracked_runs table

Revision ID: 3e1c6b0f9a42
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3e1c6b0f9a42'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'tracked_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('avg_speed_kmh', sa.Numeric(5, 1), nullable=False),
        sa.Column('distance_m', sa.Integer(), nullable=False),
        sa.Column('duration_ms', sa.BigInteger(), nullable=False),
        sa.Column('calories_burned', sa.Integer(), nullable=False),
        sa.Column('image_ref', sa.String(), nullable=True),
        sa.Column('track', sa.JSON(), nullable=True),
        sa.Column('bounds', sa.JSON(), nullable=True),
        sa.Column('points_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tracked_runs_id', 'tracked_runs', ['id'])
    op.create_index('ix_tracked_runs_timestamp', 'tracked_runs', ['timestamp'])


def downgrade() -> None:
    op.drop_index('ix_tracked_runs_timestamp', table_name='tracked_runs')
    op.drop_index('ix_tracked_runs_id', table_name='tracked_runs')
    op.drop_table('tracked_runs')
