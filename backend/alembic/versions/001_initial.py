"""Initial migration - create race results tables

Revision ID: 001_initial
Revises:
Create Date: 2025-09-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create race_events table
    op.create_table(
        'race_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('source_event_id', sa.String(64), nullable=False),
        sa.Column('source_race_id', sa.String(64), nullable=False),
        sa.Column('source', sa.String(20), nullable=True),
        sa.Column('list_name', sa.String(100), nullable=True),
        sa.Column('event_name', sa.String(255), nullable=True),
        sa.Column('race_name', sa.String(255), nullable=True),
        sa.Column('event_date', sa.String(10), nullable=True),
        sa.Column('distance_m', sa.Integer(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('total_finishers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('imported_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('source_event_id', 'source_race_id', name='uq_race_events_source'),
    )

    # Create race_finishers table
    op.create_table(
        'race_finishers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'race_event_id',
            sa.Integer(),
            sa.ForeignKey('race_events.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('bib', sa.String(20), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('gender', sa.SmallInteger(), nullable=True),
        sa.Column('age_group', sa.String(100), nullable=True),
        sa.Column('overall_rank', sa.Integer(), nullable=True),
        sa.Column('gender_rank', sa.Integer(), nullable=True),
        sa.Column('age_group_rank', sa.Integer(), nullable=True),
        sa.Column('chip_time_s', sa.Integer(), nullable=True),
        sa.Column('country_code', sa.String(8), nullable=True),
        sa.Column('athlete_id', sa.String(36), nullable=True),
    )
    op.create_index('ix_race_finishers_race_event_id', 'race_finishers', ['race_event_id'])
    op.create_index('ix_race_finishers_event_bib', 'race_finishers', ['race_event_id', 'bib'])
    op.create_index('ix_race_finishers_athlete_id', 'race_finishers', ['athlete_id'])


def downgrade() -> None:
    op.drop_index('ix_race_finishers_athlete_id', table_name='race_finishers')
    op.drop_index('ix_race_finishers_event_bib', table_name='race_finishers')
    op.drop_index('ix_race_finishers_race_event_id', table_name='race_finishers')
    op.drop_table('race_finishers')
    op.drop_table('race_events')
