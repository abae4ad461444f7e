"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00.000000

Complete database schema - creates all tables from scratch.

Creates all tables based on current models including:
- Core tables: players, seasons, divisions, matches, match_participants
- Score tables: match_set_scores, match_game_scores
- Standings tables: match_results, division_standings
- Queue table: standings_recalculation_jobs
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from deuce.database.db import Base
    from deuce.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from deuce.database.db import Base
    from deuce.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
