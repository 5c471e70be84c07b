"""Add per-player score confirmations

Revision ID: 20261018_confirmations
Revises: 20261010_validation
Create Date: 2026-10-18

This migration adds:
- match_confirmations, one confirm/reject answer per (match_id, player_id)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_confirmations"
down_revision: Union[str, Sequence[str], None] = "20261010_validation"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the match_confirmations table."""
    op.create_table(
        "match_confirmations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("match_id", "player_id", name="_match_confirmer_uc"),
    )
    op.create_index(
        "ix_match_confirmations_match_id", "match_confirmations", ["match_id"]
    )
    op.create_index(
        "ix_match_confirmations_player_id", "match_confirmations", ["player_id"]
    )


def downgrade() -> None:
    """Drop the match_confirmations table."""
    op.drop_index("ix_match_confirmations_player_id", "match_confirmations")
    op.drop_index("ix_match_confirmations_match_id", "match_confirmations")
    op.drop_table("match_confirmations")
