"""Initial schema: players and doubles matches

Revision ID: 20261001_initial
Revises:
Create Date: 2026-10-01

Creates the players table (with the Glicko-2 rating_info JSON column) and
the matches table holding four player slots and up to three set scores.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create players and matches."""
    # === PLAYERS ===
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("rating_info", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )

    # === MATCHES ===
    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("player1_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("player2_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("player3_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("player4_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("team1_score_set1", sa.Integer(), nullable=True),
        sa.Column("team2_score_set1", sa.Integer(), nullable=True),
        sa.Column("team1_score_set2", sa.Integer(), nullable=True),
        sa.Column("team2_score_set2", sa.Integer(), nullable=True),
        sa.Column("team1_score_set3", sa.Integer(), nullable=True),
        sa.Column("team2_score_set3", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("region", sa.String(), nullable=True),
        sa.Column("court", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    # Add indexes on foreign keys
    for slot in range(1, 5):
        op.create_index(f"ix_matches_player{slot}_id", "matches", [f"player{slot}_id"])


def downgrade() -> None:
    """Drop matches and players."""
    for slot in range(4, 0, -1):
        op.drop_index(f"ix_matches_player{slot}_id", "matches")
    op.drop_table("matches")
    op.drop_table("players")
