"""Add match validation tracking, reports and rating audit

Revision ID: 20261010_validation
Revises: 20261001_initial
Create Date: 2026-10-10

This migration adds:
- validation lifecycle columns on matches (deadline, status, report count,
  rating_applied guard, disputed/completed timestamps)
- match_reports, unique per (match_id, reporter_id)
- match_rating_changes, one audit row per player per validated match
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261010_validation"
down_revision: Union[str, Sequence[str], None] = "20261001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add validation columns and the report/audit tables."""
    # === MATCHES ===
    op.add_column(
        "matches",
        sa.Column("validation_deadline", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "matches",
        sa.Column("validation_status", sa.String(), nullable=True),
    )
    op.add_column(
        "matches",
        sa.Column("report_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.add_column(
        "matches",
        sa.Column("rating_applied", sa.Boolean(), nullable=False, server_default="0"),
    )
    op.add_column(
        "matches",
        sa.Column("disputed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "matches",
        sa.Column("validation_completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    # The processor scans pending matches by deadline
    op.create_index(
        "ix_matches_validation_deadline", "matches", ["validation_deadline"]
    )
    op.create_index("ix_matches_validation_status", "matches", ["validation_status"])

    # === MATCH_REPORTS ===
    op.create_table(
        "match_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column(
            "reporter_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False
        ),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("additional_details", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("match_id", "reporter_id", name="_match_reporter_uc"),
    )
    op.create_index("ix_match_reports_match_id", "match_reports", ["match_id"])
    op.create_index("ix_match_reports_reporter_id", "match_reports", ["reporter_id"])

    # === MATCH_RATING_CHANGES ===
    op.create_table(
        "match_rating_changes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("rating_before", sa.Float(), nullable=False),
        sa.Column("rd_before", sa.Float(), nullable=False),
        sa.Column("vol_before", sa.Float(), nullable=False),
        sa.Column("rating_after", sa.Float(), nullable=False),
        sa.Column("rd_after", sa.Float(), nullable=False),
        sa.Column("vol_after", sa.Float(), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("match_id", "player_id", name="_match_player_change_uc"),
    )
    op.create_index(
        "ix_match_rating_changes_match_id", "match_rating_changes", ["match_id"]
    )
    op.create_index(
        "ix_match_rating_changes_player_id", "match_rating_changes", ["player_id"]
    )


def downgrade() -> None:
    """Remove the report/audit tables and validation columns."""
    # === MATCH_RATING_CHANGES ===
    op.drop_index("ix_match_rating_changes_player_id", "match_rating_changes")
    op.drop_index("ix_match_rating_changes_match_id", "match_rating_changes")
    op.drop_table("match_rating_changes")

    # === MATCH_REPORTS ===
    op.drop_index("ix_match_reports_reporter_id", "match_reports")
    op.drop_index("ix_match_reports_match_id", "match_reports")
    op.drop_table("match_reports")

    # === MATCHES ===
    op.drop_index("ix_matches_validation_status", "matches")
    op.drop_index("ix_matches_validation_deadline", "matches")
    op.drop_column("matches", "validation_completed_at")
    op.drop_column("matches", "disputed_at")
    op.drop_column("matches", "rating_applied")
    op.drop_column("matches", "report_count")
    op.drop_column("matches", "validation_status")
    op.drop_column("matches", "validation_deadline")
