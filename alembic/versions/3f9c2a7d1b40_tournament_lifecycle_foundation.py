"""tournament_lifecycle_foundation

Revision ID: 3f9c2a7d1b40
Revises:
Create Date: 2026-03-01 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3f9c2a7d1b40"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "tournaments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("format", sa.String(length=32), nullable=False),
        sa.Column("min_players", sa.Integer(), nullable=False),
        sa.Column("max_players", sa.Integer(), nullable=False),
        sa.Column("match_deadline_min", sa.Integer(), nullable=False),
        sa.Column("tie_breaker", sa.String(length=16), nullable=False),
        sa.Column("created_by", sa.BigInteger(), nullable=False),
        sa.Column("registration_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("registration_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('REGISTRATION','SCHEDULED','IN_PROGRESS','COMPLETED','CANCELLED')",
            name="ck_tournaments_status",
        ),
        sa.CheckConstraint(
            "format IN ('round_robin','single_elimination')",
            name="ck_tournaments_format",
        ),
        sa.CheckConstraint(
            "tie_breaker IN ('score_diff','head_to_head','golden_game')",
            name="ck_tournaments_tie_breaker",
        ),
        sa.CheckConstraint(
            "min_players >= 2 AND max_players >= min_players",
            name="ck_tournaments_player_limits",
        ),
        sa.CheckConstraint(
            "match_deadline_min >= 1",
            name="ck_tournaments_match_deadline_min",
        ),
        sa.CheckConstraint(
            "registration_end > registration_start",
            name="ck_tournaments_registration_window",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_tournaments_status_registration_end",
        "tournaments",
        ["status", "registration_end"],
    )

    op.create_table(
        "tournament_participants",
        sa.Column("tournament_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("tournament_id", "user_id"),
    )
    op.create_index(
        "idx_tournament_participants_tournament_joined",
        "tournament_participants",
        ["tournament_id", "joined_at"],
    )

    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tournament_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("game_mode", sa.String(length=32), nullable=False),
        sa.Column("round_no", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("player1_id", sa.BigInteger(), nullable=False),
        sa.Column("player2_id", sa.BigInteger(), nullable=False),
        sa.Column("player1_username", sa.String(length=64), nullable=False),
        sa.Column("player2_username", sa.String(length=64), nullable=False),
        sa.Column(
            "player1_acknowledged",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "player2_acknowledged",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("winner_id", sa.BigInteger(), nullable=True),
        sa.Column("player1_score", sa.Integer(), nullable=True),
        sa.Column("player2_score", sa.Integer(), nullable=True),
        sa.Column("game_session_id", sa.String(length=64), nullable=True),
        sa.Column(
            "is_golden_game",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("result_source", sa.String(length=16), nullable=True),
        sa.CheckConstraint(
            "status IN ('PENDING_ACKNOWLEDGEMENT','IN_PROGRESS','COMPLETED','TIMEOUT','CANCELLED')",
            name="ck_matches_status",
        ),
        sa.CheckConstraint("player1_id <> player2_id", name="ck_matches_no_self_pair"),
        sa.CheckConstraint("round_no >= 1", name="ck_matches_round_no_positive"),
        sa.CheckConstraint(
            "winner_id IS NULL OR winner_id IN (player1_id, player2_id)",
            name="ck_matches_winner_is_player",
        ),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournaments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_matches_tournament_round",
        "matches",
        ["tournament_id", "round_no"],
    )
    op.create_index(
        "idx_matches_status_deadline",
        "matches",
        ["status", "deadline"],
    )


def downgrade() -> None:
    op.drop_index("idx_matches_status_deadline", table_name="matches")
    op.drop_index("idx_matches_tournament_round", table_name="matches")
    op.drop_table("matches")

    op.drop_index(
        "idx_tournament_participants_tournament_joined",
        table_name="tournament_participants",
    )
    op.drop_table("tournament_participants")

    op.drop_index("idx_tournaments_status_registration_end", table_name="tournaments")
    op.drop_table("tournaments")
