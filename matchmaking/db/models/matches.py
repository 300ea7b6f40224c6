from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from matchmaking.db.models.base import Base


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING_ACKNOWLEDGEMENT','IN_PROGRESS','COMPLETED','TIMEOUT','CANCELLED')",
            name="ck_matches_status",
        ),
        CheckConstraint("player1_id <> player2_id", name="ck_matches_no_self_pair"),
        CheckConstraint("round_no >= 1", name="ck_matches_round_no_positive"),
        CheckConstraint(
            "winner_id IS NULL OR winner_id IN (player1_id, player2_id)",
            name="ck_matches_winner_is_player",
        ),
        Index("idx_matches_tournament_round", "tournament_id", "round_no"),
        Index("idx_matches_status_deadline", "status", "deadline"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    tournament_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=True,
    )
    game_mode: Mapped[str] = mapped_column(String(32), nullable=False)
    round_no: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    player1_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    player2_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    player1_username: Mapped[str] = mapped_column(String(64), nullable=False)
    player2_username: Mapped[str] = mapped_column(String(64), nullable=False)
    player1_acknowledged: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    player2_acknowledged: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    winner_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    player1_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player2_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    game_session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_golden_game: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    result_source: Mapped[str | None] = mapped_column(String(16), nullable=True)
