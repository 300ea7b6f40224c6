from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from matchmaking.db.models.base import Base


class Tournament(Base):
    __tablename__ = "tournaments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('REGISTRATION','SCHEDULED','IN_PROGRESS','COMPLETED','CANCELLED')",
            name="ck_tournaments_status",
        ),
        CheckConstraint(
            "format IN ('round_robin','single_elimination')",
            name="ck_tournaments_format",
        ),
        CheckConstraint(
            "tie_breaker IN ('score_diff','head_to_head','golden_game')",
            name="ck_tournaments_tie_breaker",
        ),
        CheckConstraint(
            "min_players >= 2 AND max_players >= min_players",
            name="ck_tournaments_player_limits",
        ),
        CheckConstraint("match_deadline_min >= 1", name="ck_tournaments_match_deadline_min"),
        CheckConstraint(
            "registration_end > registration_start",
            name="ck_tournaments_registration_window",
        ),
        Index("idx_tournaments_status_registration_end", "status", "registration_end"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    format: Mapped[str] = mapped_column(String(32), nullable=False)
    min_players: Mapped[int] = mapped_column(Integer, nullable=False)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False)
    match_deadline_min: Mapped[int] = mapped_column(Integer, nullable=False)
    tie_breaker: Mapped[str] = mapped_column(String(16), nullable=False)
    created_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    registration_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    registration_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scheduled_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
