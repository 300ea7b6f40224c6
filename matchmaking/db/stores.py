from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matchmaking.db.models.matches import Match
from matchmaking.db.models.tournament_participants import TournamentParticipant
from matchmaking.db.models.tournaments import Tournament
from matchmaking.db.repo.matches_repo import MatchesRepo
from matchmaking.db.repo.tournament_participants_repo import TournamentParticipantsRepo
from matchmaking.db.repo.tournaments_repo import TournamentsRepo
from matchmaking.game.tournaments.constants import (
    ACTIVE_MATCH_STATUSES,
    MatchStatus,
    TieBreaker,
    TournamentFormat,
    TournamentStatus,
)
from matchmaking.game.tournaments.types import MatchRecord, ParticipantRecord, TournamentRecord

_TOURNAMENT_COLUMNS = frozenset(Tournament.__table__.columns.keys())
_MATCH_COLUMNS = frozenset(Match.__table__.columns.keys())


def _column_values(changes: Mapping[str, Any], *, columns: frozenset[str]) -> dict[str, Any]:
    unknown = set(changes) - columns
    if unknown:
        raise ValueError(f"unknown columns: {sorted(unknown)}")
    return {
        key: value.value if isinstance(value, Enum) else value
        for key, value in changes.items()
    }


def _status_value(status: Enum | str) -> str:
    return status.value if isinstance(status, Enum) else str(status)


def build_tournament_record(row: Tournament) -> TournamentRecord:
    return TournamentRecord(
        id=row.id,
        name=row.name,
        format=TournamentFormat(row.format),
        min_players=int(row.min_players),
        max_players=int(row.max_players),
        match_deadline_min=int(row.match_deadline_min),
        tie_breaker=TieBreaker(row.tie_breaker),
        created_by=int(row.created_by),
        registration_start=row.registration_start,
        registration_end=row.registration_end,
        scheduled_start=row.scheduled_start,
        start_time=row.start_time,
        end_time=row.end_time,
        status=TournamentStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def build_participant_record(row: TournamentParticipant) -> ParticipantRecord:
    return ParticipantRecord(
        tournament_id=row.tournament_id,
        user_id=int(row.user_id),
        username=row.username,
        joined_at=row.joined_at,
    )


def build_match_record(row: Match) -> MatchRecord:
    return MatchRecord(
        id=row.id,
        tournament_id=row.tournament_id,
        game_mode=row.game_mode,
        player1_id=int(row.player1_id),
        player2_id=int(row.player2_id),
        player1_username=row.player1_username,
        player2_username=row.player2_username,
        status=MatchStatus(row.status),
        scheduled_at=row.scheduled_at,
        deadline=row.deadline,
        round_no=int(row.round_no),
        player1_acknowledged=bool(row.player1_acknowledged),
        player2_acknowledged=bool(row.player2_acknowledged),
        started_at=row.started_at,
        completed_at=row.completed_at,
        winner_id=int(row.winner_id) if row.winner_id is not None else None,
        player1_score=row.player1_score,
        player2_score=row.player2_score,
        game_session_id=row.game_session_id,
        is_golden_game=bool(row.is_golden_game),
        result_source=row.result_source,
    )


def build_match_row(match: MatchRecord) -> Match:
    return Match(
        id=match.id,
        tournament_id=match.tournament_id,
        game_mode=match.game_mode,
        round_no=match.round_no,
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        player1_username=match.player1_username,
        player2_username=match.player2_username,
        player1_acknowledged=match.player1_acknowledged,
        player2_acknowledged=match.player2_acknowledged,
        status=_status_value(match.status),
        scheduled_at=match.scheduled_at,
        deadline=match.deadline,
        started_at=match.started_at,
        completed_at=match.completed_at,
        winner_id=match.winner_id,
        player1_score=match.player1_score,
        player2_score=match.player2_score,
        game_session_id=match.game_session_id,
        is_golden_game=match.is_golden_game,
        result_source=match.result_source,
    )


class SqlTournamentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, tournament: TournamentRecord) -> TournamentRecord:
        async with self._session_factory.begin() as session:
            row = await TournamentsRepo.create(
                session,
                tournament=Tournament(
                    id=tournament.id,
                    name=tournament.name,
                    format=_status_value(tournament.format),
                    min_players=tournament.min_players,
                    max_players=tournament.max_players,
                    match_deadline_min=tournament.match_deadline_min,
                    tie_breaker=_status_value(tournament.tie_breaker),
                    created_by=tournament.created_by,
                    registration_start=tournament.registration_start,
                    registration_end=tournament.registration_end,
                    scheduled_start=tournament.scheduled_start,
                    start_time=tournament.start_time,
                    end_time=tournament.end_time,
                    status=_status_value(tournament.status),
                    created_at=tournament.created_at,
                    updated_at=tournament.updated_at,
                ),
            )
            return build_tournament_record(row)

    async def find_by_id(self, tournament_id: UUID) -> TournamentRecord | None:
        async with self._session_factory.begin() as session:
            row = await TournamentsRepo.get_by_id(session, tournament_id)
            return build_tournament_record(row) if row is not None else None

    async def find_by_status(self, status: TournamentStatus) -> list[TournamentRecord]:
        async with self._session_factory.begin() as session:
            rows = await TournamentsRepo.list_by_status(session, status=_status_value(status))
            return [build_tournament_record(row) for row in rows]

    async def update(
        self,
        tournament_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_status: TournamentStatus | None = None,
    ) -> TournamentRecord | None:
        values = _column_values(changes, columns=_TOURNAMENT_COLUMNS)
        async with self._session_factory.begin() as session:
            row = await TournamentsRepo.update_fields(
                session,
                tournament_id=tournament_id,
                values=values,
                expected_status=_status_value(expected_status) if expected_status else None,
            )
            return build_tournament_record(row) if row is not None else None

    async def update_with_matches(
        self,
        tournament_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_status: TournamentStatus,
        matches: list[MatchRecord],
    ) -> tuple[TournamentRecord, list[MatchRecord]] | None:
        values = _column_values(changes, columns=_TOURNAMENT_COLUMNS)
        async with self._session_factory.begin() as session:
            row = await TournamentsRepo.update_fields(
                session,
                tournament_id=tournament_id,
                values=values,
                expected_status=_status_value(expected_status),
            )
            if row is None:
                return None
            match_rows = await MatchesRepo.create_many(
                session,
                matches=[build_match_row(match) for match in matches],
            )
            return build_tournament_record(row), [build_match_record(item) for item in match_rows]


class SqlParticipantStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(
        self,
        *,
        tournament_id: UUID,
        user_id: int,
        username: str,
        joined_at: datetime,
    ) -> bool:
        async with self._session_factory.begin() as session:
            return await TournamentParticipantsRepo.create_once(
                session,
                tournament_id=tournament_id,
                user_id=user_id,
                username=username,
                joined_at=joined_at,
            )

    async def remove(self, *, tournament_id: UUID, user_id: int) -> bool:
        async with self._session_factory.begin() as session:
            return await TournamentParticipantsRepo.delete_one(
                session,
                tournament_id=tournament_id,
                user_id=user_id,
            )

    async def is_registered(self, *, tournament_id: UUID, user_id: int) -> bool:
        async with self._session_factory.begin() as session:
            row = await TournamentParticipantsRepo.get(
                session,
                tournament_id=tournament_id,
                user_id=user_id,
            )
            return row is not None

    async def count(self, *, tournament_id: UUID) -> int:
        async with self._session_factory.begin() as session:
            return await TournamentParticipantsRepo.count_for_tournament(
                session,
                tournament_id=tournament_id,
            )

    async def list_for_tournament(self, *, tournament_id: UUID) -> list[ParticipantRecord]:
        async with self._session_factory.begin() as session:
            rows = await TournamentParticipantsRepo.list_for_tournament(
                session,
                tournament_id=tournament_id,
            )
            return [build_participant_record(row) for row in rows]


class SqlMatchStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_many(self, matches: list[MatchRecord]) -> list[MatchRecord]:
        if not matches:
            return []
        async with self._session_factory.begin() as session:
            rows = await MatchesRepo.create_many(
                session,
                matches=[build_match_row(match) for match in matches],
            )
            return [build_match_record(row) for row in rows]

    async def find_by_id(self, match_id: UUID) -> MatchRecord | None:
        async with self._session_factory.begin() as session:
            row = await MatchesRepo.get_by_id(session, match_id)
            return build_match_record(row) if row is not None else None

    async def find_by_tournament(self, tournament_id: UUID) -> list[MatchRecord]:
        async with self._session_factory.begin() as session:
            rows = await MatchesRepo.list_by_tournament(session, tournament_id=tournament_id)
            return [build_match_record(row) for row in rows]

    async def find_pending_with_deadline(self) -> list[MatchRecord]:
        async with self._session_factory.begin() as session:
            rows = await MatchesRepo.list_pending_with_deadline(
                session,
                statuses=[_status_value(status) for status in ACTIVE_MATCH_STATUSES],
            )
            return [build_match_record(row) for row in rows]

    async def update(
        self,
        match_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_statuses: Iterable[MatchStatus] | None = None,
    ) -> MatchRecord | None:
        values = _column_values(changes, columns=_MATCH_COLUMNS)
        async with self._session_factory.begin() as session:
            row = await MatchesRepo.update_fields(
                session,
                match_id=match_id,
                values=values,
                expected_statuses=(
                    [_status_value(status) for status in expected_statuses]
                    if expected_statuses is not None
                    else None
                ),
            )
            return build_match_record(row) if row is not None else None
