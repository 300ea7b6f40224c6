from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from matchmaking.game.tournaments.constants import (
    MatchStatus,
    TieBreaker,
    TournamentFormat,
    TournamentStatus,
)


@dataclass(slots=True)
class TournamentRecord:
    id: UUID
    name: str
    format: TournamentFormat
    min_players: int
    max_players: int
    match_deadline_min: int
    tie_breaker: TieBreaker
    created_by: int
    registration_start: datetime
    registration_end: datetime
    # Configured start; copied into start_time when registration closes.
    scheduled_start: datetime | None
    start_time: datetime | None
    end_time: datetime | None
    status: TournamentStatus
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class ParticipantRecord:
    tournament_id: UUID
    user_id: int
    username: str
    joined_at: datetime


@dataclass(slots=True)
class MatchRecord:
    id: UUID
    tournament_id: UUID | None
    game_mode: str
    player1_id: int
    player2_id: int
    player1_username: str
    player2_username: str
    status: MatchStatus
    scheduled_at: datetime
    deadline: datetime | None
    round_no: int = 1
    player1_acknowledged: bool = False
    player2_acknowledged: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    winner_id: int | None = None
    player1_score: int | None = None
    player2_score: int | None = None
    game_session_id: str | None = None
    is_golden_game: bool = False
    result_source: str | None = None

    @property
    def is_casual(self) -> bool:
        return self.tournament_id is None

    def has_player(self, user_id: int) -> bool:
        return user_id in (self.player1_id, self.player2_id)


@dataclass(slots=True)
class CreateTournamentParams:
    name: str
    created_by: int
    registration_end: datetime
    format: TournamentFormat | None = None
    min_players: int | None = None
    max_players: int | None = None
    match_deadline_min: int | None = None
    tie_breaker: TieBreaker | None = None
    registration_start: datetime | None = None
    start_time: datetime | None = None


@dataclass(slots=True)
class RegistrationResult:
    tournament_id: UUID
    participants_total: int
    full: bool


@dataclass(slots=True)
class MatchPairing:
    player1_id: int
    player2_id: int


@dataclass(slots=True)
class MatchResultOutcome:
    match: MatchRecord
    created_matches: list[MatchRecord] = field(default_factory=list)


@dataclass(slots=True)
class TournamentRanking:
    rank: int
    user_id: int
    wins: int
    losses: int
    score_diff: int
    matches_played: int


@dataclass(slots=True)
class TournamentSummary:
    id: UUID
    name: str
    format: TournamentFormat
    status: TournamentStatus
    min_players: int
    max_players: int
    participant_count: int
    registration_end: datetime
    start_time: datetime | None
    created_by: int
    created_at: datetime


@dataclass(slots=True)
class TimerCounts:
    tournaments: int
    matches: int
