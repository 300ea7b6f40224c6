from __future__ import annotations

from matchmaking.game.tournaments.constants import MatchStatus, TournamentStatus
from matchmaking.game.tournaments.errors import TournamentInvalidStatusError

TOURNAMENT_TRANSITIONS: dict[TournamentStatus, frozenset[TournamentStatus]] = {
    TournamentStatus.REGISTRATION: frozenset(
        {TournamentStatus.SCHEDULED, TournamentStatus.CANCELLED}
    ),
    TournamentStatus.SCHEDULED: frozenset(
        {TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELLED}
    ),
    TournamentStatus.IN_PROGRESS: frozenset(
        {TournamentStatus.COMPLETED, TournamentStatus.CANCELLED}
    ),
    TournamentStatus.COMPLETED: frozenset(),
    TournamentStatus.CANCELLED: frozenset(),
}

MATCH_TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.PENDING_ACKNOWLEDGEMENT: frozenset(
        {
            MatchStatus.IN_PROGRESS,
            MatchStatus.COMPLETED,
            MatchStatus.TIMEOUT,
            MatchStatus.CANCELLED,
        }
    ),
    MatchStatus.IN_PROGRESS: frozenset(
        {MatchStatus.COMPLETED, MatchStatus.TIMEOUT, MatchStatus.CANCELLED}
    ),
    MatchStatus.COMPLETED: frozenset(),
    MatchStatus.TIMEOUT: frozenset(),
    MatchStatus.CANCELLED: frozenset(),
}


def can_transition_tournament(current: TournamentStatus, target: TournamentStatus) -> bool:
    return target in TOURNAMENT_TRANSITIONS.get(TournamentStatus(current), frozenset())


def can_transition_match(current: MatchStatus, target: MatchStatus) -> bool:
    return target in MATCH_TRANSITIONS.get(MatchStatus(current), frozenset())


def ensure_tournament_transition(current: TournamentStatus, target: TournamentStatus) -> None:
    if not can_transition_tournament(current, target):
        raise TournamentInvalidStatusError(
            f"tournament cannot move from {TournamentStatus(current).value} to {target.value}"
        )


def ensure_match_transition(current: MatchStatus, target: MatchStatus) -> None:
    if not can_transition_match(current, target):
        raise TournamentInvalidStatusError(
            f"match cannot move from {MatchStatus(current).value} to {target.value}"
        )
