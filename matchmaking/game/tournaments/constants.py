from __future__ import annotations

from enum import Enum


class TournamentStatus(str, Enum):
    REGISTRATION = "REGISTRATION"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MatchStatus(str, Enum):
    PENDING_ACKNOWLEDGEMENT = "PENDING_ACKNOWLEDGEMENT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"


class TournamentFormat(str, Enum):
    ROUND_ROBIN = "round_robin"
    SINGLE_ELIMINATION = "single_elimination"


class TieBreaker(str, Enum):
    """How far the ranking cascade goes after wins.

    score_diff -> head_to_head -> golden_game, each level including the previous ones.
    """

    SCORE_DIFF = "score_diff"
    HEAD_TO_HEAD = "head_to_head"
    GOLDEN_GAME = "golden_game"


CANCELLABLE_TOURNAMENT_STATUSES = frozenset(
    {
        TournamentStatus.REGISTRATION,
        TournamentStatus.SCHEDULED,
    }
)

TERMINAL_TOURNAMENT_STATUSES = frozenset(
    {
        TournamentStatus.COMPLETED,
        TournamentStatus.CANCELLED,
    }
)

TERMINAL_MATCH_STATUSES = frozenset(
    {
        MatchStatus.COMPLETED,
        MatchStatus.TIMEOUT,
        MatchStatus.CANCELLED,
    }
)
ACTIVE_MATCH_STATUSES = frozenset(
    {
        MatchStatus.PENDING_ACKNOWLEDGEMENT,
        MatchStatus.IN_PROGRESS,
    }
)
# Statuses that carry a result usable for standings.
DECIDED_MATCH_STATUSES = frozenset(
    {
        MatchStatus.COMPLETED,
        MatchStatus.TIMEOUT,
    }
)

TOURNAMENT_MIN_PLAYERS_FLOOR = 2
TOURNAMENT_DEFAULT_MIN_PLAYERS = 2
TOURNAMENT_DEFAULT_MAX_PLAYERS = 8
TOURNAMENT_DEFAULT_MATCH_DEADLINE_MIN = 30
TOURNAMENT_DEFAULT_FORMAT = TournamentFormat.ROUND_ROBIN
TOURNAMENT_DEFAULT_TIE_BREAKER = TieBreaker.SCORE_DIFF

MATCH_DEFAULT_GAME_MODE = "classic"
MATCH_TIMEOUT_FORFEIT_SCORE = 7

RESULT_SOURCE_TIMEOUT = "timeout"
RESULT_SOURCE_GAME_SERVER = "game_server"
