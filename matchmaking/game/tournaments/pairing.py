from __future__ import annotations

from collections.abc import Mapping
from itertools import combinations
from typing import Protocol

from matchmaking.game.tournaments.constants import (
    TERMINAL_MATCH_STATUSES,
    TournamentFormat,
)
from matchmaking.game.tournaments.types import MatchPairing, MatchRecord, ParticipantRecord


class FormatStrategy(Protocol):
    supports_golden_game: bool

    def first_round(self, *, participants: list[ParticipantRecord]) -> list[MatchPairing]: ...

    def next_round(
        self,
        *,
        participants: list[ParticipantRecord],
        matches: list[MatchRecord],
    ) -> list[MatchPairing]: ...


def _seed_order(participants: list[ParticipantRecord]) -> list[int]:
    ordered = sorted(participants, key=lambda participant: (participant.joined_at, participant.user_id))
    return [participant.user_id for participant in ordered]


def _regular_matches(matches: list[MatchRecord]) -> list[MatchRecord]:
    return [match for match in matches if not match.is_golden_game]


def round_is_closed(*, matches: list[MatchRecord]) -> bool:
    return all(match.status in TERMINAL_MATCH_STATUSES for match in matches)


class RoundRobinFormat:
    """Everybody meets everybody once; the whole schedule is one round."""

    supports_golden_game = True

    def first_round(self, *, participants: list[ParticipantRecord]) -> list[MatchPairing]:
        return [
            MatchPairing(player1_id=user_a, player2_id=user_b)
            for user_a, user_b in combinations(_seed_order(participants), 2)
        ]

    def next_round(
        self,
        *,
        participants: list[ParticipantRecord],
        matches: list[MatchRecord],
    ) -> list[MatchPairing]:
        return []


class SingleEliminationFormat:
    """Knockout bracket seeded by registration order.

    An odd field hands the top remaining seed a bye. A match decided without a winner
    eliminates both players.
    """

    supports_golden_game = False

    def first_round(self, *, participants: list[ParticipantRecord]) -> list[MatchPairing]:
        return self._pair_field(_seed_order(participants))

    def next_round(
        self,
        *,
        participants: list[ParticipantRecord],
        matches: list[MatchRecord],
    ) -> list[MatchPairing]:
        field = self.remaining_field(participants=participants, matches=matches)
        if field is None or len(field) < 2:
            return []
        return self._pair_field(field)

    def remaining_field(
        self,
        *,
        participants: list[ParticipantRecord],
        matches: list[MatchRecord],
    ) -> list[int] | None:
        """Players still alive after the last played round, or None while it is open."""
        regular = _regular_matches(matches)
        if not regular:
            return _seed_order(participants)
        seeds = _seed_order(participants)
        seed_index = {user_id: index for index, user_id in enumerate(seeds)}
        by_round: dict[int, list[MatchRecord]] = {}
        for match in regular:
            by_round.setdefault(match.round_no, []).append(match)

        field = seeds
        for round_no in sorted(by_round):
            round_matches = by_round[round_no]
            if not round_is_closed(matches=round_matches):
                return None
            played = {
                user_id
                for match in round_matches
                for user_id in (match.player1_id, match.player2_id)
            }
            winners = {match.winner_id for match in round_matches if match.winner_id is not None}
            field = [
                user_id
                for user_id in field
                if user_id not in played or user_id in winners
            ]
            field.sort(key=lambda user_id: seed_index.get(user_id, len(seeds)))
        return field

    @staticmethod
    def _pair_field(field: list[int]) -> list[MatchPairing]:
        remaining = list(field)
        if len(remaining) % 2 == 1:
            remaining.pop(0)
        pairings: list[MatchPairing] = []
        while remaining:
            user_a = remaining.pop(0)
            user_b = remaining.pop()
            pairings.append(MatchPairing(player1_id=user_a, player2_id=user_b))
        return pairings


DEFAULT_FORMATS: Mapping[TournamentFormat, FormatStrategy] = {
    TournamentFormat.ROUND_ROBIN: RoundRobinFormat(),
    TournamentFormat.SINGLE_ELIMINATION: SingleEliminationFormat(),
}
