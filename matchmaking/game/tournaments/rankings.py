from __future__ import annotations

from dataclasses import dataclass

from matchmaking.game.tournaments.constants import DECIDED_MATCH_STATUSES, TieBreaker
from matchmaking.game.tournaments.types import MatchRecord, TournamentRanking


@dataclass(slots=True)
class _Standing:
    user_id: int
    seed: int
    wins: int = 0
    losses: int = 0
    score_diff: int = 0


def _decided(matches: list[MatchRecord]) -> list[MatchRecord]:
    return [match for match in matches if match.status in DECIDED_MATCH_STATUSES]


def _player1_diff(match: MatchRecord) -> int:
    return (match.player1_score or 0) - (match.player2_score or 0)


def _collect_standings(
    *,
    participant_ids: list[int],
    matches: list[MatchRecord],
) -> dict[int, _Standing]:
    standings = {
        user_id: _Standing(user_id=user_id, seed=seed)
        for seed, user_id in enumerate(participant_ids)
    }
    for match in _decided(matches):
        for user_id in (match.player1_id, match.player2_id):
            if user_id not in standings:
                standings[user_id] = _Standing(user_id=user_id, seed=len(standings))
        diff = _player1_diff(match)
        player1 = standings[match.player1_id]
        player2 = standings[match.player2_id]
        player1.score_diff += diff
        player2.score_diff -= diff
        if match.winner_id == match.player1_id:
            player1.wins += 1
            player2.losses += 1
        elif match.winner_id == match.player2_id:
            player2.wins += 1
            player1.losses += 1
        else:
            player1.losses += 1
            player2.losses += 1
    return standings


def head_to_head(*, matches: list[MatchRecord], user_ids: list[int]) -> dict[int, int]:
    """Score difference of each player counting only games among ``user_ids``."""
    group = set(user_ids)
    totals = {user_id: 0 for user_id in user_ids}
    for match in _decided(matches):
        if match.player1_id not in group or match.player2_id not in group:
            continue
        diff = _player1_diff(match)
        totals[match.player1_id] += diff
        totals[match.player2_id] -= diff
    return totals


def _resolve_tied_groups(
    *,
    ordered: list[_Standing],
    matches: list[MatchRecord],
) -> list[_Standing]:
    resolved: list[_Standing] = []
    index = 0
    while index < len(ordered):
        current = ordered[index]
        end = index + 1
        while (
            end < len(ordered)
            and ordered[end].wins == current.wins
            and ordered[end].score_diff == current.score_diff
        ):
            end += 1
        group = ordered[index:end]
        if len(group) > 1:
            h2h = head_to_head(matches=matches, user_ids=[item.user_id for item in group])
            group = sorted(group, key=lambda item: (-h2h[item.user_id], item.seed))
        resolved.extend(group)
        index = end
    return resolved


def compute_rankings(
    *,
    participant_ids: list[int],
    matches: list[MatchRecord],
    tie_breaker: TieBreaker = TieBreaker.SCORE_DIFF,
) -> list[TournamentRanking]:
    standings = _collect_standings(participant_ids=participant_ids, matches=matches)
    ordered = sorted(
        standings.values(),
        key=lambda item: (-item.wins, -item.score_diff, item.seed),
    )
    if TieBreaker(tie_breaker) != TieBreaker.SCORE_DIFF:
        ordered = _resolve_tied_groups(ordered=ordered, matches=matches)
    return [
        TournamentRanking(
            rank=position,
            user_id=item.user_id,
            wins=item.wins,
            losses=item.losses,
            score_diff=item.score_diff,
            matches_played=item.wins + item.losses,
        )
        for position, item in enumerate(ordered, start=1)
    ]


def find_golden_game_pair(
    *,
    participant_ids: list[int],
    matches: list[MatchRecord],
) -> tuple[int, int] | None:
    """Return the two players who must meet in a golden game, if the top is unresolved."""
    if any(match.is_golden_game for match in matches):
        return None
    rankings = compute_rankings(
        participant_ids=participant_ids,
        matches=matches,
        tie_breaker=TieBreaker.SCORE_DIFF,
    )
    if len(rankings) < 2:
        return None
    first, second = rankings[0], rankings[1]
    if first.wins != second.wins or first.score_diff != second.score_diff:
        return None

    tied = [
        item.user_id
        for item in rankings
        if item.wins == first.wins and item.score_diff == first.score_diff
    ]
    if len(tied) == 2:
        h2h = head_to_head(matches=matches, user_ids=tied)
        if h2h[tied[0]] != h2h[tied[1]]:
            return None
    return tied[0], tied[1]
