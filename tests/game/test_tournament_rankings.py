from __future__ import annotations

from uuid import uuid4

from matchmaking.game.tournaments.constants import MatchStatus, TieBreaker
from matchmaking.game.tournaments.rankings import (
    compute_rankings,
    find_golden_game_pair,
    head_to_head,
)
from tests.game.fakes import completed, make_match

TOURNAMENT_ID = uuid4()


def _result(player1_id: int, player2_id: int, player1_score: int, player2_score: int, **kwargs):
    return completed(
        tournament_id=TOURNAMENT_ID,
        player1_id=player1_id,
        player2_id=player2_id,
        player1_score=player1_score,
        player2_score=player2_score,
        **kwargs,
    )


def _tied_on_score_diff():
    # 1 and 2 both finish with one win and +1; 2 won their direct game.
    return [
        _result(2, 1, 7, 5),
        _result(1, 3, 7, 4),
        _result(2, 3, 6, 7),
    ]


def test_rankings_order_by_wins_then_score_diff() -> None:
    matches = [
        _result(1, 2, 7, 3),
        _result(1, 3, 7, 5),
        _result(2, 3, 7, 1),
    ]

    rankings = compute_rankings(participant_ids=[1, 2, 3], matches=matches)

    assert [(item.rank, item.user_id, item.wins, item.score_diff) for item in rankings] == [
        (1, 1, 2, 6),
        (2, 2, 1, 2),
        (3, 3, 0, -8),
    ]
    assert all(item.matches_played == 2 for item in rankings)


def test_rankings_ignore_unfinished_matches() -> None:
    matches = [
        _result(1, 2, 7, 3),
        make_match(tournament_id=TOURNAMENT_ID, player1_id=2, player2_id=3),
    ]

    rankings = compute_rankings(participant_ids=[1, 2, 3], matches=matches)

    by_user = {item.user_id: item for item in rankings}
    assert by_user[3].matches_played == 0
    assert by_user[2].losses == 1


def test_timeout_without_winner_counts_as_loss_for_both() -> None:
    timed_out = make_match(
        tournament_id=TOURNAMENT_ID,
        status=MatchStatus.TIMEOUT,
        player1_score=0,
        player2_score=0,
    )

    rankings = compute_rankings(participant_ids=[1, 2], matches=[timed_out])

    assert [(item.user_id, item.wins, item.losses) for item in rankings] == [(1, 0, 1), (2, 0, 1)]


def test_score_diff_tie_keeps_registration_order() -> None:
    rankings = compute_rankings(
        participant_ids=[1, 2, 3],
        matches=_tied_on_score_diff(),
        tie_breaker=TieBreaker.SCORE_DIFF,
    )
    assert [item.user_id for item in rankings] == [1, 2, 3]


def test_head_to_head_resolves_tie() -> None:
    rankings = compute_rankings(
        participant_ids=[1, 2, 3],
        matches=_tied_on_score_diff(),
        tie_breaker=TieBreaker.HEAD_TO_HEAD,
    )
    assert [item.user_id for item in rankings] == [2, 1, 3]


def test_head_to_head_counts_only_games_inside_group() -> None:
    totals = head_to_head(matches=_tied_on_score_diff(), user_ids=[1, 2])
    assert totals == {1: -2, 2: 2}


def test_golden_game_pair_for_drawn_leaders() -> None:
    matches = [_result(1, 2, 5, 5)]
    assert find_golden_game_pair(participant_ids=[1, 2], matches=matches) == (1, 2)


def test_no_golden_game_when_head_to_head_decides() -> None:
    assert find_golden_game_pair(participant_ids=[1, 2, 3], matches=_tied_on_score_diff()) is None


def test_no_golden_game_when_leader_is_clear() -> None:
    matches = [_result(1, 2, 7, 3)]
    assert find_golden_game_pair(participant_ids=[1, 2], matches=matches) is None


def test_only_one_golden_game_per_tournament() -> None:
    matches = [
        _result(1, 2, 5, 5),
        _result(1, 2, 4, 4, round_no=2, is_golden_game=True),
    ]
    assert find_golden_game_pair(participant_ids=[1, 2], matches=matches) is None
