from __future__ import annotations

from sqlalchemy import CheckConstraint

from matchmaking.db.models import Match, Tournament, TournamentParticipant  # noqa: F401
from matchmaking.db.models.base import Base


def _check_names(table_name: str) -> set[str]:
    table = Base.metadata.tables[table_name]
    return {
        constraint.name for constraint in table.constraints if isinstance(constraint, CheckConstraint)
    }


def test_tournament_tables_registered() -> None:
    expected_tables = {"tournaments", "tournament_participants", "matches"}
    assert expected_tables.issubset(set(Base.metadata.tables))


def test_critical_constraints_present() -> None:
    tournament_checks = _check_names("tournaments")
    assert "ck_tournaments_status" in tournament_checks
    assert "ck_tournaments_player_limits" in tournament_checks
    assert "ck_tournaments_registration_window" in tournament_checks

    match_checks = _check_names("matches")
    assert "ck_matches_status" in match_checks
    assert "ck_matches_no_self_pair" in match_checks
    assert "ck_matches_winner_is_player" in match_checks

    match_indexes = {index.name for index in Base.metadata.tables["matches"].indexes}
    assert "idx_matches_status_deadline" in match_indexes

    participants = Base.metadata.tables["tournament_participants"]
    assert {column.name for column in participants.primary_key.columns} == {
        "tournament_id",
        "user_id",
    }
