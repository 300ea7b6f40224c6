from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from matchmaking.db.stores import SqlMatchStore, SqlParticipantStore, SqlTournamentStore
from matchmaking.game.tournaments.constants import (
    ACTIVE_MATCH_STATUSES,
    MatchStatus,
    TournamentFormat,
    TournamentStatus,
)
from matchmaking.game.tournaments.lifecycle import TournamentLifecycleManager
from matchmaking.game.tournaments.service import TournamentService
from matchmaking.game.tournaments.types import CreateTournamentParams
from tests.game.fakes import FakeTimerProvider, make_match, make_tournament

UTC = timezone.utc


def _stores(session_factory):
    return (
        SqlTournamentStore(session_factory),
        SqlParticipantStore(session_factory),
        SqlMatchStore(session_factory),
    )


@pytest.mark.asyncio
async def test_tournament_store_conditional_update(session_factory) -> None:
    tournaments, _, _ = _stores(session_factory)
    now_utc = datetime.now(UTC)
    created = await tournaments.create(make_tournament(now=now_utc))

    scheduled = await tournaments.update(
        created.id,
        {"status": TournamentStatus.SCHEDULED},
        expected_status=TournamentStatus.REGISTRATION,
    )
    lost = await tournaments.update(
        created.id,
        {"status": TournamentStatus.CANCELLED},
        expected_status=TournamentStatus.REGISTRATION,
    )

    assert scheduled is not None
    assert scheduled.status == TournamentStatus.SCHEDULED
    assert lost is None
    stored = await tournaments.find_by_id(created.id)
    assert stored is not None
    assert stored.status == TournamentStatus.SCHEDULED
    assert [item.id for item in await tournaments.find_by_status(TournamentStatus.SCHEDULED)] == [
        created.id
    ]


@pytest.mark.asyncio
async def test_update_with_matches_rolls_back_tournament_on_insert_failure(session_factory) -> None:
    tournaments, _, matches = _stores(session_factory)
    now_utc = datetime.now(UTC)
    tournament = await tournaments.create(
        make_tournament(status=TournamentStatus.SCHEDULED, now=now_utc)
    )
    self_paired = make_match(tournament_id=tournament.id, player1_id=5, player2_id=5, now=now_utc)

    with pytest.raises(IntegrityError):
        await tournaments.update_with_matches(
            tournament.id,
            {"status": TournamentStatus.IN_PROGRESS, "start_time": now_utc},
            expected_status=TournamentStatus.SCHEDULED,
            matches=[self_paired],
        )

    stored = await tournaments.find_by_id(tournament.id)
    assert stored is not None
    assert stored.status == TournamentStatus.SCHEDULED
    assert stored.start_time is None
    assert await matches.find_by_tournament(tournament.id) == []

    valid = make_match(tournament_id=tournament.id, player1_id=5, player2_id=6, now=now_utc)
    claimed = await tournaments.update_with_matches(
        tournament.id,
        {"status": TournamentStatus.IN_PROGRESS, "start_time": now_utc},
        expected_status=TournamentStatus.SCHEDULED,
        matches=[valid],
    )
    assert claimed is not None
    started, created = claimed
    assert started.status == TournamentStatus.IN_PROGRESS
    assert [item.id for item in created] == [valid.id]

    again = await tournaments.update_with_matches(
        tournament.id,
        {"status": TournamentStatus.IN_PROGRESS},
        expected_status=TournamentStatus.SCHEDULED,
        matches=[make_match(tournament_id=tournament.id, player1_id=7, player2_id=8, now=now_utc)],
    )
    assert again is None
    assert len(await matches.find_by_tournament(tournament.id)) == 1


@pytest.mark.asyncio
async def test_participant_store_add_is_idempotent(session_factory) -> None:
    tournaments, participants, _ = _stores(session_factory)
    now_utc = datetime.now(UTC)
    tournament = await tournaments.create(make_tournament(now=now_utc))

    assert await participants.add(
        tournament_id=tournament.id, user_id=7, username="seven", joined_at=now_utc
    ) is True
    assert await participants.add(
        tournament_id=tournament.id, user_id=7, username="seven", joined_at=now_utc
    ) is False
    await participants.add(
        tournament_id=tournament.id,
        user_id=3,
        username="three",
        joined_at=now_utc + timedelta(seconds=1),
    )

    assert await participants.count(tournament_id=tournament.id) == 2
    assert await participants.is_registered(tournament_id=tournament.id, user_id=7) is True
    listed = await participants.list_for_tournament(tournament_id=tournament.id)
    assert [item.user_id for item in listed] == [7, 3]

    assert await participants.remove(tournament_id=tournament.id, user_id=7) is True
    assert await participants.remove(tournament_id=tournament.id, user_id=7) is False


@pytest.mark.asyncio
async def test_match_store_pending_and_guarded_update(session_factory) -> None:
    _, _, matches = _stores(session_factory)
    now_utc = datetime.now(UTC)
    later = make_match(tournament_id=None, deadline=now_utc + timedelta(minutes=10), now=now_utc)
    sooner = make_match(tournament_id=None, deadline=now_utc + timedelta(minutes=5), now=now_utc)
    no_deadline = make_match(tournament_id=None, deadline=None, now=now_utc)
    await matches.create_many([later, sooner, no_deadline])

    pending = await matches.find_pending_with_deadline()
    assert [item.id for item in pending] == [sooner.id, later.id]

    timed_out = await matches.update(
        sooner.id,
        {"status": MatchStatus.TIMEOUT, "winner_id": None, "result_source": "timeout"},
        expected_statuses=ACTIVE_MATCH_STATUSES,
    )
    again = await matches.update(
        sooner.id,
        {"status": MatchStatus.TIMEOUT},
        expected_statuses=ACTIVE_MATCH_STATUSES,
    )

    assert timed_out is not None
    assert timed_out.status == MatchStatus.TIMEOUT
    assert again is None


@pytest.mark.asyncio
async def test_single_elimination_flow_on_postgres(session_factory) -> None:
    tournaments, participants, matches = _stores(session_factory)
    service = TournamentService(
        tournament_store=tournaments,
        participant_store=participants,
        match_store=matches,
    )
    timers = FakeTimerProvider()
    manager = TournamentLifecycleManager(
        tournament_service=service,
        tournament_store=tournaments,
        match_store=matches,
        timer_provider=timers,
    )

    tournament = await service.create_tournament(
        CreateTournamentParams(
            name="Postgres Cup",
            created_by=1,
            registration_end=datetime.now(UTC) + timedelta(hours=1),
            format=TournamentFormat.SINGLE_ELIMINATION,
            max_players=4,
        )
    )
    await manager.on_tournament_created(tournament)
    for user_id in (11, 12, 13, 14):
        registration = await service.register(tournament.id, user_id)
    assert registration.full is True

    await manager.on_registration_full(tournament.id)

    semifinals = await service.get_matches(tournament.id)
    assert len(semifinals) == 2
    assert manager.get_timer_counts().matches == 2

    created = []
    for match in semifinals:
        outcome = await service.report_match_result(
            match.id, winner_id=match.player1_id, player1_score=7, player2_score=1
        )
        manager.on_match_completed(match.id)
        created.extend(outcome.created_matches)

    assert len(created) == 1
    final = created[0]
    await service.report_match_result(
        final.id, winner_id=final.player2_id, player1_score=2, player2_score=7
    )

    finished = await service.get_tournament(tournament.id)
    assert finished is not None
    assert finished.status == TournamentStatus.COMPLETED
    rankings = await service.get_rankings(tournament.id)
    assert rankings[0].user_id == final.player2_id
    manager.shutdown()
