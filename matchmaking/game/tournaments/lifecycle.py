from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import structlog

from matchmaking.game.tournaments.constants import (
    ACTIVE_MATCH_STATUSES,
    MATCH_TIMEOUT_FORFEIT_SCORE,
    RESULT_SOURCE_TIMEOUT,
    TERMINAL_MATCH_STATUSES,
    MatchStatus,
    TournamentStatus,
)
from matchmaking.game.tournaments.service import TournamentService
from matchmaking.game.tournaments.state_machine import ensure_match_transition
from matchmaking.game.tournaments.stores import MatchStore, TournamentStore
from matchmaking.game.tournaments.timers import TimerProvider
from matchmaking.game.tournaments.types import MatchRecord, TimerCounts, TournamentRecord

logger = structlog.get_logger("matchmaking.game.tournaments.lifecycle")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def timeout_outcome(match: MatchRecord) -> dict[str, Any]:
    """Result fields for a match whose deadline passed before a result was reported."""
    if match.player1_acknowledged and not match.player2_acknowledged:
        return {
            "winner_id": match.player1_id,
            "player1_score": MATCH_TIMEOUT_FORFEIT_SCORE,
            "player2_score": 0,
        }
    if match.player2_acknowledged and not match.player1_acknowledged:
        return {
            "winner_id": match.player2_id,
            "player1_score": 0,
            "player2_score": MATCH_TIMEOUT_FORFEIT_SCORE,
        }
    return {"winner_id": None, "player1_score": 0, "player2_score": 0}


class TournamentLifecycleManager:
    """Owns the wall-clock timers that drive tournaments and matches forward.

    Holds no durable state: ``initialize`` rebuilds every timer from the stores, so a
    restart resumes exactly where the previous process stopped. Handlers always reload
    the persisted status, which turns a timer racing a user action into a no-op.
    """

    def __init__(
        self,
        *,
        tournament_service: TournamentService,
        tournament_store: TournamentStore,
        match_store: MatchStore,
        timer_provider: TimerProvider,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._service = tournament_service
        self._tournaments = tournament_store
        self._matches = match_store
        self._timer_provider = timer_provider
        self._clock = clock or _now_utc
        self.tournament_timers: dict[UUID, Any] = {}
        self.match_timers: dict[UUID, Any] = {}

    async def initialize(self) -> None:
        registration = await self._tournaments.find_by_status(TournamentStatus.REGISTRATION)
        for tournament in registration:
            await self._recover(
                "registration_end", tournament.id, self._schedule_registration_end(tournament)
            )

        scheduled = await self._tournaments.find_by_status(TournamentStatus.SCHEDULED)
        for tournament in scheduled:
            await self._recover(
                "start", tournament.id, self._schedule_start(tournament.id, tournament.start_time)
            )

        # A result stored right before a crash may have closed a round nobody advanced.
        in_progress = await self._tournaments.find_by_status(TournamentStatus.IN_PROGRESS)
        for tournament in in_progress:
            await self._recover("advance", tournament.id, self._advance(tournament.id))

        pending_matches = await self._matches.find_pending_with_deadline()
        for match in pending_matches:
            await self._recover("deadline", match.id, self._schedule_deadline(match))

        logger.info(
            "tournament_lifecycle_initialized",
            registration_total=len(registration),
            scheduled_total=len(scheduled),
            in_progress_total=len(in_progress),
            pending_matches_total=len(pending_matches),
            tournament_timers=len(self.tournament_timers),
            match_timers=len(self.match_timers),
        )

    def shutdown(self) -> None:
        for handle in self.tournament_timers.values():
            self._timer_provider.clear_timeout(handle)
        for handle in self.match_timers.values():
            self._timer_provider.clear_timeout(handle)
        cleared = len(self.tournament_timers) + len(self.match_timers)
        self.tournament_timers.clear()
        self.match_timers.clear()
        logger.info("tournament_lifecycle_shutdown", timers_cleared=cleared)

    def get_timer_counts(self) -> TimerCounts:
        return TimerCounts(
            tournaments=len(self.tournament_timers),
            matches=len(self.match_timers),
        )

    async def on_tournament_created(self, tournament: TournamentRecord) -> None:
        await self._schedule_registration_end(tournament)

    async def on_registration_full(self, tournament_id: UUID) -> None:
        self._cancel(self.tournament_timers, tournament_id)
        logger.info("tournament_registration_full", tournament_id=str(tournament_id))
        await self._handle_registration_end(tournament_id)

    def on_tournament_cancelled(self, tournament_id: UUID) -> None:
        self._cancel(self.tournament_timers, tournament_id)

    async def on_match_created(self, match: MatchRecord) -> None:
        if match.deadline is None:
            return
        await self._schedule_deadline(match)

    def on_match_completed(self, match_id: UUID) -> None:
        self._cancel(self.match_timers, match_id)

    async def _handle_registration_end(self, tournament_id: UUID) -> None:
        self.tournament_timers.pop(tournament_id, None)
        tournament = await self._service.close_registration(tournament_id)
        if tournament.status == TournamentStatus.CANCELLED:
            logger.info("tournament_lifecycle_cancelled", tournament_id=str(tournament_id))
            return
        if tournament.status != TournamentStatus.SCHEDULED:
            logger.info(
                "tournament_registration_end_skipped",
                tournament_id=str(tournament_id),
                status=tournament.status.value,
            )
            return
        await self._schedule_start(tournament_id, tournament.start_time)

    async def _handle_start(self, tournament_id: UUID) -> None:
        self.tournament_timers.pop(tournament_id, None)
        matches = await self._service.start_tournament(tournament_id)
        for match in matches:
            await self.on_match_created(match)

    async def _handle_deadline(self, match_id: UUID) -> None:
        self.match_timers.pop(match_id, None)
        match = await self._matches.find_by_id(match_id)
        if match is None:
            logger.warning("match_deadline_missing_match", match_id=str(match_id))
            return
        if match.status in TERMINAL_MATCH_STATUSES:
            logger.info("match_deadline_skipped", match_id=str(match_id), status=match.status.value)
            return

        ensure_match_transition(match.status, MatchStatus.TIMEOUT)
        timed_out = await self._matches.update(
            match_id,
            {
                **timeout_outcome(match),
                "status": MatchStatus.TIMEOUT,
                "result_source": RESULT_SOURCE_TIMEOUT,
                "completed_at": self._clock(),
            },
            expected_statuses=ACTIVE_MATCH_STATUSES,
        )
        if timed_out is None:
            logger.info("match_deadline_lost_race", match_id=str(match_id))
            return
        logger.info(
            "match_timed_out",
            match_id=str(match_id),
            tournament_id=str(timed_out.tournament_id) if timed_out.tournament_id else None,
            winner_id=timed_out.winner_id,
        )
        if timed_out.is_casual:
            return

        created = await self._service.process_match_result(timed_out)
        for new_match in created:
            await self.on_match_created(new_match)

    async def _advance(self, tournament_id: UUID) -> None:
        created = await self._service.advance_tournament(tournament_id)
        for match in created:
            await self.on_match_created(match)

    async def _recover(self, step: str, item_id: UUID, work: Awaitable[None]) -> None:
        try:
            await work
        except Exception:
            logger.exception(
                "tournament_recovery_failed",
                step=step,
                item_id=str(item_id),
            )

    async def _schedule_registration_end(self, tournament: TournamentRecord) -> None:
        tournament_id = tournament.id

        async def handler() -> None:
            await self._handle_registration_end(tournament_id)

        await self._run_or_schedule(
            timers=self.tournament_timers,
            key=tournament_id,
            due_at=tournament.registration_end,
            handler=handler,
        )

    async def _schedule_start(self, tournament_id: UUID, start_time: datetime | None) -> None:
        async def handler() -> None:
            await self._handle_start(tournament_id)

        await self._run_or_schedule(
            timers=self.tournament_timers,
            key=tournament_id,
            due_at=start_time,
            handler=handler,
        )

    async def _schedule_deadline(self, match: MatchRecord) -> None:
        match_id = match.id

        async def handler() -> None:
            await self._handle_deadline(match_id)

        await self._run_or_schedule(
            timers=self.match_timers,
            key=match_id,
            due_at=match.deadline,
            handler=handler,
        )

    async def _run_or_schedule(
        self,
        *,
        timers: dict[UUID, Any],
        key: UUID,
        due_at: datetime | None,
        handler: Callable[[], Awaitable[None]],
    ) -> None:
        self._cancel(timers, key)
        delay_ms = 0.0
        if due_at is not None:
            delay_ms = (due_at - self._clock()) / timedelta(milliseconds=1)
        if delay_ms <= 0:
            await handler()
            return
        timers[key] = self._timer_provider.set_timeout(handler, delay_ms)

    def _cancel(self, timers: dict[UUID, Any], key: UUID) -> None:
        handle = timers.pop(key, None)
        if handle is not None:
            self._timer_provider.clear_timeout(handle)
