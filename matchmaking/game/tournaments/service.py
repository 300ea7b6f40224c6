from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog

from matchmaking.game.tournaments.constants import (
    ACTIVE_MATCH_STATUSES,
    CANCELLABLE_TOURNAMENT_STATUSES,
    MATCH_DEFAULT_GAME_MODE,
    RESULT_SOURCE_GAME_SERVER,
    TERMINAL_MATCH_STATUSES,
    TERMINAL_TOURNAMENT_STATUSES,
    TOURNAMENT_DEFAULT_FORMAT,
    TOURNAMENT_DEFAULT_MATCH_DEADLINE_MIN,
    TOURNAMENT_DEFAULT_MAX_PLAYERS,
    TOURNAMENT_DEFAULT_MIN_PLAYERS,
    TOURNAMENT_DEFAULT_TIE_BREAKER,
    TOURNAMENT_MIN_PLAYERS_FLOOR,
    MatchStatus,
    TieBreaker,
    TournamentFormat,
    TournamentStatus,
)
from matchmaking.game.tournaments.errors import (
    MatchNotFoundError,
    MatchResultError,
    TournamentAccessError,
    TournamentAlreadyRegisteredError,
    TournamentClosedError,
    TournamentErrorCode,
    TournamentFullError,
    TournamentInvalidConfigError,
    TournamentInvalidStatusError,
    TournamentNotFoundError,
    TournamentNotRegisteredError,
)
from matchmaking.game.tournaments.pairing import DEFAULT_FORMATS, FormatStrategy, round_is_closed
from matchmaking.game.tournaments.rankings import compute_rankings, find_golden_game_pair
from matchmaking.game.tournaments.state_machine import (
    ensure_match_transition,
    ensure_tournament_transition,
)
from matchmaking.game.tournaments.stores import MatchStore, ParticipantStore, TournamentStore
from matchmaking.game.tournaments.types import (
    CreateTournamentParams,
    MatchPairing,
    MatchRecord,
    MatchResultOutcome,
    ParticipantRecord,
    RegistrationResult,
    TournamentRanking,
    TournamentRecord,
    TournamentSummary,
)

logger = structlog.get_logger("matchmaking.game.tournaments.service")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class TournamentService:
    """Tournament rules and the tournament/match state machine.

    Every status change goes through the transition table and a status-guarded
    conditional store update, so a caller racing a timer loses cleanly instead of
    applying a second transition.
    """

    def __init__(
        self,
        *,
        tournament_store: TournamentStore,
        participant_store: ParticipantStore,
        match_store: MatchStore,
        formats: Mapping[TournamentFormat, FormatStrategy] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._tournaments = tournament_store
        self._participants = participant_store
        self._matches = match_store
        self._formats = dict(formats or DEFAULT_FORMATS)
        self._clock = clock or _now_utc
        self._progress_locks: dict[UUID, asyncio.Lock] = {}

    async def create_tournament(self, params: CreateTournamentParams) -> TournamentRecord:
        now_utc = self._clock()
        registration_start = params.registration_start or now_utc
        if params.registration_end <= now_utc or params.registration_end <= registration_start:
            raise TournamentInvalidConfigError(
                "registration end must be in the future",
                code=TournamentErrorCode.INVALID_REGISTRATION_END,
            )

        min_players = _resolve(params.min_players, TOURNAMENT_DEFAULT_MIN_PLAYERS)
        max_players = _resolve(params.max_players, TOURNAMENT_DEFAULT_MAX_PLAYERS)
        if min_players < TOURNAMENT_MIN_PLAYERS_FLOOR or min_players > max_players:
            raise TournamentInvalidConfigError(
                "min players must be at least 2 and not above max players",
                code=TournamentErrorCode.INVALID_PLAYER_LIMITS,
            )

        match_deadline_min = _resolve(params.match_deadline_min, TOURNAMENT_DEFAULT_MATCH_DEADLINE_MIN)
        if match_deadline_min < 1:
            raise TournamentInvalidConfigError(
                "match deadline must be at least one minute",
                code=TournamentErrorCode.INVALID_MATCH_DEADLINE,
            )

        if params.start_time is not None and params.start_time <= params.registration_end:
            raise TournamentInvalidConfigError(
                "start time must be after registration end",
                code=TournamentErrorCode.INVALID_START_TIME,
            )

        tournament = await self._tournaments.create(
            TournamentRecord(
                id=uuid4(),
                name=params.name.strip(),
                format=TournamentFormat(params.format or TOURNAMENT_DEFAULT_FORMAT),
                min_players=min_players,
                max_players=max_players,
                match_deadline_min=match_deadline_min,
                tie_breaker=TieBreaker(params.tie_breaker or TOURNAMENT_DEFAULT_TIE_BREAKER),
                created_by=params.created_by,
                registration_start=registration_start,
                registration_end=params.registration_end,
                scheduled_start=params.start_time,
                start_time=None,
                end_time=None,
                status=TournamentStatus.REGISTRATION,
                created_at=now_utc,
                updated_at=now_utc,
            )
        )
        logger.info(
            "tournament_created",
            tournament_id=str(tournament.id),
            created_by=tournament.created_by,
            format=tournament.format.value,
            registration_end=tournament.registration_end.isoformat(),
        )
        return tournament

    async def cancel_tournament(self, tournament_id: UUID, user_id: int) -> TournamentRecord:
        tournament = await self._require_tournament(tournament_id)
        if tournament.created_by != user_id:
            raise TournamentAccessError("only the creator can cancel the tournament")
        if tournament.status not in CANCELLABLE_TOURNAMENT_STATUSES:
            raise TournamentInvalidStatusError(
                "cannot cancel a tournament that is in progress or finished"
            )

        cancelled = await self._transition(
            tournament,
            TournamentStatus.CANCELLED,
            {"end_time": self._clock()},
        )
        if cancelled is None:
            raise TournamentInvalidStatusError("tournament status changed concurrently")
        logger.info("tournament_cancelled", tournament_id=str(tournament_id), user_id=user_id)
        return cancelled

    async def register(
        self,
        tournament_id: UUID,
        user_id: int,
        *,
        username: str | None = None,
    ) -> RegistrationResult:
        tournament = await self._require_tournament(tournament_id)
        now_utc = self._clock()
        self._ensure_registration_open(tournament, now_utc=now_utc)

        if await self._participants.is_registered(tournament_id=tournament_id, user_id=user_id):
            raise TournamentAlreadyRegisteredError
        participants_total = await self._participants.count(tournament_id=tournament_id)
        if participants_total >= tournament.max_players:
            raise TournamentFullError

        added = await self._participants.add(
            tournament_id=tournament_id,
            user_id=user_id,
            username=username or f"User{user_id}",
            joined_at=now_utc,
        )
        if not added:
            raise TournamentAlreadyRegisteredError

        participants_total = await self._participants.count(tournament_id=tournament_id)
        if participants_total > tournament.max_players:
            await self._participants.remove(tournament_id=tournament_id, user_id=user_id)
            raise TournamentFullError

        logger.info(
            "tournament_participant_registered",
            tournament_id=str(tournament_id),
            user_id=user_id,
            participants_total=participants_total,
        )
        return RegistrationResult(
            tournament_id=tournament_id,
            participants_total=participants_total,
            full=participants_total >= tournament.max_players,
        )

    async def unregister(self, tournament_id: UUID, user_id: int) -> None:
        tournament = await self._require_tournament(tournament_id)
        self._ensure_registration_open(tournament, now_utc=self._clock())
        if not await self._participants.is_registered(tournament_id=tournament_id, user_id=user_id):
            raise TournamentNotRegisteredError
        await self._participants.remove(tournament_id=tournament_id, user_id=user_id)
        logger.info(
            "tournament_participant_unregistered",
            tournament_id=str(tournament_id),
            user_id=user_id,
        )

    async def is_registered(self, tournament_id: UUID, user_id: int) -> bool:
        return await self._participants.is_registered(tournament_id=tournament_id, user_id=user_id)

    async def close_registration(self, tournament_id: UUID) -> TournamentRecord:
        tournament = await self._require_tournament(tournament_id)
        if tournament.status != TournamentStatus.REGISTRATION:
            logger.info(
                "tournament_registration_close_skipped",
                tournament_id=str(tournament_id),
                status=tournament.status.value,
            )
            return tournament

        participants = await self._participants.list_for_tournament(tournament_id=tournament_id)
        pairings = self._format_for(tournament).first_round(participants=participants)
        if len(participants) < tournament.min_players or not pairings:
            cancelled = await self._transition(
                tournament,
                TournamentStatus.CANCELLED,
                {"end_time": self._clock()},
            )
            logger.info(
                "tournament_cancelled_insufficient_players",
                tournament_id=str(tournament_id),
                participants_total=len(participants),
                min_players=tournament.min_players,
            )
            return cancelled or await self._require_tournament(tournament_id)

        scheduled = await self._transition(
            tournament,
            TournamentStatus.SCHEDULED,
            {"start_time": tournament.scheduled_start},
        )
        if scheduled is None:
            return await self._require_tournament(tournament_id)
        logger.info(
            "tournament_registration_closed",
            tournament_id=str(tournament_id),
            participants_total=len(participants),
            first_round_matches=len(pairings),
            start_time=scheduled.start_time.isoformat() if scheduled.start_time else None,
        )
        return scheduled

    async def start_tournament(self, tournament_id: UUID) -> list[MatchRecord]:
        tournament = await self._require_tournament(tournament_id)
        if tournament.status != TournamentStatus.SCHEDULED:
            logger.info(
                "tournament_start_skipped",
                tournament_id=str(tournament_id),
                status=tournament.status.value,
            )
            return []

        participants = await self._participants.list_for_tournament(tournament_id=tournament_id)
        if len(participants) < tournament.min_players:
            await self._transition(tournament, TournamentStatus.CANCELLED, {"end_time": self._clock()})
            logger.warning(
                "tournament_cancelled_insufficient_players",
                tournament_id=str(tournament_id),
                participants_total=len(participants),
                min_players=tournament.min_players,
            )
            return []

        now_utc = self._clock()
        records = self._build_matches(
            tournament,
            pairings=self._format_for(tournament).first_round(participants=participants),
            participants=participants,
            round_no=1,
            now_utc=now_utc,
        )
        ensure_tournament_transition(tournament.status, TournamentStatus.IN_PROGRESS)
        # Status change and first-round rows commit together; a second caller finds IN_PROGRESS.
        claimed = await self._tournaments.update_with_matches(
            tournament_id,
            {
                "status": TournamentStatus.IN_PROGRESS,
                "start_time": tournament.start_time or now_utc,
                "updated_at": now_utc,
            },
            expected_status=tournament.status,
            matches=records,
        )
        if claimed is None:
            logger.info("tournament_start_lost_race", tournament_id=str(tournament_id))
            return []
        _, matches = claimed

        logger.info(
            "tournament_started",
            tournament_id=str(tournament_id),
            matches_total=len(matches),
            participants_total=len(participants),
        )
        return matches

    async def process_match_result(self, match: MatchRecord) -> list[MatchRecord]:
        """Advance the tournament after one of its matches reached a terminal status.

        Returns matches created as a consequence (next elimination round or golden game).
        """
        if match.tournament_id is None:
            return []
        return await self.advance_tournament(match.tournament_id, match_id=match.id)

    async def advance_tournament(
        self,
        tournament_id: UUID,
        *,
        match_id: UUID | None = None,
    ) -> list[MatchRecord]:
        """Create the next round or a golden game, or complete the tournament.

        Acts only once the latest round is closed, so repeated calls are harmless. Startup
        recovery uses it for tournaments whose last result was stored but never processed.
        """
        async with self._progress_lock(tournament_id):
            tournament = await self._tournaments.find_by_id(tournament_id)
            if tournament is None or tournament.status != TournamentStatus.IN_PROGRESS:
                logger.info(
                    "tournament_match_result_ignored",
                    tournament_id=str(tournament_id),
                    match_id=str(match_id) if match_id else None,
                    status=tournament.status.value if tournament else None,
                )
                if tournament is None or tournament.status in TERMINAL_TOURNAMENT_STATUSES:
                    self._progress_locks.pop(tournament_id, None)
                return []

            matches = await self._matches.find_by_tournament(tournament.id)
            if not matches:
                logger.warning(
                    "tournament_in_progress_without_matches",
                    tournament_id=str(tournament_id),
                )
                return []
            if not round_is_closed(matches=matches):
                return []

            participants = await self._participants.list_for_tournament(tournament_id=tournament.id)
            strategy = self._format_for(tournament)
            now_utc = self._clock()
            next_round_no = max(item.round_no for item in matches) + 1

            pairings = strategy.next_round(participants=participants, matches=matches)
            if pairings:
                created = await self._create_matches(
                    tournament,
                    pairings=pairings,
                    participants=participants,
                    round_no=next_round_no,
                    now_utc=now_utc,
                )
                logger.info(
                    "tournament_round_created",
                    tournament_id=str(tournament.id),
                    round_no=next_round_no,
                    matches_total=len(created),
                )
                return created

            if strategy.supports_golden_game and tournament.tie_breaker == TieBreaker.GOLDEN_GAME:
                pair = find_golden_game_pair(
                    participant_ids=[item.user_id for item in participants],
                    matches=matches,
                )
                if pair is not None:
                    created = await self._create_matches(
                        tournament,
                        pairings=[MatchPairing(player1_id=pair[0], player2_id=pair[1])],
                        participants=participants,
                        round_no=next_round_no,
                        now_utc=now_utc,
                        is_golden_game=True,
                    )
                    logger.info(
                        "tournament_golden_game_scheduled",
                        tournament_id=str(tournament.id),
                        player1_id=pair[0],
                        player2_id=pair[1],
                    )
                    return created

            await self._complete(tournament, participants=participants, matches=matches)
            self._progress_locks.pop(tournament_id, None)
            return []

    async def acknowledge_match(self, match_id: UUID, user_id: int) -> MatchRecord:
        match = await self._require_match(match_id)
        if not match.has_player(user_id):
            raise TournamentAccessError("user is not a player of this match")
        if match.status != MatchStatus.PENDING_ACKNOWLEDGEMENT:
            raise TournamentInvalidStatusError("match is not waiting for acknowledgement")

        is_player1 = match.player1_id == user_id
        if (is_player1 and match.player1_acknowledged) or (
            not is_player1 and match.player2_acknowledged
        ):
            return match

        changes: dict[str, Any] = (
            {"player1_acknowledged": True} if is_player1 else {"player2_acknowledged": True}
        )
        if match.player1_acknowledged or match.player2_acknowledged:
            ensure_match_transition(match.status, MatchStatus.IN_PROGRESS)
            changes.update(status=MatchStatus.IN_PROGRESS, started_at=self._clock())

        updated = await self._matches.update(
            match_id,
            changes,
            expected_statuses=(MatchStatus.PENDING_ACKNOWLEDGEMENT,),
        )
        if updated is None:
            raise TournamentInvalidStatusError("match status changed concurrently")
        logger.info(
            "match_acknowledged",
            match_id=str(match_id),
            user_id=user_id,
            status=updated.status.value,
        )
        return updated

    async def report_match_result(
        self,
        match_id: UUID,
        *,
        winner_id: int,
        player1_score: int,
        player2_score: int,
        game_session_id: str | None = None,
    ) -> MatchResultOutcome:
        match = await self._require_match(match_id)
        if match.status in TERMINAL_MATCH_STATUSES:
            raise TournamentInvalidStatusError("match already finished")
        if not match.has_player(winner_id):
            raise MatchResultError("winner is not a player of this match")
        if player1_score < 0 or player2_score < 0:
            raise MatchResultError("scores must not be negative")
        ensure_match_transition(match.status, MatchStatus.COMPLETED)

        completed = await self._matches.update(
            match_id,
            {
                "status": MatchStatus.COMPLETED,
                "winner_id": winner_id,
                "player1_score": player1_score,
                "player2_score": player2_score,
                "game_session_id": game_session_id,
                "result_source": RESULT_SOURCE_GAME_SERVER,
                "completed_at": self._clock(),
            },
            expected_statuses=ACTIVE_MATCH_STATUSES,
        )
        if completed is None:
            raise TournamentInvalidStatusError("match already finished")
        logger.info(
            "match_completed",
            match_id=str(match_id),
            tournament_id=str(match.tournament_id) if match.tournament_id else None,
            winner_id=winner_id,
        )
        created = await self.process_match_result(completed)
        return MatchResultOutcome(match=completed, created_matches=created)

    async def get_tournament(self, tournament_id: UUID) -> TournamentRecord | None:
        return await self._tournaments.find_by_id(tournament_id)

    async def get_tournament_summary(self, tournament_id: UUID) -> TournamentSummary | None:
        tournament = await self._tournaments.find_by_id(tournament_id)
        if tournament is None:
            return None
        return await self._build_summary(tournament)

    async def get_open_tournaments(self) -> list[TournamentSummary]:
        now_utc = self._clock()
        tournaments = await self._tournaments.find_by_status(TournamentStatus.REGISTRATION)
        open_tournaments = sorted(
            (item for item in tournaments if item.registration_end > now_utc),
            key=lambda item: item.registration_end,
        )
        return [await self._build_summary(item) for item in open_tournaments]

    async def get_rankings(self, tournament_id: UUID) -> list[TournamentRanking]:
        tournament = await self._require_tournament(tournament_id)
        participants = await self._participants.list_for_tournament(tournament_id=tournament_id)
        matches = await self._matches.find_by_tournament(tournament_id)
        return compute_rankings(
            participant_ids=[item.user_id for item in participants],
            matches=matches,
            tie_breaker=tournament.tie_breaker,
        )

    async def get_matches(self, tournament_id: UUID) -> list[MatchRecord]:
        return await self._matches.find_by_tournament(tournament_id)

    async def get_participant_ids(self, tournament_id: UUID) -> list[int]:
        participants = await self._participants.list_for_tournament(tournament_id=tournament_id)
        return [item.user_id for item in participants]

    async def _require_tournament(self, tournament_id: UUID) -> TournamentRecord:
        tournament = await self._tournaments.find_by_id(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError
        return tournament

    async def _require_match(self, match_id: UUID) -> MatchRecord:
        match = await self._matches.find_by_id(match_id)
        if match is None:
            raise MatchNotFoundError
        return match

    def _ensure_registration_open(self, tournament: TournamentRecord, *, now_utc: datetime) -> None:
        if tournament.status != TournamentStatus.REGISTRATION:
            raise TournamentClosedError("tournament is not open for registration")
        if tournament.registration_end <= now_utc:
            raise TournamentClosedError("registration has ended")

    def _format_for(self, tournament: TournamentRecord) -> FormatStrategy:
        return self._formats[TournamentFormat(tournament.format)]

    def _progress_lock(self, tournament_id: UUID) -> asyncio.Lock:
        lock = self._progress_locks.get(tournament_id)
        if lock is None:
            lock = self._progress_locks[tournament_id] = asyncio.Lock()
        return lock

    async def _transition(
        self,
        tournament: TournamentRecord,
        target: TournamentStatus,
        changes: Mapping[str, Any],
    ) -> TournamentRecord | None:
        ensure_tournament_transition(tournament.status, target)
        return await self._tournaments.update(
            tournament.id,
            {**changes, "status": target, "updated_at": self._clock()},
            expected_status=tournament.status,
        )

    async def _create_matches(
        self,
        tournament: TournamentRecord,
        *,
        pairings: list[MatchPairing],
        participants: list[ParticipantRecord],
        round_no: int,
        now_utc: datetime,
        is_golden_game: bool = False,
    ) -> list[MatchRecord]:
        records = self._build_matches(
            tournament,
            pairings=pairings,
            participants=participants,
            round_no=round_no,
            now_utc=now_utc,
            is_golden_game=is_golden_game,
        )
        if not records:
            return []
        return await self._matches.create_many(records)

    def _build_matches(
        self,
        tournament: TournamentRecord,
        *,
        pairings: list[MatchPairing],
        participants: list[ParticipantRecord],
        round_no: int,
        now_utc: datetime,
        is_golden_game: bool = False,
    ) -> list[MatchRecord]:
        usernames = {item.user_id: item.username for item in participants}
        deadline = now_utc + timedelta(minutes=tournament.match_deadline_min)
        return [
            MatchRecord(
                id=uuid4(),
                tournament_id=tournament.id,
                game_mode=MATCH_DEFAULT_GAME_MODE,
                player1_id=pairing.player1_id,
                player2_id=pairing.player2_id,
                player1_username=usernames.get(pairing.player1_id, f"User{pairing.player1_id}"),
                player2_username=usernames.get(pairing.player2_id, f"User{pairing.player2_id}"),
                status=MatchStatus.PENDING_ACKNOWLEDGEMENT,
                scheduled_at=now_utc,
                deadline=deadline,
                round_no=round_no,
                is_golden_game=is_golden_game,
            )
            for pairing in pairings
        ]

    async def _complete(
        self,
        tournament: TournamentRecord,
        *,
        participants: list[ParticipantRecord],
        matches: list[MatchRecord],
    ) -> None:
        completed = await self._transition(
            tournament,
            TournamentStatus.COMPLETED,
            {"end_time": self._clock()},
        )
        if completed is None:
            return
        rankings = compute_rankings(
            participant_ids=[item.user_id for item in participants],
            matches=matches,
            tie_breaker=tournament.tie_breaker,
        )
        logger.info(
            "tournament_completed",
            tournament_id=str(tournament.id),
            winner_id=rankings[0].user_id if rankings else None,
            matches_total=len(matches),
        )

    async def _build_summary(self, tournament: TournamentRecord) -> TournamentSummary:
        participant_count = await self._participants.count(tournament_id=tournament.id)
        return TournamentSummary(
            id=tournament.id,
            name=tournament.name,
            format=tournament.format,
            status=tournament.status,
            min_players=tournament.min_players,
            max_players=tournament.max_players,
            participant_count=participant_count,
            registration_end=tournament.registration_end,
            start_time=tournament.start_time or tournament.scheduled_start,
            created_by=tournament.created_by,
            created_at=tournament.created_at,
        )


def _resolve(value: int | None, default: int) -> int:
    return default if value is None else int(value)
