"""Persistence contracts consumed by the tournament service and lifecycle manager.

``update`` calls accepting an expected status are conditional: they apply the changes
only while the persisted status still matches and return ``None`` otherwise. Handlers
racing a user action rely on this to turn a lost race into a no-op.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from matchmaking.game.tournaments.constants import MatchStatus, TournamentStatus
from matchmaking.game.tournaments.types import MatchRecord, ParticipantRecord, TournamentRecord


class TournamentStore(Protocol):
    async def create(self, tournament: TournamentRecord) -> TournamentRecord: ...

    async def find_by_id(self, tournament_id: UUID) -> TournamentRecord | None: ...

    async def find_by_status(self, status: TournamentStatus) -> list[TournamentRecord]: ...

    async def update(
        self,
        tournament_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_status: TournamentStatus | None = None,
    ) -> TournamentRecord | None: ...

    async def update_with_matches(
        self,
        tournament_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_status: TournamentStatus,
        matches: list[MatchRecord],
    ) -> tuple[TournamentRecord, list[MatchRecord]] | None:
        """Conditional update plus match inserts in one transaction.

        Either both are persisted or neither is. ``None`` when the status guard fails.
        """
        ...


class ParticipantStore(Protocol):
    async def add(
        self,
        *,
        tournament_id: UUID,
        user_id: int,
        username: str,
        joined_at: datetime,
    ) -> bool: ...

    async def remove(self, *, tournament_id: UUID, user_id: int) -> bool: ...

    async def is_registered(self, *, tournament_id: UUID, user_id: int) -> bool: ...

    async def count(self, *, tournament_id: UUID) -> int: ...

    async def list_for_tournament(self, *, tournament_id: UUID) -> list[ParticipantRecord]: ...


class MatchStore(Protocol):
    async def create_many(self, matches: list[MatchRecord]) -> list[MatchRecord]: ...

    async def find_by_id(self, match_id: UUID) -> MatchRecord | None: ...

    async def find_by_tournament(self, tournament_id: UUID) -> list[MatchRecord]: ...

    async def find_pending_with_deadline(self) -> list[MatchRecord]: ...

    async def update(
        self,
        match_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_statuses: Iterable[MatchStatus] | None = None,
    ) -> MatchRecord | None: ...
