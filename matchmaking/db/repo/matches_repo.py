from __future__ import annotations

from collections.abc import Collection, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from matchmaking.db.models.matches import Match


class MatchesRepo:
    @staticmethod
    async def create_many(session: AsyncSession, *, matches: list[Match]) -> list[Match]:
        session.add_all(matches)
        await session.flush()
        return matches

    @staticmethod
    async def get_by_id(session: AsyncSession, match_id: UUID) -> Match | None:
        return await session.get(Match, match_id)

    @staticmethod
    async def list_by_tournament(session: AsyncSession, *, tournament_id: UUID) -> list[Match]:
        stmt = (
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.round_no.asc(), Match.scheduled_at.asc(), Match.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_pending_with_deadline(
        session: AsyncSession,
        *,
        statuses: Collection[str],
    ) -> list[Match]:
        stmt = (
            select(Match)
            .where(
                Match.status.in_(tuple(statuses)),
                Match.deadline.is_not(None),
            )
            .order_by(Match.deadline.asc(), Match.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def update_fields(
        session: AsyncSession,
        *,
        match_id: UUID,
        values: Mapping[str, Any],
        expected_statuses: Collection[str] | None = None,
    ) -> Match | None:
        stmt = update(Match).where(Match.id == match_id)
        if expected_statuses is not None:
            stmt = stmt.where(Match.status.in_(tuple(expected_statuses)))
        stmt = stmt.values(**values).returning(Match)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
