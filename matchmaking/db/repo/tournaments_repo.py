from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from matchmaking.db.models.tournaments import Tournament


class TournamentsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, tournament: Tournament) -> Tournament:
        session.add(tournament)
        await session.flush()
        return tournament

    @staticmethod
    async def get_by_id(session: AsyncSession, tournament_id: UUID) -> Tournament | None:
        return await session.get(Tournament, tournament_id)

    @staticmethod
    async def list_by_status(session: AsyncSession, *, status: str) -> list[Tournament]:
        stmt = (
            select(Tournament)
            .where(Tournament.status == status)
            .order_by(Tournament.registration_end.asc(), Tournament.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def update_fields(
        session: AsyncSession,
        *,
        tournament_id: UUID,
        values: Mapping[str, Any],
        expected_status: str | None = None,
    ) -> Tournament | None:
        stmt = update(Tournament).where(Tournament.id == tournament_id)
        if expected_status is not None:
            stmt = stmt.where(Tournament.status == expected_status)
        stmt = stmt.values(**values).returning(Tournament)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
