from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from matchmaking.db.session import SessionLocal

router = APIRouter(tags=["health"])


def _ok_check(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": "ok"}
    if extra:
        payload.update(extra)
    return payload


def _failed_check(error: str) -> dict[str, str]:
    return {"status": "failed", "error": error}


async def _check_database() -> dict[str, Any]:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return _ok_check()
    except Exception:
        return _failed_check("database_unavailable")


def _lifecycle_timers(request: Request) -> dict[str, int] | None:
    lifecycle = getattr(request.app.state, "tournament_lifecycle", None)
    if lifecycle is None:
        return None
    counts = lifecycle.get_timer_counts()
    return {"tournaments": counts.tournaments, "matches": counts.matches}


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    checks = {"database": await _check_database()}
    is_healthy = all(check.get("status") == "ok" for check in checks.values())
    content: dict[str, Any] = {
        "status": "ok" if is_healthy else "degraded",
        "checks": checks,
    }
    timers = _lifecycle_timers(request)
    if timers is not None:
        content["timers"] = timers
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=content,
    )
