from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from matchmaking.api.routes.health import router as health_router
from matchmaking.core.config import get_settings
from matchmaking.core.logging import configure_logging
from matchmaking.db.session import SessionLocal, dispose_engine
from matchmaking.db.stores import SqlMatchStore, SqlParticipantStore, SqlTournamentStore
from matchmaking.game.tournaments.lifecycle import TournamentLifecycleManager
from matchmaking.game.tournaments.service import TournamentService
from matchmaking.game.tournaments.timers import AsyncioTimerProvider

logger = structlog.get_logger("matchmaking.main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    tournament_store = SqlTournamentStore(SessionLocal)
    match_store = SqlMatchStore(SessionLocal)
    service = TournamentService(
        tournament_store=tournament_store,
        participant_store=SqlParticipantStore(SessionLocal),
        match_store=match_store,
    )
    timer_provider = AsyncioTimerProvider()
    lifecycle = TournamentLifecycleManager(
        tournament_service=service,
        tournament_store=tournament_store,
        match_store=match_store,
        timer_provider=timer_provider,
    )
    app.state.tournament_service = service
    app.state.tournament_lifecycle = lifecycle

    try:
        if settings.tournament_lifecycle_enabled:
            await lifecycle.initialize()
        else:
            logger.info("tournament_lifecycle_disabled")
        yield
    finally:
        lifecycle.shutdown()
        await timer_provider.aclose()
        await dispose_engine()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, app_env=settings.app_env)

    app = FastAPI(
        title="Matchmaking Tournament Service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.include_router(health_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "matchmaking.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
