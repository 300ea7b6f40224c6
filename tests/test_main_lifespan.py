from types import SimpleNamespace

import pytest
from fastapi import FastAPI

from matchmaking import main


class _TimerProvider:
    def __init__(self, events: list[str]) -> None:
        self._events = events

    async def aclose(self) -> None:
        self._events.append("timers_closed")


def _lifecycle_factory(events: list[str], *, fail: bool):
    class _Lifecycle:
        def __init__(self, **kwargs) -> None:
            pass

        async def initialize(self) -> None:
            events.append("initialize")
            if fail:
                raise RuntimeError("database down")

        def shutdown(self) -> None:
            events.append("shutdown")

    return _Lifecycle


@pytest.fixture
def events(monkeypatch) -> list[str]:
    recorded: list[str] = []

    async def _dispose_engine() -> None:
        recorded.append("engine_disposed")

    monkeypatch.setattr(
        main, "get_settings", lambda: SimpleNamespace(tournament_lifecycle_enabled=True)
    )
    monkeypatch.setattr(main, "AsyncioTimerProvider", lambda: _TimerProvider(recorded))
    monkeypatch.setattr(main, "dispose_engine", _dispose_engine)
    return recorded


@pytest.mark.asyncio
async def test_lifespan_drains_timers_before_disposing_engine(monkeypatch, events) -> None:
    monkeypatch.setattr(main, "TournamentLifecycleManager", _lifecycle_factory(events, fail=False))

    async with main.lifespan(FastAPI()):
        events.append("serving")

    assert events == ["initialize", "serving", "shutdown", "timers_closed", "engine_disposed"]


@pytest.mark.asyncio
async def test_lifespan_cleans_up_when_initialize_fails(monkeypatch, events) -> None:
    monkeypatch.setattr(main, "TournamentLifecycleManager", _lifecycle_factory(events, fail=True))

    with pytest.raises(RuntimeError):
        async with main.lifespan(FastAPI()):
            events.append("serving")

    assert events == ["initialize", "shutdown", "timers_closed", "engine_disposed"]
