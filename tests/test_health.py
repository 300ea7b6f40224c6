import pytest
from fastapi.testclient import TestClient

from matchmaking.api.routes import health as health_routes
from matchmaking.game.tournaments.types import TimerCounts
from matchmaking.main import app


async def _ok_check() -> dict[str, str]:
    return {"status": "ok"}


class _Lifecycle:
    def get_timer_counts(self) -> TimerCounts:
        return TimerCounts(tournaments=2, matches=5)


@pytest.fixture(autouse=True)
def reset_app_state():
    app.state.tournament_lifecycle = None
    yield
    app.state.tournament_lifecycle = None


def test_health_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_routes, "_check_database", _ok_check)

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "checks": {"database": {"status": "ok"}},
    }


def test_health_reports_timer_counts(monkeypatch) -> None:
    monkeypatch.setattr(health_routes, "_check_database", _ok_check)
    app.state.tournament_lifecycle = _Lifecycle()

    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["timers"] == {"tournaments": 2, "matches": 5}


def test_live_ok() -> None:
    client = TestClient(app)
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "live"}


def test_health_returns_503_when_database_failed(monkeypatch) -> None:
    async def _failed_database() -> dict[str, str]:
        return {"status": "failed", "error": "database_unavailable"}

    monkeypatch.setattr(health_routes, "_check_database", _failed_database)

    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["checks"]["database"]["error"] == "database_unavailable"


@pytest.mark.asyncio
async def test_database_check_sanitizes_exception(monkeypatch) -> None:
    class _BrokenSession:
        async def __aenter__(self):
            raise RuntimeError("password=secret")

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    monkeypatch.setattr(health_routes, "SessionLocal", lambda: _BrokenSession())

    result = await health_routes._check_database()
    assert result == {"status": "failed", "error": "database_unavailable"}
