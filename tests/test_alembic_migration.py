from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa

from matchmaking.db.models import Match, Tournament, TournamentParticipant  # noqa: F401
from matchmaking.db.models.base import Base

VERSIONS_DIR = Path(__file__).resolve().parents[1] / "alembic" / "versions"
FOUNDATION = VERSIONS_DIR / "3f9c2a7d1b40_tournament_lifecycle_foundation.py"


class _RecordingOps:
    def __init__(self) -> None:
        self.tables: dict[str, tuple] = {}
        self.indexes: dict[str, tuple[str, list[str]]] = {}
        self.dropped: list[str] = []

    def create_table(self, name: str, *items, **kwargs) -> None:
        self.tables[name] = items

    def create_index(self, name: str, table_name: str, columns, **kwargs) -> None:
        self.indexes[name] = (table_name, list(columns))

    def drop_index(self, name: str, table_name: str | None = None) -> None:
        self.dropped.append(name)

    def drop_table(self, name: str) -> None:
        self.dropped.append(name)


def _load_revision(path: Path):
    module_spec = importlib.util.spec_from_file_location(path.stem, path)
    assert module_spec is not None and module_spec.loader is not None
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


@pytest.fixture
def ops(monkeypatch) -> tuple[object, _RecordingOps]:
    revision = _load_revision(FOUNDATION)
    recorder = _RecordingOps()
    monkeypatch.setattr(revision, "op", recorder)
    return revision, recorder


def test_foundation_is_the_only_root_revision() -> None:
    roots = [
        path.name
        for path in sorted(VERSIONS_DIR.glob("*.py"))
        if _load_revision(path).down_revision is None
    ]
    assert roots == [FOUNDATION.name]


def test_upgrade_matches_model_metadata(ops) -> None:
    revision, recorder = ops

    revision.upgrade()

    assert set(recorder.tables) == set(Base.metadata.tables)
    for table_name, items in recorder.tables.items():
        table = Base.metadata.tables[table_name]
        columns = {item.name: item for item in items if isinstance(item, sa.Column)}
        assert set(columns) == set(table.columns.keys()), table_name
        for column in table.columns:
            assert columns[column.name].nullable == column.nullable, column.name

        checks = {item.name for item in items if isinstance(item, sa.CheckConstraint)}
        assert checks == {
            constraint.name
            for constraint in table.constraints
            if isinstance(constraint, sa.CheckConstraint)
        }, table_name

    expected_indexes = {
        index.name: (table.name, [column.name for column in index.columns])
        for table in Base.metadata.tables.values()
        for index in table.indexes
    }
    assert recorder.indexes == expected_indexes


def test_downgrade_drops_everything_upgrade_creates(ops) -> None:
    revision, recorder = ops

    revision.upgrade()
    revision.downgrade()

    assert set(recorder.dropped) == set(recorder.tables) | set(recorder.indexes)
    assert recorder.dropped.index("matches") < recorder.dropped.index("tournaments")
