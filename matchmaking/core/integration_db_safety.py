from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy.engine import make_url

TEST_DB_NAME_RE = re.compile(r"test", re.IGNORECASE)
ALLOWED_LOCAL_HOSTS = {
    "localhost",
    "127.0.0.1",
    "::1",
    "postgres",
    "matchmaking_postgres",
}


@dataclass(frozen=True, slots=True)
class IntegrationDbCheck:
    is_safe: bool
    reason: str
    database_name: str
    host: str


def check_integration_db(database_url: str) -> IntegrationDbCheck:
    parsed = make_url(database_url)
    database_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    if parsed.get_backend_name() != "postgresql":
        reason = "only PostgreSQL test databases are supported"
    elif not database_name:
        reason = "database name is empty"
    elif TEST_DB_NAME_RE.search(database_name) is None:
        reason = "database name must contain 'test'"
    elif host not in ALLOWED_LOCAL_HOSTS:
        reason = "host is not a local integration-test host"
    else:
        return IntegrationDbCheck(is_safe=True, reason="ok", database_name=database_name, host=host)

    return IntegrationDbCheck(is_safe=False, reason=reason, database_name=database_name, host=host)


def assert_safe_integration_db(database_url: str) -> None:
    result = check_integration_db(database_url)
    if result.is_safe:
        return

    raise RuntimeError(
        "Refusing to drop tables in a non-test database.\n"
        f"Reason: {result.reason}\n"
        f"Resolved DB: name='{result.database_name}' host='{result.host}'"
    )
