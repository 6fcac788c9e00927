"""Pytest configuration for test isolation.

Import options read ``FI_*`` defaults and the database client reads
``DATABASE_URL`` from the environment, and the SQLAlchemy engine is a process
singleton. Autouse fixtures clear those variables for every test and dispose
the engine afterwards so one test's database never leaks into the next.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engine

from tests.helpers.db import bootstrap_sqlite_db

_ENV_VARS = (
    "DATABASE_URL",
    "FI_CSV_DELIMITER",
    "FI_CSV_HAS_HEADER",
    "FI_DECIMAL_SEPARATOR",
    "FI_CSV_ENCODING",
    "FI_READ_TIMEOUT",
    "FINANCE_IMPORT_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _fresh_engine() -> Iterator[None]:
    yield
    dispose_engine()


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """A file-backed SQLite database with the finance schema created."""

    return bootstrap_sqlite_db(tmp_path / "db" / "finance.sqlite")
