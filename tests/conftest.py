import sqlite3
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import database  # noqa: E402
from vocabulary import load_vocabulary  # noqa: E402


@pytest.fixture
def temp_db(monkeypatch, tmp_path):
    db_path = tmp_path / "ledger_test.db"

    def _connect(_db_name: str | None = None):
        conn = sqlite3.connect(str(db_path))
        conn.row_factory = sqlite3.Row
        return conn

    monkeypatch.setattr(database, "create_connection", _connect)

    database.create_tables()
    yield str(db_path)


@pytest.fixture
def english(tmp_path):
    return load_vocabulary("english", path=str(tmp_path / "missing.json"))


@pytest.fixture
def malayalam(tmp_path):
    return load_vocabulary("malayalam", path=str(tmp_path / "missing.json"))
