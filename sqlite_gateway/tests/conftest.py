import sqlite3
import sys
from pathlib import Path

import pytest

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from sqlite_gateway.config import Settings  # noqa: E402
from sqlite_gateway.db import ConnectionFactory  # noqa: E402
from sqlite_gateway.initializer import SchemaInitializer  # noqa: E402


@pytest.fixture()
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "gateway_test.db"
    # Point the package (config resolution, API, CLI) to this temp DB
    monkeypatch.setenv("SQLITE_GATEWAY_DB_PATH", str(path))
    monkeypatch.setenv("SQLITE_GATEWAY_CONFIG", str(tmp_path / "no-config.yaml"))
    return str(path)


@pytest.fixture()
def settings(db_path):
    return Settings(db_path=db_path, retry_delay_ms=0)


@pytest.fixture()
def initialized_db(settings):
    SchemaInitializer(settings=settings).initialize()
    return settings.db_path


@pytest.fixture()
def people_db(db_path):
    """A bare store with one table, for gateway/transaction tests."""
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(
            """
            CREATE TABLE People (
                Id INTEGER PRIMARY KEY AUTOINCREMENT,
                Name TEXT NOT NULL UNIQUE,
                Age INTEGER
            );
            INSERT INTO People(Name, Age) VALUES ('a', 1), ('b', 2), ('c', 3);
            """
        )
        conn.commit()
    finally:
        conn.close()
    return db_path


class TrackingFactory(ConnectionFactory):
    def __init__(self):
        super().__init__()
        self.opened = []

    def open(self, location, create=False):
        conn = super().open(location, create=create)
        self.opened.append(conn)
        return conn


@pytest.fixture()
def tracking_factory():
    return TrackingFactory()


def count_rows(path: str, table: str) -> int:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()


@pytest.fixture()
def client(db_path):
    from fastapi.testclient import TestClient
    from sqlite_gateway.api import app

    # `with` runs the lifespan hook, which initializes the store
    with TestClient(app) as c:
        yield c
