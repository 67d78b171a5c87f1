"""
Shared pytest fixtures.

- ``store`` is parametrized over both store implementations, so every test
  that uses it (directly or through ``ledger``) runs against each.
- ``clock`` ticks one second per call so event timestamps are strictly
  increasing and predictable.
- ``client`` / ``admin_client`` are Flask test clients backed by a temporary
  SQLite database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tracker.config import AdminSettings, DatabaseSettings, ServerSettings, TrackerConfig
from tracker.ledger import ShipmentLedger
from tracker.store import MemoryStore, SQLiteStore
from tracker.web import create_app

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Test#Password1"
SESSION_SECRET = "test-session-secret"
BASE_URL = "https://track.example.com"


class TickingClock:
    def __init__(self, start=datetime(2026, 1, 1, tzinfo=timezone.utc), step=timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self):
        value = self.now
        self.now += self.step
        return value


# ============================================================================
# STORE / LEDGER
# ============================================================================


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    sqlite_store = SQLiteStore(tmp_path / "ledger.db")
    sqlite_store.init_schema()
    return sqlite_store


@pytest.fixture
def ledger(store, clock):
    return ShipmentLedger(store, clock=clock, base_url=BASE_URL)


# ============================================================================
# APP
# ============================================================================


@pytest.fixture
def admin_settings():
    return AdminSettings(
        username=ADMIN_USERNAME,
        password=ADMIN_PASSWORD,
        session_secret=SESSION_SECRET,
    )


@pytest.fixture
def config(tmp_path, admin_settings):
    return TrackerConfig(
        admin=admin_settings,
        database=DatabaseSettings(path=str(tmp_path / "app.db")),
        server=ServerSettings(base_url=BASE_URL),
    )


@pytest.fixture
def app(config, clock):
    app = create_app(config, clock=clock)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    resp = client.post(
        "/api/admin/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
    )
    assert resp.status_code == 200
    return client
