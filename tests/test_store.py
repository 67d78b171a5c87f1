"""Tests for the store implementations (tracker/store.py)."""

import sqlite3

import pytest

from tracker.errors import Conflict, StoreError
from tracker.models import Event, Shipment
from tracker.store import SQLiteStore

T0 = "2026-01-01T00:00:00.000000Z"
T1 = "2026-01-01T00:00:01.000000Z"


def test_insert_and_get(store):
    with store.transaction(write=True) as tx:
        tx.insert_shipment(Shipment("TRK1", "Pending", T0))
        tx.insert_event(Event("TRK1", "Pending", "", T0))

    with store.transaction() as tx:
        assert tx.get_shipment("TRK1") == Shipment("TRK1", "Pending", T0)
        assert tx.list_events("TRK1") == [Event("TRK1", "Pending", "", T0)]
        assert tx.get_shipment("TRK2") is None
        assert tx.list_events("TRK2") == []


def test_insert_shipment_twice_conflicts(store):
    with store.transaction(write=True) as tx:
        tx.insert_shipment(Shipment("TRK1", "Pending", T0))
    with pytest.raises(Conflict):
        with store.transaction(write=True) as tx:
            tx.insert_shipment(Shipment("TRK1", "Other", T1))


def test_update_shipment_reports_missing_row(store):
    with store.transaction(write=True) as tx:
        assert tx.update_shipment("TRK1", "Shipped", T1) is False
        tx.insert_shipment(Shipment("TRK1", "Pending", T0))
        assert tx.update_shipment("TRK1", "Shipped", T1) is True
        assert tx.get_shipment("TRK1") == Shipment("TRK1", "Shipped", T1)


def test_event_requires_existing_shipment(store):
    with pytest.raises(StoreError):
        with store.transaction(write=True) as tx:
            tx.insert_event(Event("GHOST", "Pending", "", T0))


def test_exception_rolls_back_everything(store):
    with pytest.raises(ValueError):
        with store.transaction(write=True) as tx:
            tx.insert_shipment(Shipment("TRK1", "Pending", T0))
            tx.insert_event(Event("TRK1", "Pending", "", T0))
            raise ValueError("boom")

    with store.transaction() as tx:
        assert tx.get_shipment("TRK1") is None
        assert tx.list_events("TRK1") == []


def test_events_newest_first_with_insertion_tiebreak(store):
    with store.transaction(write=True) as tx:
        tx.insert_shipment(Shipment("TRK1", "A", T0))
        tx.insert_event(Event("TRK1", "A", "", T0))
        tx.insert_event(Event("TRK1", "B", "", T1))
        tx.insert_event(Event("TRK1", "C", "", T1))

    with store.transaction() as tx:
        assert [e.status for e in tx.list_events("TRK1")] == ["C", "B", "A"]


# ============================================================================
# SQLITE SPECIFICS
# ============================================================================


def test_init_schema_is_idempotent(tmp_path):
    store = SQLiteStore(tmp_path / "t.db")
    store.init_schema()
    store.init_schema()

    connection = sqlite3.connect(str(tmp_path / "t.db"))
    try:
        tables = {
            row[0]
            for row in connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
    finally:
        connection.close()
    assert {"shipments", "events"} <= tables


def test_missing_schema_surfaces_as_store_error(tmp_path):
    store = SQLiteStore(tmp_path / "empty.db")
    with pytest.raises(StoreError) as exc_info:
        with store.transaction() as tx:
            tx.get_shipment("TRK1")
    assert isinstance(exc_info.value.cause, sqlite3.OperationalError)


def test_unopenable_database_is_store_error(tmp_path):
    store = SQLiteStore(tmp_path / "missing-dir" / "t.db")
    with pytest.raises(StoreError):
        store.init_schema()
