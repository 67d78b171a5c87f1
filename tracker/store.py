"""
Shipment storage.

The ledger talks to a store only through ``ShipmentStore.transaction()``,
which yields a unit of work. Everything done through one unit of work is
committed together when the ``with`` block exits normally and rolled back
when it raises.

Two implementations:
    SQLiteStore  - the production store (one connection per transaction)
    MemoryStore  - process-local store used by the test suite
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

from tracker.errors import Conflict, StoreError
from tracker.models import Event, Shipment

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS shipments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tracking_id TEXT NOT NULL UNIQUE,
    current_status TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tracking_id TEXT NOT NULL,
    status TEXT NOT NULL,
    note TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    FOREIGN KEY(tracking_id) REFERENCES shipments(tracking_id)
);
CREATE INDEX IF NOT EXISTS ix_events_tracking_created
    ON events (tracking_id, created_at);
"""


class StoreTransaction(ABC):
    @abstractmethod
    def get_shipment(self, tracking_id: str) -> Optional[Shipment]:
        ...

    @abstractmethod
    def list_events(self, tracking_id: str) -> List[Event]:
        """Events for ``tracking_id``, newest first (insertion order breaks ties)."""

    @abstractmethod
    def insert_shipment(self, shipment: Shipment) -> None:
        """Insert-or-fail. Raises ``Conflict`` when the identifier is taken."""

    @abstractmethod
    def update_shipment(self, tracking_id: str, status: str, updated_at: str) -> bool:
        """Overwrite status and timestamp. Returns False when no row matched."""

    @abstractmethod
    def insert_event(self, event: Event) -> None:
        ...


class ShipmentStore(ABC):
    @abstractmethod
    def transaction(self, write: bool = False):
        """Context manager yielding a ``StoreTransaction``."""

    def init_schema(self) -> None:
        pass


# =============================================================================
# SQLITE
# =============================================================================


class SQLiteTransaction(StoreTransaction):
    def __init__(self, connection: sqlite3.Connection):
        self.db = connection

    def get_shipment(self, tracking_id):
        row = self.db.execute(
            "SELECT tracking_id, current_status, updated_at FROM shipments WHERE tracking_id = ?",
            (tracking_id,),
        ).fetchone()
        if row is None:
            return None
        return Shipment(row["tracking_id"], row["current_status"], row["updated_at"])

    def list_events(self, tracking_id):
        rows = self.db.execute(
            """SELECT tracking_id, status, note, created_at FROM events
               WHERE tracking_id = ? ORDER BY created_at DESC, id DESC""",
            (tracking_id,),
        ).fetchall()
        return [Event(r["tracking_id"], r["status"], r["note"], r["created_at"]) for r in rows]

    def insert_shipment(self, shipment):
        try:
            self.db.execute(
                """INSERT INTO shipments (tracking_id, current_status, updated_at)
                   VALUES (?, ?, ?)""",
                (shipment.tracking_id, shipment.current_status, shipment.updated_at),
            )
        except sqlite3.IntegrityError:
            raise Conflict(tracking_id=shipment.tracking_id) from None

    def update_shipment(self, tracking_id, status, updated_at):
        cur = self.db.execute(
            "UPDATE shipments SET current_status = ?, updated_at = ? WHERE tracking_id = ?",
            (status, updated_at, tracking_id),
        )
        return cur.rowcount > 0

    def insert_event(self, event):
        self.db.execute(
            """INSERT INTO events (tracking_id, status, note, created_at)
               VALUES (?, ?, ?, ?)""",
            (event.tracking_id, event.status, event.note, event.created_at),
        )


class SQLiteStore(ShipmentStore):
    """SQLite-backed store.

    Write transactions start with ``BEGIN IMMEDIATE`` so concurrent writers
    queue on the database lock (up to ``timeout`` seconds) instead of failing
    halfway through a paired write.
    """

    def __init__(self, path, timeout=5.0):
        self.path = str(path)
        self.timeout = timeout

    def connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.path, timeout=self.timeout, isolation_level=None)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def init_schema(self):
        try:
            connection = self.connect()
        except sqlite3.Error as exc:
            raise StoreError("sqlite.init_schema", exc) from exc
        try:
            connection.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise StoreError("sqlite.init_schema", exc) from exc
        finally:
            connection.close()
        logger.info("Database schema ready at %s", self.path)

    @contextmanager
    def transaction(self, write=False) -> Iterator[SQLiteTransaction]:
        try:
            connection = self.connect()
        except sqlite3.Error as exc:
            raise StoreError("sqlite.connect", exc) from exc
        try:
            try:
                connection.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                yield SQLiteTransaction(connection)
                connection.execute("COMMIT")
            except Exception:
                if connection.in_transaction:
                    try:
                        connection.execute("ROLLBACK")
                    except sqlite3.Error:
                        # Keep the in-flight exception; it is the one to report.
                        logger.warning("Rollback failed", exc_info=True)
                raise
        except sqlite3.Error as exc:
            raise StoreError("sqlite.transaction", exc) from exc
        finally:
            connection.close()


# =============================================================================
# IN-MEMORY
# =============================================================================


class MemoryTransaction(StoreTransaction):
    def __init__(self, shipments, events):
        self.shipments = shipments
        self.events = events

    def get_shipment(self, tracking_id):
        return self.shipments.get(tracking_id)

    def list_events(self, tracking_id):
        indexed = [(i, e) for i, e in enumerate(self.events) if e.tracking_id == tracking_id]
        indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [e for _, e in indexed]

    def insert_shipment(self, shipment):
        if shipment.tracking_id in self.shipments:
            raise Conflict(tracking_id=shipment.tracking_id)
        self.shipments[shipment.tracking_id] = shipment

    def update_shipment(self, tracking_id, status, updated_at):
        if tracking_id not in self.shipments:
            return False
        self.shipments[tracking_id] = Shipment(tracking_id, status, updated_at)
        return True

    def insert_event(self, event):
        if event.tracking_id not in self.shipments:
            raise StoreError("memory.insert_event", f"unknown shipment {event.tracking_id!r}")
        self.events.append(event)


class MemoryStore(ShipmentStore):
    """Store kept in process memory.

    Transactions are serialised behind a lock and work on copies; the copies
    replace the committed state only when the block exits normally.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._shipments = {}
        self._events = []

    @contextmanager
    def transaction(self, write=False):
        with self._lock:
            unit = MemoryTransaction(dict(self._shipments), list(self._events))
            yield unit
            self._shipments = unit.shipments
            self._events = unit.events
