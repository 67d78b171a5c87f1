"""
Shipment ledger.

A shipment row is the "latest" projection of its append-only event log:
every create and every update writes the shipment row and one event in the
same store transaction, stamped with the same timestamp. Statuses are free
text and any status may follow any other.
"""

import logging
from datetime import timedelta
from urllib.parse import quote

from tracker.errors import Conflict, InvalidInput, NotFound
from tracker.models import Event, Shipment, ShipmentView, isoformat, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

TICK = timedelta(microseconds=1)

DEMO_SHIPMENTS = [
    ("TRK123456789", [
        ("Picked Up", "Shipment received"),
        ("In Transit", "Departed facility"),
    ]),
    ("CN2025-0001", [
        ("Label Created", "Awaiting pickup"),
    ]),
]


def _required(value, field):
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(field=field)
    return value


def _note(value):
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInput(field="note")
    return value


class ShipmentLedger:
    def __init__(self, store, clock=utcnow, base_url=""):
        self.store = store
        self.clock = clock
        self.base_url = base_url.rstrip("/")

    def _stamp(self, previous=None):
        """Current time, pushed past ``previous`` so a history never has ties."""
        moment = self.clock()
        if previous is not None:
            moment = max(moment, parse_timestamp(previous) + TICK)
        return isoformat(moment)

    def _view(self, tx, tracking_id):
        shipment = tx.get_shipment(tracking_id)
        if shipment is None:
            raise NotFound(tracking_id=tracking_id)
        return ShipmentView(
            tracking_id=shipment.tracking_id,
            current_status=shipment.current_status,
            updated_at=shipment.updated_at,
            events=tx.list_events(tracking_id),
        )

    def lookup(self, tracking_id) -> ShipmentView:
        """Return the shipment and its history, newest event first."""
        if not isinstance(tracking_id, str) or not tracking_id:
            raise NotFound(tracking_id=tracking_id)
        with self.store.transaction() as tx:
            return self._view(tx, tracking_id)

    def create(self, tracking_id, status, note=None, actor=None) -> ShipmentView:
        """Register a new shipment with its first event.

        Raises:
            InvalidInput: ``tracking_id`` or ``status`` missing or blank.
            Conflict: a shipment with ``tracking_id`` already exists. Detected
                by the store's unique constraint, not by a prior read.
        """
        tracking_id = _required(tracking_id, "trackingId")
        status = _required(status, "status")
        note = _note(note)
        now = self._stamp()
        with self.store.transaction(write=True) as tx:
            tx.insert_shipment(Shipment(tracking_id, status, now))
            tx.insert_event(Event(tracking_id, status, note, now))
            view = self._view(tx, tracking_id)
        logger.info("Created shipment %s with status %r (by %s)", tracking_id, status, actor or "system")
        return view

    def update(self, tracking_id, status, note=None, actor=None) -> ShipmentView:
        """Overwrite the current status and append an event to the history.

        The event is stamped strictly later than the previous one, even when
        the clock has not advanced.
        """
        tracking_id = _required(tracking_id, "trackingId")
        status = _required(status, "status")
        note = _note(note)
        with self.store.transaction(write=True) as tx:
            current = tx.get_shipment(tracking_id)
            if current is None:
                raise NotFound(tracking_id=tracking_id)
            now = self._stamp(previous=current.updated_at)
            if not tx.update_shipment(tracking_id, status, now):
                raise NotFound(tracking_id=tracking_id)
            tx.insert_event(Event(tracking_id, status, note, now))
            view = self._view(tx, tracking_id)
        logger.info("Updated shipment %s to status %r (by %s)", tracking_id, status, actor or "system")
        return view

    def tracking_link(self, tracking_id) -> str:
        return f"{self.base_url}/track?tid={quote(tracking_id, safe='')}"

    def seed_demo(self):
        """Create the demo shipments that do not exist yet. Returns the new ids."""
        created = []
        for tracking_id, history in DEMO_SHIPMENTS:
            (status, note), rest = history[0], history[1:]
            try:
                self.create(tracking_id, status, note)
            except Conflict:
                continue
            for status, note in rest:
                self.update(tracking_id, status, note)
            created.append(tracking_id)
        return created
