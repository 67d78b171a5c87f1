from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """ISO-8601 UTC with microseconds and a ``Z`` suffix; sorts lexically."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Shipment:
    tracking_id: str
    current_status: str
    updated_at: str


@dataclass(frozen=True)
class Event:
    tracking_id: str
    status: str
    note: str
    created_at: str

    def to_dict(self):
        return {"status": self.status, "note": self.note, "createdAt": self.created_at}


@dataclass(frozen=True)
class ShipmentView:
    """A shipment together with its history, newest event first."""

    tracking_id: str
    current_status: str
    updated_at: str
    events: List[Event] = field(default_factory=list)

    def to_dict(self):
        return {
            "trackingId": self.tracking_id,
            "currentStatus": self.current_status,
            "updatedAt": self.updated_at,
            "events": [e.to_dict() for e in self.events],
        }
