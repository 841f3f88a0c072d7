import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.errors import NotFoundError, ValidationError
from app.models.events import Event
from app.services import ledger

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "start_time", "end_time", "capacity", "tags")
NULLABLE_FIELDS = ("description", "capacity")


def _validate_schedule(start_time: datetime, end_time: datetime) -> None:
    if as_utc(end_time) <= as_utc(start_time):
        raise ValidationError("InvalidSchedule")


def validate_capacity(capacity: Optional[int]) -> None:
    if capacity is not None and capacity <= 0:
        raise ValidationError("InvalidCapacity")


def _normalize_tags(tags: Optional[list[str]]) -> list[str]:
    # tags behave as a set but keep the order they were given in
    seen: list[str] = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def create_event(
    db: Session,
    *,
    host_id: str,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: Optional[str] = None,
    capacity: Optional[int] = None,
    tags: Optional[list[str]] = None,
) -> Event:
    _validate_schedule(start_time, end_time)
    validate_capacity(capacity)

    event = Event(
        host_id=host_id,
        title=title,
        description=description,
        start_time=as_utc(start_time),
        end_time=as_utc(end_time),
        capacity=capacity,
        tags=_normalize_tags(tags),
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event %s for host %s", event.id, host_id)
    return event


def get_event(db: Session, event_id: int) -> Optional[Event]:
    return db.get(Event, event_id)


def require_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if event is None:
        raise NotFoundError("EventNotFound")
    return event


def list_events(db: Session, *, tag: Optional[str] = None, skip: int = 0, limit: int = 100) -> list[Event]:
    stmt = select(Event).order_by(Event.start_time, Event.id)
    if not tag:
        return list(db.scalars(stmt.offset(skip).limit(limit)))

    # tags live in a JSON column, filter in Python to stay portable
    events = [e for e in db.scalars(stmt) if tag in (e.tags or [])]
    return events[skip:skip + limit]


def list_events_by_host(db: Session, host_id: str) -> list[Event]:
    stmt = select(Event).where(Event.host_id == host_id).order_by(Event.start_time, Event.id)
    return list(db.scalars(stmt))


def apply_changes(event: Event, changes: dict[str, Any]) -> Event:
    """
    Validate and apply field changes to an event without committing.

    Only the event's own invariants are checked here; whether a new capacity
    still fits the current registrations is the registration service's call.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields not editable: {sorted(unknown)}")

    # only capacity and description may be cleared
    changes = {k: v for k, v in changes.items() if v is not None or k in NULLABLE_FIELDS}

    start_time = changes.get("start_time", event.start_time)
    end_time = changes.get("end_time", event.end_time)
    _validate_schedule(start_time, end_time)
    if "capacity" in changes:
        validate_capacity(changes["capacity"])

    for key, value in changes.items():
        if key == "tags":
            value = _normalize_tags(value)
        elif key in ("start_time", "end_time"):
            value = as_utc(value)
        setattr(event, key, value)
    return event


def delete_event_record(db: Session, event: Event) -> None:
    db.delete(event)
    db.flush()


def get_event_stats(db: Session, event_id: int) -> dict:
    event = db.get(Event, event_id)
    if not event:
        return {}

    participant_count = ledger.count_by_event(db, event_id)
    remaining = None
    if event.capacity is not None:
        remaining = max(event.capacity - participant_count, 0)

    return {
        "event_id": event.id,
        "capacity": event.capacity,
        "participant_count": participant_count,
        "remaining": remaining,
    }
