import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, TypeVar

import redis
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.config import EVENT_LOCK_BLOCKING_TIMEOUT, EVENT_LOCK_TIMEOUT, get_redis_url
from app.core.errors import AuthorizationError, ConflictError, EventBusyError, ValidationError
from app.models.events import Event
from app.models.participations import Participation
from app.models.users import UserRole
from app.schemas.users import TokenPayload
from app.services import events as event_store
from app.services import ledger

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_redis_client():
    """Get Redis client for locking."""
    return redis.from_url(get_redis_url(), decode_responses=True)


@contextmanager
def event_lock(event_id: int) -> Iterator[None]:
    """
    Hold the Redis lock for one event.

    Every write that reads the participation count for an event goes through
    here, so two requests for the same event never check-then-insert at the
    same time. Different events use different keys and never wait on each other.
    """
    redis_client = get_redis_client()
    lock = redis_client.lock(
        f"event_lock:{event_id}",
        timeout=EVENT_LOCK_TIMEOUT,
        blocking_timeout=EVENT_LOCK_BLOCKING_TIMEOUT,
    )
    if not lock.acquire(blocking=True):
        logger.warning("Timed out waiting for lock on event %s", event_id)
        raise EventBusyError()
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:  # type: ignore
            logger.warning("Lock on event %s expired before release", event_id)


def _transactional(db: Session, fn: Callable[..., T], *args: Any) -> T:
    """Run fn in a transaction that is committed (or rolled back) before returning."""
    if db.in_transaction():
        # Use the existing transaction and commit it
        try:
            result = fn(db, *args)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result
    with db.begin():
        return fn(db, *args)


def is_host_or_admin(user: TokenPayload, event: Event) -> bool:
    return user.role == UserRole.ADMIN or user.sub == event.host_id


def _require_host_or_admin(user: TokenPayload, event: Event) -> None:
    if not is_host_or_admin(user, event):
        logger.warning("User %s may not manage event %s", user.sub, event.id)
        raise AuthorizationError("NotHostOrAdmin")


def _check_capacity_floor(db: Session, event_id: int, new_capacity: Optional[int]) -> None:
    if new_capacity is None:
        return
    if new_capacity < ledger.count_by_event(db, event_id):
        raise ValidationError("CapacityTooLow")


# ---------- Registration ----------
def register(db: Session, *, user_id: str, event_id: int, now: Optional[datetime] = None) -> Participation:
    """
    Register a user for an event while capacity allows it.

    Raises NotFoundError, ValidationError("EventEnded"),
    ConflictError("AlreadyRegistered") or ConflictError("EventFull").
    """
    with event_lock(event_id):
        participation = _transactional(db, _register_in_transaction, user_id, event_id, now or utcnow())
    logger.info("User %s registered for event %s", user_id, event_id)
    return participation


def _register_in_transaction(db: Session, user_id: str, event_id: int, now: datetime) -> Participation:
    event = event_store.require_event(db, event_id)

    if now >= as_utc(event.end_time):
        raise ValidationError("EventEnded")

    if ledger.exists(db, user_id, event_id):
        raise ConflictError("AlreadyRegistered")

    if event.capacity is not None and ledger.count_by_event(db, event_id) >= event.capacity:
        logger.warning("Event %s is full, rejected user %s", event_id, user_id)
        raise ConflictError("EventFull")

    participation = ledger.create(db, user_id, event_id)

    # re-check inside the same transaction, the lock lease may have run out
    if event.capacity is not None and ledger.count_by_event(db, event_id) > event.capacity:
        logger.warning("Event %s overshot capacity, rolling back user %s", event_id, user_id)
        raise ConflictError("EventFull")
    return participation


def cancel(db: Session, *, user_id: str, event_id: int) -> None:
    """Remove a registration. The event row is never touched, the count is derived."""
    with event_lock(event_id):
        _transactional(db, ledger.delete, user_id, event_id)
    logger.info("User %s cancelled registration for event %s", user_id, event_id)


# ---------- Event management ----------
def create_event(db: Session, data: dict[str, Any], requester: TokenPayload) -> Event:
    if requester.role not in (UserRole.ORGANIZER, UserRole.ADMIN):
        raise AuthorizationError("NotOrganizer")
    return event_store.create_event(db, host_id=requester.sub, **data)


def update_event_capacity(
    db: Session, *, event_id: int, new_capacity: Optional[int], requester: TokenPayload
) -> Event:
    """Change capacity; never below the number already registered. None means unlimited."""
    return update_event(db, event_id=event_id, changes={"capacity": new_capacity}, requester=requester)


def update_event(db: Session, *, event_id: int, changes: dict[str, Any], requester: TokenPayload) -> Event:
    with event_lock(event_id):
        event = _transactional(db, _update_event_in_transaction, event_id, changes, requester)
    logger.info("Event %s updated by %s: %s", event_id, requester.sub, sorted(changes))
    return event


def _update_event_in_transaction(
    db: Session, event_id: int, changes: dict[str, Any], requester: TokenPayload
) -> Event:
    event = event_store.require_event(db, event_id)
    _require_host_or_admin(requester, event)
    if "capacity" in changes:
        event_store.validate_capacity(changes["capacity"])
        _check_capacity_floor(db, event_id, changes["capacity"])
    event_store.apply_changes(event, changes)
    db.flush()
    return event


def delete_event(db: Session, *, event_id: int, requester: TokenPayload) -> None:
    """Delete an event and all of its registrations, or nothing at all."""
    with event_lock(event_id):
        removed = _transactional(db, _delete_event_in_transaction, event_id, requester)
    logger.info("Event %s deleted by %s along with %d registrations", event_id, requester.sub, removed)


def _delete_event_in_transaction(db: Session, event_id: int, requester: TokenPayload) -> int:
    event = event_store.require_event(db, event_id)
    _require_host_or_admin(requester, event)
    removed = ledger.delete_all_for_event(db, event_id)
    event_store.delete_event_record(db, event)
    return removed


def get_roster(db: Session, *, event_id: int, requester: TokenPayload) -> list[Participation]:
    event = event_store.require_event(db, event_id)
    _require_host_or_admin(requester, event)
    return ledger.list_for_event(db, event_id)
