"""
Participation ledger: the authoritative record of who is registered where.

Functions here only flush; committing is up to the caller so that a
capacity check and the insert it guards land in one transaction.
"""
from sqlalchemy import delete as sa_delete
from sqlalchemy import exists as sa_exists
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.models.participations import Participation


def count_by_event(db: Session, event_id: int) -> int:
    count = db.scalar(
        select(func.count(Participation.id)).where(Participation.event_id == event_id)
    )
    return int(count or 0)


def count_by_user(db: Session, user_id: str) -> int:
    count = db.scalar(
        select(func.count(Participation.id)).where(Participation.user_id == user_id)
    )
    return int(count or 0)


def exists(db: Session, user_id: str, event_id: int) -> bool:
    stmt = select(
        sa_exists().where(
            Participation.user_id == user_id,
            Participation.event_id == event_id,
        )
    )
    return bool(db.scalar(stmt))


def get(db: Session, user_id: str, event_id: int) -> Participation | None:
    return db.scalar(
        select(Participation).where(
            Participation.user_id == user_id,
            Participation.event_id == event_id,
        )
    )


def create(db: Session, user_id: str, event_id: int) -> Participation:
    if exists(db, user_id, event_id):
        raise ConflictError("AlreadyRegistered")

    participation = Participation(user_id=user_id, event_id=event_id)
    db.add(participation)
    try:
        db.flush()  # gets participation.id
    except IntegrityError:
        # lost a race against the unique constraint
        raise ConflictError("AlreadyRegistered")
    db.refresh(participation)
    return participation


def delete(db: Session, user_id: str, event_id: int) -> None:
    participation = get(db, user_id, event_id)
    if participation is None:
        raise NotFoundError("ParticipationNotFound")
    db.delete(participation)
    db.flush()


def delete_all_for_event(db: Session, event_id: int) -> int:
    res = db.execute(sa_delete(Participation).where(Participation.event_id == event_id))
    return int(res.rowcount or 0)  # type: ignore


def list_for_event(db: Session, event_id: int) -> list[Participation]:
    stmt = (
        select(Participation)
        .where(Participation.event_id == event_id)
        .order_by(Participation.created_at, Participation.id)
    )
    return list(db.scalars(stmt))


def list_for_user(db: Session, user_id: str) -> list[Participation]:
    stmt = (
        select(Participation)
        .where(Participation.user_id == user_id)
        .order_by(Participation.created_at, Participation.id)
    )
    return list(db.scalars(stmt))
