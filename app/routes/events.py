from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.core.security import get_current_user
from app.database.db import get_db
from app.schemas.events import CapacityUpdate, EventCreate, EventOut, EventStatsOut, EventUpdate
from app.schemas.participations import ParticipationOut
from app.schemas.users import TokenPayload
from app.services import events as event_store
from app.services import registrations

router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    user: TokenPayload = Depends(get_current_user),
):
    return registrations.create_event(db, payload.model_dump(), user)


@router.get("", response_model=list[EventOut])
def list_events(
    tag: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=0, le=500),
    db: Session = Depends(get_db),
):
    return event_store.list_events(db, tag=tag, skip=skip, limit=limit)


@router.get("/host/{host_id}", response_model=list[EventOut])
def list_events_by_host(host_id: str, db: Session = Depends(get_db)):
    return event_store.list_events_by_host(db, host_id)


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: int, db: Session = Depends(get_db)):
    return event_store.require_event(db, event_id)


@router.get("/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db)):
    stats = event_store.get_event_stats(db, event_id)
    if not stats:
        raise NotFoundError("EventNotFound")
    return stats


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    user: TokenPayload = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)
    return registrations.update_event(db, event_id=event_id, changes=changes, requester=user)


@router.patch("/{event_id}/capacity", response_model=EventOut)
def update_capacity(
    event_id: int,
    payload: CapacityUpdate,
    db: Session = Depends(get_db),
    user: TokenPayload = Depends(get_current_user),
):
    return registrations.update_event_capacity(
        db, event_id=event_id, new_capacity=payload.capacity, requester=user
    )


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: TokenPayload = Depends(get_current_user),
):
    registrations.delete_event(db, event_id=event_id, requester=user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{event_id}/participants", response_model=list[ParticipationOut])
def event_participants(
    event_id: int,
    db: Session = Depends(get_db),
    user: TokenPayload = Depends(get_current_user),
):
    return registrations.get_roster(db, event_id=event_id, requester=user)
