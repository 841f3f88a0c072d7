from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.database.db import get_db
from app.schemas.participations import ParticipationOut, RegistrationRequest
from app.services import ledger, registrations

router = APIRouter(prefix="/participations", tags=["participations"])


@router.post("/register", response_model=ParticipationOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegistrationRequest, db: Session = Depends(get_db)):
    return registrations.register(db, user_id=payload.user_id, event_id=payload.event_id)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def cancel(user_id: str, event_id: int, db: Session = Depends(get_db)):
    registrations.cancel(db, user_id=user_id, event_id=event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/check", response_model=bool)
def check_registered(user_id: str, event_id: int, db: Session = Depends(get_db)):
    return ledger.exists(db, user_id, event_id)


@router.get("/count/event/{event_id}", response_model=int)
def count_for_event(event_id: int, db: Session = Depends(get_db)):
    return ledger.count_by_event(db, event_id)


@router.get("/count/user/{user_id}", response_model=int)
def count_for_user(user_id: str, db: Session = Depends(get_db)):
    return ledger.count_by_user(db, user_id)


@router.get("/user/{user_id}", response_model=list[ParticipationOut])
def user_participations(user_id: str, db: Session = Depends(get_db)):
    return ledger.list_for_user(db, user_id)
