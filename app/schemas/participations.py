from datetime import datetime

from pydantic import BaseModel, Field


class RegistrationRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    event_id: int = Field(ge=1)


class ParticipationOut(BaseModel):
    id: int
    user_id: str
    event_id: int
    created_at: datetime

    class Config:
        from_attributes = True
