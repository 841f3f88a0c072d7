from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ---------- Event ----------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=255)
    start_time: datetime
    end_time: datetime
    capacity: Optional[int] = Field(default=None, ge=1)
    tags: list[str] = Field(default_factory=list)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=255)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    tags: Optional[list[str]] = None


class CapacityUpdate(BaseModel):
    # null lifts the limit
    capacity: Optional[int] = Field(default=None, ge=1)


class EventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    host_id: str
    start_time: datetime
    end_time: datetime
    capacity: Optional[int] = None
    tags: list[str]

    class Config:
        from_attributes = True


class EventStatsOut(BaseModel):
    event_id: int
    capacity: Optional[int] = None
    participant_count: int
    remaining: Optional[int] = None
