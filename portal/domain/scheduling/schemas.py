"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

AppointmentStatus = Literal["scheduled", "completed", "cancelled", "rescheduled"]


class AppointmentCreate(BaseModel):
    title: str
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None
    provider_user_id: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: str


class AppointmentReschedule(BaseModel):
    start_time: datetime
    end_time: datetime


class AppointmentResponse(BaseModel):
    id: int
    attendee_user_id: str
    provider_user_id: Optional[str] = None
    title: str
    start_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None
    source: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    label: str
    start: datetime
    booked: bool
