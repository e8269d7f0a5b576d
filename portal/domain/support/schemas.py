"""Support domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SupportTicketCreate(BaseModel):
    subject: Optional[str] = None
    priority: Optional[str] = None  # Low, Medium, High
    details: Optional[str] = None


class SupportTicketResponse(BaseModel):
    id: int
    user_id: str
    subject: str
    description: str
    priority: str
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminSupportTicketResponse(SupportTicketResponse):
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class TicketStatusUpdate(BaseModel):
    id: int
    status: str
