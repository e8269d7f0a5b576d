"""Scheduling router - Appointments and Calendly integration"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_active_user, require_admin
from ...database import get_db
from ...models import User
from ...webhook_security import verify_calendly_webhook
from .schemas import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    SlotResponse,
)
from .service import AppointmentService, CalendlySyncService

router = APIRouter(prefix="/appointments", tags=["Appointments"])
calendly_router = APIRouter(prefix="/calendly", tags=["Calendly"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


def get_calendly_sync_service(db: Session = Depends(get_db)) -> CalendlySyncService:
    return CalendlySyncService(db)


@router.post("", response_model=AppointmentResponse)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_active_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.create_appointment(current_user, data)


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    current_user: User = Depends(get_active_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_appointments(current_user)


@router.get("/slots", response_model=list[SlotResponse])
async def available_slots(
    day: date = Query(..., alias="date", description="Day to list slots for (YYYY-MM-DD)"),
    duration: int = Query(30, description="Appointment length in minutes"),
    provider_user_id: Optional[str] = None,
    current_user: User = Depends(get_active_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Work-day slots with a booked flag (15 minute buffer around existing appointments)"""
    return service.available_slots(current_user, day, duration, provider_user_id)


@router.get("/merged")
async def merged_appointments(
    current_user: User = Depends(get_active_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return await service.merged_appointments(current_user)


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    current_user: User = Depends(get_active_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.update_status(appointment_id, current_user, data.status)


@router.patch("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    current_user: User = Depends(get_active_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.reschedule(appointment_id, current_user, data)


# ============================================================================
# CALENDLY
# ============================================================================


@calendly_router.get("/events")
async def calendly_events(
    email: Optional[str] = None,
    _: User = Depends(get_active_user),
    service: CalendlySyncService = Depends(get_calendly_sync_service),
):
    """Active Calendly events for an invitee, shaped like portal appointments"""
    return await service.events_for_email(email)


@calendly_router.post("/webhook")
async def calendly_webhook(
    request: Request,
    service: CalendlySyncService = Depends(get_calendly_sync_service),
):
    _, raw_body = await verify_calendly_webhook(request, config.CALENDLY_WEBHOOK_SIGNING_KEY)
    return service.ingest_webhook(raw_body)


@calendly_router.post("/webhook/register")
async def register_calendly_webhook(
    _: User = Depends(require_admin),
    service: CalendlySyncService = Depends(get_calendly_sync_service),
):
    return await service.register_webhook()
