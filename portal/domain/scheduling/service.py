"""Scheduling service - Portal appointments plus Calendly sync"""

import json
import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...models import Appointment, User, utcnow
from ...services.calendly_service import (
    CalendlyService,
    calendly_service,
    event_end,
    event_start,
    event_title,
    normalize_event,
)
from ...shared.validators import normalize_email, parse_iso_datetime, to_naive_utc
from ..users.repository import UserRepository
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentReschedule
from .slots import DEFAULT_BUFFER_MINUTES, generate_time_slots, is_slot_booked

logger = logging.getLogger(__name__)

APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled", "rescheduled")


def serialize_appointment(appointment: Appointment) -> dict[str, Any]:
    """Appointment row as a plain dict with ISO timestamps (UTC, "Z" suffix)"""

    def iso(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() + "Z" if value else None

    return {
        "id": appointment.id,
        "attendee_user_id": appointment.attendee_user_id,
        "provider_user_id": appointment.provider_user_id,
        "start_time": iso(appointment.start_time),
        "end_time": iso(appointment.end_time),
        "status": appointment.status,
        "notes": appointment.notes,
        "title": appointment.title,
        "source": appointment.source,
        "created_at": iso(appointment.created_at),
    }


def _start_sort_key(item: dict[str, Any]) -> datetime:
    return parse_iso_datetime(item.get("start_time")) or datetime.max


class AppointmentService:
    """Service layer for portal appointments"""

    def __init__(self, db: Session, calendly: Optional[CalendlyService] = None):
        self.db = db
        self.repo = AppointmentRepository()
        self.users = UserRepository()
        self.calendly = calendly or calendly_service

    def _conflicts(
        self,
        user: User,
        provider_user_id: Optional[str],
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> bool:
        if provider_user_id:
            existing = self.repo.list_in_window(
                self.db, provider_user_id, start, end, as_provider=True, exclude_id=exclude_id
            )
        else:
            existing = self.repo.list_in_window(self.db, user.id, start, end, exclude_id=exclude_id)
        duration = int((end - start).total_seconds() // 60)
        return is_slot_booked(start, duration, existing, buffer_minutes=0)

    def create_appointment(self, user: User, data: AppointmentCreate) -> Appointment:
        title = (data.title or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")

        start, end = to_naive_utc(data.start_time), to_naive_utc(data.end_time)
        if end <= start:
            raise HTTPException(status_code=400, detail="end_time must be after start_time")

        if data.provider_user_id and not self.users.get_by_id(self.db, data.provider_user_id):
            raise HTTPException(status_code=404, detail="Provider not found")

        if self._conflicts(user, data.provider_user_id, start, end):
            raise HTTPException(status_code=409, detail="Time slot is already booked")

        appointment = self.repo.create_appointment(
            self.db,
            attendee_user_id=user.id,
            provider_user_id=data.provider_user_id,
            title=title,
            start_time=start,
            end_time=end,
            notes=data.notes,
            status="scheduled",
            source="portal",
        )
        logger.info(f"📅 Appointment {appointment.id} booked by user {user.id}")
        return appointment

    def list_appointments(self, user: User) -> list[Appointment]:
        return self.repo.list_for_participant(self.db, user.id)

    def available_slots(
        self,
        user: User,
        day: date,
        duration: int = 30,
        provider_user_id: Optional[str] = None,
    ) -> list[dict]:
        if duration <= 0:
            raise HTTPException(status_code=400, detail="duration must be positive")

        slots = generate_time_slots(day)
        if not slots:
            return []
        window_start = slots[0]["start"] - timedelta(minutes=DEFAULT_BUFFER_MINUTES)
        window_end = slots[-1]["start"] + timedelta(minutes=duration + DEFAULT_BUFFER_MINUTES)

        if provider_user_id:
            existing = self.repo.list_in_window(
                self.db, provider_user_id, window_start, window_end, as_provider=True
            )
        else:
            existing = self.repo.list_in_window(self.db, user.id, window_start, window_end)

        return [
            {**slot, "booked": is_slot_booked(slot["start"], duration, existing)}
            for slot in slots
        ]

    def get_participant_appointment(self, appointment_id: int, user: User) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if user.id not in (appointment.attendee_user_id, appointment.provider_user_id):
            raise HTTPException(status_code=403, detail="Forbidden")
        return appointment

    def update_status(self, appointment_id: int, user: User, status: str) -> Appointment:
        if status not in APPOINTMENT_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")
        appointment = self.get_participant_appointment(appointment_id, user)
        return self.repo.update_appointment(self.db, appointment, status=status)

    def reschedule(self, appointment_id: int, user: User, data: AppointmentReschedule) -> Appointment:
        appointment = self.get_participant_appointment(appointment_id, user)
        start, end = to_naive_utc(data.start_time), to_naive_utc(data.end_time)
        if end <= start:
            raise HTTPException(status_code=400, detail="end_time must be after start_time")

        attendee = self.users.get_by_id(self.db, appointment.attendee_user_id) or user
        if self._conflicts(attendee, appointment.provider_user_id, start, end, exclude_id=appointment.id):
            raise HTTPException(status_code=409, detail="Time slot is already booked")

        return self.repo.update_appointment(
            self.db, appointment, start_time=start, end_time=end, status="rescheduled"
        )

    async def merged_appointments(self, user: User) -> list[dict[str, Any]]:
        """Own appointments plus Calendly events for the user's email, by start time"""
        merged = [serialize_appointment(a) for a in self.list_appointments(user)]

        if self.calendly.is_available() and user.email:
            try:
                events = await self.calendly.list_events_for_invitee(user.email)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"⚠️ Calendly events unavailable, using portal appointments only: {e}")
                events = []
            created = utcnow().isoformat() + "Z"
            merged.extend(normalize_event(ev, created) for ev in events)

        merged.sort(key=_start_sort_key)
        return merged


class CalendlySyncService:
    """Calendly event listing, webhook ingestion and webhook registration"""

    def __init__(self, db: Session, calendly: Optional[CalendlyService] = None):
        self.db = db
        self.repo = AppointmentRepository()
        self.users = UserRepository()
        self.calendly = calendly or calendly_service

    async def events_for_email(self, email: Optional[str]) -> list[dict[str, Any]]:
        if not self.calendly.is_available():
            raise HTTPException(status_code=501, detail="Calendly is not configured")
        email = normalize_email(email)
        if not email:
            raise HTTPException(status_code=400, detail="email is required")

        try:
            events = await self.calendly.list_events_for_invitee(email)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Calendly request failed: {e}")
            raise HTTPException(status_code=502, detail="Calendly request failed") from e

        created = utcnow().isoformat() + "Z"
        return [normalize_event(ev, created) for ev in events]

    def ingest_webhook(self, raw_body: bytes) -> dict:
        try:
            body = json.loads(raw_body or b"{}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from e
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        event_type = str(body.get("event") or "")
        payload = body.get("payload") or {}
        scheduled = payload.get("scheduled_event") or payload.get("event") or payload
        if not isinstance(scheduled, dict):
            scheduled = {}

        start = parse_iso_datetime(event_start(scheduled))
        end = parse_iso_datetime(event_end(scheduled))
        title = event_title(scheduled)
        invitees = scheduled.get("invitees") or [{}]
        invitee_email = normalize_email(
            (payload.get("invitee") or {}).get("email")
            or payload.get("email")
            or (invitees[0] if isinstance(invitees[0], dict) else {}).get("email")
        )
        if not start or not end or not invitee_email:
            raise HTTPException(status_code=400, detail="Missing required fields in webhook payload")

        location = scheduled.get("location")
        if isinstance(location, dict):
            location = location.get("location") or location.get("join_url")
        notes = location or scheduled.get("description")
        status = "cancelled" if "canceled" in event_type else "scheduled"

        attendee = self.users.get_by_email(self.db, invitee_email)
        if not attendee:
            attendee = self.users.create_user(
                self.db, email=invitee_email, email_verified=False, role="client"
            )
            logger.info(f"👤 Created invitee user {attendee.id} from Calendly")

        existing = self.repo.find_duplicate(self.db, attendee.id, start, title)
        if not existing:
            self.repo.create_appointment(
                self.db,
                attendee_user_id=attendee.id,
                title=title,
                start_time=start,
                end_time=end,
                notes=notes,
                status=status,
                source="calendly",
            )
            logger.info(f"📅 Calendly {event_type or 'event'} stored for user {attendee.id}")
        elif status == "cancelled":
            self.repo.update_appointment(self.db, existing, status="cancelled")
            logger.info(f"📅 Calendly appointment {existing.id} cancelled")

        return {"ok": True}

    async def register_webhook(self) -> dict:
        if not self.calendly.is_available():
            raise HTTPException(status_code=500, detail="CALENDLY_API_TOKEN not set")
        if not config.SITE_URL:
            raise HTTPException(status_code=500, detail="SITE_URL not set (use public https URL)")

        try:
            who = await self.calendly.get_current_user()
            user_uri = who.get("uri")
            if not user_uri:
                raise HTTPException(status_code=500, detail="No user URI returned by Calendly")
            callback_url = f"{config.SITE_URL.rstrip('/')}/calendly/webhook"
            subscription = await self.calendly.create_webhook_subscription(callback_url, user_uri)
        except httpx.HTTPStatusError as e:
            logger.error(f"❌ Calendly webhook subscribe failed: {e.response.status_code}")
            raise HTTPException(
                status_code=502,
                detail=f"Calendly webhook subscribe failed: {e.response.status_code}",
            ) from e
        except httpx.HTTPError as e:
            raise HTTPException(status_code=502, detail="Calendly request failed") from e

        return {"ok": True, "subscription": subscription}
