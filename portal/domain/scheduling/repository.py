"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Appointment


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def list_for_participant(db: Session, user_id: str) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                or_(Appointment.attendee_user_id == user_id, Appointment.provider_user_id == user_id)
            )
            .order_by(Appointment.start_time.asc())
            .all()
        )

    @staticmethod
    def list_in_window(
        db: Session,
        user_id: str,
        window_start: datetime,
        window_end: datetime,
        as_provider: bool = False,
        exclude_id: Optional[int] = None,
    ) -> list[Appointment]:
        """Non-cancelled appointments of one calendar that intersect the window"""
        owner = Appointment.provider_user_id if as_provider else Appointment.attendee_user_id
        query = db.query(Appointment).filter(
            owner == user_id,
            Appointment.status != "cancelled",
            Appointment.start_time < window_end,
            Appointment.end_time > window_start,
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.order_by(Appointment.start_time.asc()).all()

    @staticmethod
    def find_duplicate(
        db: Session, attendee_user_id: str, start_time: datetime, title: str
    ) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                Appointment.attendee_user_id == attendee_user_id,
                Appointment.start_time == start_time,
                Appointment.title == title,
            )
            .first()
        )

    @staticmethod
    def create_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def update_appointment(db: Session, appointment: Appointment, **updates) -> Appointment:
        for key, value in updates.items():
            if value is not None and hasattr(appointment, key):
                setattr(appointment, key, value)
        db.commit()
        db.refresh(appointment)
        return appointment
