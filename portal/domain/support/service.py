"""Support service - Ticket intake and admin triage"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import email_service
from ...models import SupportTicket, User
from .repository import SupportRepository
from .schemas import SupportTicketCreate

logger = logging.getLogger(__name__)

PRIORITIES = ("Low", "Medium", "High")
TICKET_STATUSES = ("open", "closed")


class SupportService:
    """Service layer for support tickets"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SupportRepository()

    async def create_ticket(self, user: User, data: SupportTicketCreate) -> SupportTicket:
        subject = (data.subject or "").strip()
        priority = (data.priority or "").strip()
        details = (data.details or "").strip()
        if not subject or not priority or not details:
            raise HTTPException(status_code=400, detail="subject, priority and details are required")
        if priority not in PRIORITIES:
            raise HTTPException(status_code=400, detail="priority must be Low, Medium or High")

        try:
            await email_service.send_support_ticket_email(
                user.full_name or user.email, user.email, subject, priority, details
            )
        except email_service.EmailNotConfiguredError as e:
            raise HTTPException(status_code=500, detail="Support email is not configured") from e
        except email_service.EmailSendError as e:
            raise HTTPException(status_code=502, detail="Failed to send support email") from e

        ticket = self.repo.create_ticket(
            self.db,
            user_id=user.id,
            subject=subject,
            description=f"Priority: {priority}\n\n{details}",
            priority=priority,
            status="open",
        )
        logger.info(f"🎫 Support ticket {ticket.id} opened by user {user.id}")
        return ticket

    def recent_tickets(self, user: User) -> list[SupportTicket]:
        return self.repo.list_recent_for_user(self.db, user.id)

    def admin_list(self) -> list[dict]:
        return [
            {
                **{c.name: getattr(ticket, c.name) for c in SupportTicket.__table__.columns},
                "user_email": ticket.user.email if ticket.user else None,
                "user_name": ticket.user.full_name if ticket.user else None,
            }
            for ticket in self.repo.list_recent(self.db)
        ]

    def update_status(self, ticket_id: int, status: str) -> SupportTicket:
        if status not in TICKET_STATUSES:
            raise HTTPException(status_code=400, detail="status must be open or closed")
        ticket = self.repo.get_ticket(self.db, ticket_id)
        if not ticket:
            raise HTTPException(status_code=404, detail="Ticket not found")
        return self.repo.update_ticket(self.db, ticket, status=status)
