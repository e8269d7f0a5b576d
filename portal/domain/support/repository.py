"""Support repository - Database operations for support tickets"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import SupportTicket


class SupportRepository:
    """Repository for support ticket database operations"""

    @staticmethod
    def get_ticket(db: Session, ticket_id: int) -> Optional[SupportTicket]:
        return db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()

    @staticmethod
    def list_recent_for_user(db: Session, user_id: str, limit: int = 10) -> list[SupportTicket]:
        return (
            db.query(SupportTicket)
            .filter(SupportTicket.user_id == user_id)
            .order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_recent(db: Session, limit: int = 50) -> list[SupportTicket]:
        return (
            db.query(SupportTicket)
            .options(joinedload(SupportTicket.user))
            .order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def create_ticket(db: Session, **ticket_data) -> SupportTicket:
        ticket = SupportTicket(**ticket_data)
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket

    @staticmethod
    def update_ticket(db: Session, ticket: SupportTicket, **updates) -> SupportTicket:
        for key, value in updates.items():
            if hasattr(ticket, key):
                setattr(ticket, key, value)
        db.commit()
        db.refresh(ticket)
        return ticket
