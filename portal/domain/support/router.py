"""Support router - Client tickets and admin triage"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_active_user, require_admin
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    AdminSupportTicketResponse,
    SupportTicketCreate,
    SupportTicketResponse,
    TicketStatusUpdate,
)
from .service import SupportService

router = APIRouter(prefix="/support", tags=["Support"])
admin_router = APIRouter(prefix="/admin/support", tags=["Admin Support"])

rate_limit_support = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="support")


def get_support_service(db: Session = Depends(get_db)) -> SupportService:
    """Dependency injection for SupportService"""
    return SupportService(db)


@router.post("", response_model=SupportTicketResponse)
async def create_ticket(
    data: SupportTicketCreate,
    current_user: User = Depends(get_active_user),
    service: SupportService = Depends(get_support_service),
    _: None = Depends(rate_limit_support),
):
    """Email the support inbox and record the ticket"""
    return await service.create_ticket(current_user, data)


@router.get("/recent", response_model=list[SupportTicketResponse])
async def recent_tickets(
    current_user: User = Depends(get_active_user),
    service: SupportService = Depends(get_support_service),
):
    return service.recent_tickets(current_user)


@admin_router.get("", response_model=list[AdminSupportTicketResponse])
async def admin_list_tickets(
    _: User = Depends(require_admin),
    service: SupportService = Depends(get_support_service),
):
    return service.admin_list()


@admin_router.post("/update-status", response_model=SupportTicketResponse)
async def admin_update_ticket_status(
    data: TicketStatusUpdate,
    _: User = Depends(require_admin),
    service: SupportService = Depends(get_support_service),
):
    return service.update_status(data.id, data.status)
