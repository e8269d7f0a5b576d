"""Billing router - Subscription checkout and Zoho Billing webhook"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_active_user
from ...database import get_db
from ...models import User
from ...webhook_security import verify_hmac_webhook
from .schemas import SubscribeRequest, SubscribeResponse
from .service import BillingService

router = APIRouter(prefix="/billing", tags=["Billing"])

BILLING_SIGNATURE_HEADERS = ("x-zoho-webhook-signature", "x-signature")


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    """Dependency injection for BillingService"""
    return BillingService(db)


@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    data: SubscribeRequest,
    current_user: User = Depends(get_active_user),
    service: BillingService = Depends(get_billing_service),
):
    """Create a Zoho hosted checkout page for a plan"""
    return await service.subscribe(current_user, data)


@router.post("/webhook")
async def billing_webhook(
    request: Request,
    service: BillingService = Depends(get_billing_service),
):
    _, raw_body = await verify_hmac_webhook(
        request,
        config.ZOHO_BILLING_WEBHOOK_SECRET,
        BILLING_SIGNATURE_HEADERS,
        source="Zoho Billing",
    )
    return service.handle_webhook(raw_body)
