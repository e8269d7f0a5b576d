"""Billing service - Hosted checkout pages and payment webhooks"""

import json
import logging
from typing import Any, Optional

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...services.zoho_auth import ZohoAuthError
from ...services.zoho_billing import ZohoBillingError, ZohoBillingService, zoho_billing
from ...shared.validators import normalize_email
from .repository import SubscriptionRepository
from .schemas import SubscribeRequest

logger = logging.getLogger(__name__)


def is_payment_succeeded(event: Optional[str]) -> bool:
    if not event:
        return False
    return "payment_succeeded" in event or event == "payment_successful"


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class BillingService:
    """Service layer for subscription handoff to Zoho Billing"""

    def __init__(self, db: Session, billing_client: Optional[ZohoBillingService] = None):
        self.db = db
        self.repo = SubscriptionRepository()
        self.billing = billing_client or zoho_billing

    async def subscribe(self, user: User, data: SubscribeRequest) -> dict:
        plan_code = (data.planCode or "").strip()
        if not plan_code:
            raise HTTPException(status_code=400, detail="Missing planCode")
        if not self.billing.is_available():
            raise HTTPException(status_code=503, detail="Billing is not configured")

        customer = data.customer
        name = (customer.name if customer else None) or user.full_name or user.email
        email = normalize_email(customer.email if customer else None) or user.email

        try:
            hosted_page = await self.billing.create_subscription_page(plan_code, name, email)
        except ZohoAuthError as e:
            logger.error(f"❌ Zoho auth failed for billing: {e}")
            raise HTTPException(status_code=503, detail="Billing provider unavailable") from e
        except (ZohoBillingError, httpx.HTTPError) as e:
            raise HTTPException(status_code=502, detail="Failed to create Zoho hosted page") from e

        self.repo.create_subscription(
            self.db,
            user_id=user.id,
            customer_email=email,
            plan_code=plan_code,
            status="pending",
        )
        logger.info(f"💳 Checkout started for user {user.id} on plan {plan_code}")
        return {"url": hosted_page["url"]}

    def handle_webhook(self, raw_body: bytes) -> dict:
        try:
            body = json.loads(raw_body or b"{}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from e
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        event = body.get("event") or body.get("event_type")
        logger.info(f"📥 Zoho Billing event: {event}")
        if is_payment_succeeded(event):
            self._record_payment(event, body.get("data") or {})
        return {"success": True}

    def _record_payment(self, event: str, data: dict) -> None:
        subscription = data.get("subscription") or {}
        invoice = data.get("invoice") or {}
        payment = data.get("payment") or {}

        provider_id = subscription.get("subscription_id") or invoice.get("subscription_id")
        amount = _as_float(payment.get("amount") or invoice.get("amount") or invoice.get("total"))
        email = normalize_email(
            (subscription.get("customer") or {}).get("email")
            or invoice.get("email")
            or payment.get("email")
        ) or None
        plan_code = (subscription.get("plan") or {}).get("plan_code")

        record = self.repo.get_by_provider_id(self.db, str(provider_id)) if provider_id else None
        if not record and email:
            record = self.repo.get_latest_pending_for_email(self.db, email)

        updates = {
            "provider_subscription_id": str(provider_id) if provider_id else None,
            "status": "active",
            "amount": amount,
            "last_event": event,
            "plan_code": plan_code,
            "customer_email": email,
        }
        if record:
            self.repo.update_subscription(self.db, record, **updates)
        elif provider_id or email:
            self.repo.create_subscription(self.db, **{k: v for k, v in updates.items() if v is not None})
        else:
            logger.warning("⚠️ Payment event without subscription id or email, nothing recorded")
            return
        logger.info(f"✅ Payment recorded for subscription {provider_id} amount={amount}")
