import logging
from typing import Any, Optional

import httpx

from .. import config
from .zoho_auth import ZohoAuth, safe_json, zoho_auth

logger = logging.getLogger(__name__)


class ZohoBillingError(Exception):
    pass


class ZohoBillingService:
    """Creates Zoho Billing (Subscriptions) hosted checkout pages"""

    def __init__(self, auth: Optional[ZohoAuth] = None, org_id: Optional[str] = None):
        self.auth = auth or zoho_auth
        self.org_id = org_id or config.ZOHO_ORG_ID

    @property
    def base_url(self) -> str:
        return f"https://subscriptions.zoho.{self.auth.region}/api/v1"

    def is_available(self) -> bool:
        return bool(self.org_id) and self.auth.is_available()

    async def create_subscription_page(
        self, plan_code: str, customer_name: str, customer_email: str
    ) -> dict[str, Any]:
        """Returns the hostedpage object; its "url" is the checkout link"""
        token = await self.auth.get_access_token()
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.post(
                f"{self.base_url}/hostedpages/newsubscription",
                headers={
                    "Authorization": f"Zoho-oauthtoken {token}",
                    "X-com-zoho-subscriptions-organizationid": self.org_id or "",
                },
                json={
                    "plan": {"plan_code": plan_code},
                    "customer": {"display_name": customer_name, "email": customer_email},
                },
            )
        data = safe_json(response)
        hosted_page = data.get("hostedpage") or {}
        if not hosted_page.get("url"):
            logger.error(f"❌ Zoho hosted page error: HTTP {response.status_code} {data.get('message')}")
            raise ZohoBillingError(data.get("message") or "Failed to create Zoho hosted page")
        logger.info(f"✅ Zoho hosted page created for plan {plan_code}")
        return hosted_page


zoho_billing = ZohoBillingService()
