import json
import logging
from typing import Any, Optional

import httpx

from .. import config
from .zoho_auth import ZohoAuth, safe_json, zoho_auth

logger = logging.getLogger(__name__)

CAMPAIGNS_ADD_URL = "https://campaigns.zoho.com/api/v1.1/json/listsubscribers/add"


class ZohoCRMService:
    """Zoho CRM lead creation plus Zoho Campaigns list subscription"""

    def __init__(self, auth: Optional[ZohoAuth] = None):
        self.auth = auth or zoho_auth
        self.call_id_field = config.RETELL_CALL_FIELD_API_NAME

    @property
    def base_url(self) -> str:
        return f"https://www.zohoapis.{self.auth.region}/crm/v2"

    async def _headers(self) -> dict[str, str]:
        token = await self.auth.get_access_token()
        return {"Authorization": f"Zoho-oauthtoken {token}"}

    async def lead_exists_by_call_id(self, call_id: str) -> bool:
        if not call_id:
            return False
        criteria = f"({self.call_id_field}:equals:{call_id})"
        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.get(
                f"{self.base_url}/Leads/search",
                headers=await self._headers(),
                params={"criteria": criteria},
            )
        # Search returns 204 with an empty body when nothing matches
        if response.status_code == 204:
            return False
        data = safe_json(response)
        return isinstance(data.get("data"), list) and len(data["data"]) > 0

    async def create_lead(
        self,
        last_name: str,
        description: str,
        company: Optional[str] = None,
        email: Optional[str] = None,
        country: Optional[str] = None,
        call_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Returns {"status": http_status, "body": json, "ok": bool}"""
        lead: dict[str, Any] = {
            "Last_Name": last_name or "Unknown",
            "Company": company or "Retell Lead",
            "Description": description or "",
            "Lead_Source": "AI",
        }
        if email:
            lead["Email"] = email
        if country:
            lead["Country"] = country
        if call_id:
            lead[self.call_id_field] = call_id

        async with httpx.AsyncClient(timeout=30) as client:
            response = await client.post(
                f"{self.base_url}/Leads", headers=await self._headers(), json={"data": [lead]}
            )
        body = safe_json(response)
        rows = body.get("data")
        ok = isinstance(rows, list) and bool(rows) and rows[0].get("status") == "success"
        logger.info(f"{'✅' if ok else '❌'} Zoho CRM createLead HTTP {response.status_code}")
        return {"status": response.status_code, "body": body, "ok": ok}

    async def add_to_campaign_list(self, email: str, name: str) -> dict[str, Any]:
        """Best effort; network errors are returned, not raised"""
        if not (config.ZOHO_CAMPAIGNS_AUTH_TOKEN and config.ZOHO_CAMPAIGNS_LIST_KEY):
            return {"ok": False, "error": "Zoho Campaigns not configured"}
        try:
            async with httpx.AsyncClient(timeout=30) as client:
                response = await client.post(
                    CAMPAIGNS_ADD_URL,
                    data={
                        "resfmt": "JSON",
                        "listkey": config.ZOHO_CAMPAIGNS_LIST_KEY,
                        "contactinfo": json.dumps({"Contact Email": email, "First Name": name}),
                        "authtoken": config.ZOHO_CAMPAIGNS_AUTH_TOKEN,
                    },
                )
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Zoho Campaigns add error: {e}")
            return {"ok": False, "error": str(e)}

        body = safe_json(response)
        message = str(body.get("message") or "").lower()
        ok = body.get("status") == "success" or body.get("code") in (200, "200") or "success" in message
        return {"ok": ok, "status": response.status_code, "body": body}


zoho_crm = ZohoCRMService()
