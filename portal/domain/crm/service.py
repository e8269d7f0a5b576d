"""CRM service - Turn completed voice-agent calls into Zoho CRM leads"""

import logging
from typing import Any, Optional

import httpx

from ...services.zoho_auth import ZohoAuthError
from ...services.zoho_crm import ZohoCRMService, zoho_crm
from .transcript import extract_final_details, transcript_entries, transcript_text

logger = logging.getLogger(__name__)

HANDLED_EVENTS = ("call_completed", "call_analyzed")


class LeadCaptureService:
    """Processes Retell call webhooks step by step, recording each step for the response"""

    def __init__(self, crm: Optional[ZohoCRMService] = None):
        self.crm = crm or zoho_crm

    async def process_call(self, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """Returns (http_status, response_body)"""
        steps: list[dict[str, Any]] = [{"step": "payload_received", "ok": True}]

        event = body.get("event") or body.get("status")
        if event not in HANDLED_EVENTS:
            logger.info(f"📞 Retell event '{event}' ignored")
            return 200, {"success": True, "message": f'Event "{event}" ignored'}
        steps.append({"step": "event_ok", "event": event})

        call = body.get("call") if isinstance(body.get("call"), dict) else {}
        call_id = body.get("call_id") or call.get("call_id") or call.get("id")
        steps.append({"step": "call_id", "callId": call_id})

        entries = transcript_entries(call)
        details = extract_final_details(entries)
        transcript = transcript_text(body, call, entries)
        name = details["name"] or "Unknown"
        steps.append({"step": "extracted_details", "details": {**details, "name": name}})

        try:
            await self.crm.auth.get_access_token()
        except (ZohoAuthError, httpx.HTTPError) as e:
            logger.error(f"❌ No Zoho token for lead capture: {e}")
            steps.append({"step": "refresh_token_failed"})
            return 500, {"success": False, "steps": steps, "error": "No Zoho token"}
        steps.append({"step": "refresh_token_ok"})

        try:
            if call_id and await self.crm.lead_exists_by_call_id(str(call_id)):
                logger.info(f"📞 Lead already exists for call {call_id}")
                steps.append({"step": "lead_exists", "callId": call_id})
                return 200, {"success": True, "message": "Already processed (call id)", "steps": steps}
            steps.append({"step": "lead_does_not_exist", "callId": call_id})

            description = (
                f"Industry: {details['industry'] or ''}\n"
                f"Location: {details['location'] or ''}\n\n"
                f"Transcript:\n{transcript}"
            )
            created = await self.crm.create_lead(
                last_name=name,
                description=description,
                company=details["company"],
                email=details["email"],
                country=details["location"],
                call_id=str(call_id) if call_id else None,
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ Zoho CRM request failed: {e}")
            steps.append({"step": "crm_request_failed", "error": str(e)})
            return 500, {"success": False, "steps": steps, "error": "Zoho CRM request failed"}

        steps.append({"step": "create_lead_response", "createResp": created})
        if not created["ok"]:
            return 500, {"success": False, "steps": steps, "error": "Lead creation failed"}
        steps.append({"step": "lead_created"})

        if details["email"]:
            campaigns = await self.crm.add_to_campaign_list(details["email"], name)
            steps.append({"step": "campaigns_add_response", "campaignsResp": campaigns})
            steps.append({"step": "campaigns_add_ok" if campaigns.get("ok") else "campaigns_add_maybe_failed"})
        else:
            steps.append({"step": "campaigns_skipped_no_email"})

        logger.info(f"✅ Lead captured for call {call_id}")
        return 200, {"success": True, "steps": steps}
