"""CRM router - Retell voice-agent webhook"""

import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from .service import LeadCaptureService

router = APIRouter(tags=["CRM"])


def get_lead_capture_service() -> LeadCaptureService:
    """Dependency injection for LeadCaptureService"""
    return LeadCaptureService()


@router.post("/retell-webhook")
async def retell_webhook(
    request: Request,
    service: LeadCaptureService = Depends(get_lead_capture_service),
):
    raw_body = await request.body()
    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    status_code, content = await service.process_call(body)
    return JSONResponse(status_code=status_code, content=content)
