"""
OAuth router - One-time Zoho consent callback

Exchanges the authorization code for tokens so an operator can copy the
refresh token into ZOHO_REFRESH_TOKEN.
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from ... import config
from ...services.zoho_auth import ZohoAuth, ZohoAuthError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["OAuth"])


@router.get("/callback")
async def oauth_callback(code: Optional[str] = None, error: Optional[str] = None):
    if error:
        raise HTTPException(status_code=400, detail=error)
    if not code:
        raise HTTPException(status_code=400, detail="Missing 'code' query param from Zoho")
    if not (config.ZOHO_CLIENT_ID and config.ZOHO_CLIENT_SECRET):
        raise HTTPException(
            status_code=500, detail="Missing ZOHO_CLIENT_ID or ZOHO_CLIENT_SECRET in environment"
        )

    auth = ZohoAuth(client_id=config.ZOHO_CLIENT_ID, client_secret=config.ZOHO_CLIENT_SECRET)
    try:
        data = await auth.exchange_code(code, config.ZOHO_REDIRECT_URI)
    except ZohoAuthError as e:
        return JSONResponse(status_code=400, content={"error": str(e), "details": e.details})
    except httpx.HTTPError as e:
        logger.error(f"❌ Zoho token endpoint unreachable: {e}")
        raise HTTPException(status_code=502, detail="Zoho token endpoint unreachable") from e

    logger.info("✅ Zoho token exchange successful")
    return {
        "message": "Zoho token exchange successful",
        "access_token": data.get("access_token"),
        "refresh_token": data.get("refresh_token"),
        "expires_in": data.get("expires_in"),
        "token_type": data.get("token_type"),
    }
