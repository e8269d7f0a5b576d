"""
Zoho Sign API client

Covers the embedded-signing lifecycle used by contracts:
create request -> submit -> embed token (signing URL) -> poll details ->
download the completed PDF.
"""

import json
import logging
from typing import Any, Optional

import httpx

from .. import config
from ..utils.sanitization import safe_filename
from .zoho_auth import ZohoAuth, safe_json, zoho_auth

logger = logging.getLogger(__name__)

MAX_PDF_BYTES = 50 * 1024 * 1024
ENCRYPT_SCAN_BYTES = 200 * 1024

# Zoho error codes with special handling
FILE_PARAM_ERROR_CODE = 9039
CREDITS_REQUIRED_ERROR_CODE = 12000


class ZohoSignError(Exception):
    """A Zoho Sign call failed"""

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}


class InvalidPdfError(Exception):
    """The contract file cannot be sent for signing"""

    def __init__(self, message: str, hint: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}


def validate_pdf(data: bytes, filename: str = "contract.pdf") -> None:
    """Reject files Zoho Sign cannot process: non-PDF, encrypted, or over 50MB"""
    if not data.startswith(b"%PDF"):
        raise InvalidPdfError(
            "Contract file is not a valid PDF (missing %PDF header)",
            "Please re-upload as a standard, unencrypted PDF and retry.",
            {"filename": filename},
        )
    if b"/Encrypt" in data[:ENCRYPT_SCAN_BYTES]:
        raise InvalidPdfError(
            "Encrypted or password-protected PDF detected",
            "Zoho Sign cannot process encrypted PDFs. Export an unencrypted copy and retry.",
            {"filename": filename},
        )
    if len(data) > MAX_PDF_BYTES:
        raise InvalidPdfError(
            "PDF exceeds 50MB size limit",
            "Reduce file size below 40-50MB and retry.",
            {"sizeMB": round(len(data) / (1024 * 1024))},
        )


def pdf_filename(object_path: str) -> str:
    """Filename sent to Zoho, always ending in .pdf"""
    raw_name = object_path.rsplit("/", 1)[-1] or "contract.pdf"
    return raw_name if raw_name.lower().endswith(".pdf") else f"{raw_name}.pdf"


class ZohoSignClient:
    """Thin async wrapper over the Zoho Sign REST API"""

    def __init__(self, auth: Optional[ZohoAuth] = None, region: Optional[str] = None):
        self.auth = auth or zoho_auth
        self.region = region or self.auth.region or config.ZOHO_REGION

    @property
    def base_url(self) -> str:
        return f"https://sign.zoho.{self.region}/api/v1"

    def is_available(self) -> bool:
        return self.auth.is_available()

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        token = await self.auth.get_access_token()
        headers = {"Authorization": f"Zoho-oauthtoken {token}"}
        async with httpx.AsyncClient(timeout=60) as client:
            response = await client.request(
                method, f"{self.base_url}{path}", headers=headers, **kwargs
            )
        data = safe_json(response)

        # Zoho Sign wraps results as {"code": 0, "status": "success", ...}
        code = data.get("code")
        if response.status_code >= 400 or (code not in (None, 0)):
            message = data.get("message") or f"Zoho Sign request failed ({response.status_code})"
            logger.error(f"❌ Zoho Sign {method} {path} failed: code={code} message={message}")
            raise ZohoSignError(
                message,
                status_code=response.status_code if response.status_code >= 400 else 502,
                code=code,
                details=data,
            )
        return data

    async def create_request(
        self,
        file_bytes: bytes,
        filename: str,
        title: str,
        recipient_name: str,
        recipient_email: str,
        is_embedded: bool = True,
    ) -> tuple[str, Optional[str]]:
        """
        Create a signing request for one signer.

        Returns:
            Tuple of (request_id, action_id)
        """
        payload = {
            "requests": {
                "request_name": title,
                "expiration_days": 10,
                "is_sequential": True,
                "email_reminders": True,
                "reminder_period": 2,
                "actions": [
                    {
                        "recipient_name": recipient_name,
                        "recipient_email": recipient_email,
                        "action_type": "SIGN",
                        "signing_order": 1,
                        "verify_recipient": True,
                        "verification_type": "EMAIL",
                        "is_embedded": is_embedded,
                    }
                ],
            }
        }
        form = {"data": json.dumps(payload)}

        try:
            data = await self._request(
                "POST", "/requests", data=form, files={"file": (filename, file_bytes)}
            )
        except ZohoSignError as e:
            if e.code != FILE_PARAM_ERROR_CODE and e.details.get("error_param") != "file":
                raise
            # Zoho rejected the file part; retry with a plain name and explicit PDF type
            logger.warning(f"⚠️ Zoho rejected file part for '{filename}', retrying as application/pdf")
            data = await self._request(
                "POST",
                "/requests",
                data=form,
                files={"file": (safe_filename(filename, "contract.pdf"), file_bytes, "application/pdf")},
            )

        request = data.get("requests") or {}
        request_id = request.get("request_id")
        if not request_id:
            raise ZohoSignError("Zoho Sign did not return a request_id", details=data)

        actions = request.get("actions") or []
        action_id = actions[0].get("action_id") if actions else None
        logger.info(f"✅ Zoho Sign request created: {request_id}")
        return str(request_id), action_id

    async def submit_request(self, request_id: str) -> dict[str, Any]:
        try:
            data = await self._request(
                "POST",
                f"/requests/{request_id}/submit",
                data={"data": json.dumps({"requests": {}})},
            )
        except ZohoSignError as e:
            if e.code == CREDITS_REQUIRED_ERROR_CODE:
                raise ZohoSignError(
                    "Zoho Sign API credits required to submit requests",
                    status_code=402,
                    code=e.code,
                    details=e.details,
                ) from e
            raise
        logger.info(f"✅ Zoho Sign request submitted: {request_id}")
        return data

    async def get_request(self, request_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"/requests/{request_id}")
        return data.get("requests") or {}

    async def get_embed_url(self, request_id: str, host: Optional[str]) -> Optional[str]:
        """Signing URL for the first SIGN action, or None when Zoho does not return one"""
        details = await self.get_request(request_id)
        actions = details.get("actions") or []
        action = next((a for a in actions if a.get("action_type") == "SIGN"), None)
        if not action or not action.get("action_id"):
            logger.warning(f"⚠️ No SIGN action found on request {request_id}")
            return None

        form = {"host": host} if host else {}
        data = await self._request(
            "POST", f"/requests/{request_id}/actions/{action['action_id']}/embedtoken", data=form
        )
        return data.get("sign_url")

    async def get_documents(self, request_id: str) -> list[dict[str, Any]]:
        details = await self.get_request(request_id)
        return details.get("document_ids") or details.get("documents") or []

    async def download_document(self, request_id: str, document_id: str) -> bytes:
        token = await self.auth.get_access_token()
        async with httpx.AsyncClient(timeout=120) as client:
            response = await client.get(
                f"{self.base_url}/requests/{request_id}/documents/{document_id}/pdf",
                headers={"Authorization": f"Zoho-oauthtoken {token}"},
            )
        if response.status_code >= 400:
            raise ZohoSignError(
                f"Failed to download signed document ({response.status_code})",
                status_code=response.status_code,
            )
        return response.content


zoho_sign = ZohoSignClient()
