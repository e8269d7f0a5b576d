"""
Contract service - Admin uploads, embedded e-signature and completion

Signing runs through Zoho Sign: a request is created for the contract PDF,
an embed token gives the client a signing URL, and completion (webhook or
status polling) copies the signed PDF into the signed-contracts bucket.
"""

import base64
import binascii
import json
import logging
import uuid
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ... import config, storage
from ...models import Contract, User, utcnow
from ...services.zoho_auth import ZohoAuthError
from ...services.zoho_sign import (
    InvalidPdfError,
    ZohoSignClient,
    ZohoSignError,
    pdf_filename,
    validate_pdf,
    zoho_sign,
)
from ...shared.validators import normalize_email
from ...utils.sanitization import safe_filename
from ..users.repository import UserRepository
from . import lifecycle
from .repository import ContractRepository

logger = logging.getLogger(__name__)

DOWNLOAD_URL_TTL_SECONDS = 30 * 60
VIEW_URL_TTL_SECONDS = 15 * 60
PNG_DATA_URL_PREFIX = "data:image/png;base64,"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

COMPLETION_EVENTS = ("REQUEST_COMPLETED", "DOCUMENT_SIGNED")

# Errors a best-effort provider call may raise
PROVIDER_ERRORS = (ZohoSignError, ZohoAuthError, httpx.HTTPError)


def infer_embed_host(
    origin: Optional[str], host: Optional[str], forwarded_proto: Optional[str]
) -> Optional[str]:
    """Host Zoho should allow the signing iframe on"""
    if config.SIGN_EMBED_HOST:
        return config.SIGN_EMBED_HOST
    if config.SITE_URL:
        return config.SITE_URL
    if origin:
        return origin
    if not host:
        return None
    proto = forwarded_proto
    if not proto:
        proto = "http" if host.split(":")[0] in ("localhost", "127.0.0.1") else "https"
    return f"{proto}://{host}"


def is_completion_event(event: str) -> bool:
    lowered = event.lower()
    return "completed" in lowered or "signed" in lowered or event.upper() in COMPLETION_EVENTS


def extract_webhook_ids(payload: dict[str, Any]) -> tuple[str, Optional[str], Optional[str]]:
    """Returns (event, request_id, document_id) from a Zoho Sign webhook body"""
    notifications = payload.get("notifications")
    operation = notifications.get("operation_type") if isinstance(notifications, dict) else None
    event = str(
        payload.get("event") or payload.get("event_type") or payload.get("type") or operation or ""
    )

    candidates = [payload]
    for key in ("payload", "data", "body", "requests"):
        nested = payload.get(key)
        if isinstance(nested, dict):
            candidates.append(nested)
            if isinstance(nested.get("requests"), dict):
                candidates.append(nested["requests"])

    request_id = next((str(c["request_id"]) for c in candidates if c.get("request_id")), None)
    document_id = next((str(c["document_id"]) for c in candidates if c.get("document_id")), None)
    return event, request_id, document_id


class ContractService:
    """Service layer for contracts"""

    def __init__(self, db: Session, sign_client: Optional[ZohoSignClient] = None):
        self.db = db
        self.repo = ContractRepository()
        self.users = UserRepository()
        self.sign = sign_client or zoho_sign

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def get_contract(self, contract_id: str) -> Contract:
        contract = self.repo.get_contract(self.db, contract_id)
        if not contract:
            raise HTTPException(status_code=404, detail="Contract not found")
        return contract

    def get_accessible_contract(self, contract_id: str, user: User) -> Contract:
        """Contract visible to its client and to admins"""
        contract = self.get_contract(contract_id)
        if contract.client_user_id != user.id and not user.is_admin:
            raise HTTPException(status_code=403, detail="Forbidden")
        return contract

    def _set_status(self, contract: Contract, target: str) -> None:
        try:
            changed = lifecycle.transition(contract, target)
        except lifecycle.InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        if changed:
            logger.info(f"📝 Contract {contract.id} -> {target}")

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def admin_upload(
        self,
        admin: User,
        title: Optional[str],
        client_user_id: Optional[str],
        client_email: Optional[str],
        file: Optional[UploadFile],
    ) -> Contract:
        title = (title or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        if file is None or not file.filename:
            raise HTTPException(status_code=400, detail="File is required")

        if client_user_id:
            client = self.users.get_by_id(self.db, client_user_id)
        elif client_email:
            client = self.users.get_by_email(self.db, normalize_email(client_email))
        else:
            raise HTTPException(status_code=400, detail="client_user_id or client_email is required")
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")

        content = await file.read()
        if not content:
            raise HTTPException(status_code=400, detail="File is empty")

        object_path = f"{client.id}/{uuid.uuid4()}-{safe_filename(file.filename, 'contract.pdf')}"
        try:
            storage.upload_bytes(
                config.CONTRACTS_BUCKET, object_path, content, file.content_type or "application/pdf"
            )
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to store contract file") from e

        contract = self.repo.create_contract(
            self.db,
            client_user_id=client.id,
            title=title,
            file_url=object_path,
            status=lifecycle.DRAFT,
            created_by=admin.id,
        )
        logger.info(f"📄 Contract {contract.id} uploaded for client {client.id}")

        if self.sign.is_available():
            try:
                request_id, _ = await self.sign.create_request(
                    content,
                    pdf_filename(object_path),
                    title,
                    client.full_name or client.email,
                    client.email,
                    is_embedded=True,
                )
            except PROVIDER_ERRORS as e:
                logger.warning(f"⚠️ Zoho request not created for contract {contract.id}: {e}")
            else:
                self._set_status(contract, lifecycle.SENT)
                contract = self.repo.save(self.db, contract, zoho_request_id=request_id)

        return contract

    def admin_list(self) -> list[dict]:
        return [
            {
                **{c.name: getattr(contract, c.name) for c in Contract.__table__.columns},
                "client_email": contract.client.email if contract.client else None,
                "client_name": contract.client.full_name if contract.client else None,
            }
            for contract in self.repo.list_all(self.db)
        ]

    def admin_delete(self, contract_id: str) -> dict:
        contract = self.get_contract(contract_id)
        originals = [contract.file_url]
        signed = [contract.signed_file_url, contract.signature_image_url]

        self.repo.delete_contract(self.db, contract)
        storage.remove_quietly(config.CONTRACTS_BUCKET, originals)
        storage.remove_quietly(config.SIGNED_CONTRACTS_BUCKET, signed)
        logger.info(f"🗑️ Contract {contract_id} deleted")
        return {"ok": True}

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    async def ensure_signing_link(self, contract: Contract, embed_host: Optional[str]) -> dict:
        """
        Create (or reuse) the Zoho request for a contract and fetch its embed URL.

        Returns {"url", "request_id"} where url may be None when Zoho does not
        hand out an embed token yet.
        """
        if contract.zoho_request_id and contract.zoho_sign_url:
            return {"url": contract.zoho_sign_url, "request_id": contract.zoho_request_id}

        if contract.status not in (lifecycle.DRAFT, lifecycle.SENT):
            raise HTTPException(
                status_code=409, detail=f"Contract is already {contract.status}"
            )
        if not contract.file_url:
            raise HTTPException(status_code=400, detail="Contract has no file to sign")
        client = contract.client
        if not client or not client.email:
            raise HTTPException(status_code=400, detail="Client email is missing")

        request_id = contract.zoho_request_id
        try:
            if not request_id:
                request_id = await self._create_request(contract, client)
            await self._submit(request_id)
            url = await self._embed_url(request_id, embed_host)
        except ZohoAuthError as e:
            logger.error(f"❌ Zoho auth failed for contract {contract.id}: {e}")
            raise HTTPException(status_code=503, detail="E-signature provider unavailable") from e

        self._set_status(contract, lifecycle.SENT)
        self.repo.save(self.db, contract, zoho_request_id=request_id, zoho_sign_url=url)
        return {"url": url, "request_id": request_id}

    async def _create_request(self, contract: Contract, client: User) -> str:
        try:
            data = storage.download_bytes(config.CONTRACTS_BUCKET, contract.file_url)
        except storage.StorageError as e:
            raise HTTPException(status_code=500, detail="Failed to read contract file") from e

        filename = pdf_filename(contract.file_url)
        try:
            validate_pdf(data, filename)
        except InvalidPdfError as e:
            raise HTTPException(
                status_code=400,
                detail={"error": e.message, "hint": e.hint, "details": e.details},
            ) from e

        try:
            request_id, _ = await self.sign.create_request(
                data,
                filename,
                contract.title,
                client.full_name or client.email,
                client.email,
                is_embedded=True,
            )
        except ZohoSignError as e:
            logger.error(f"❌ Zoho Sign rejected contract {contract.id}: {e.message} ({e.status_code})")
            status_code = 402 if e.status_code == 402 else 502
            raise HTTPException(
                status_code=status_code, detail=f"Zoho Sign error: {e.message}"
            ) from e
        except httpx.HTTPError as e:
            raise HTTPException(status_code=502, detail="E-signature provider unreachable") from e
        return request_id

    async def _submit(self, request_id: str) -> None:
        try:
            await self.sign.submit_request(request_id)
        except ZohoSignError as e:
            if e.status_code == 402:
                raise HTTPException(status_code=402, detail=e.message) from e
            # Already-submitted requests answer with an error; the embed token still works
            logger.warning(f"⚠️ Zoho submit for {request_id} returned: {e.message}")
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Zoho submit for {request_id} failed: {e}")

    async def _embed_url(self, request_id: str, embed_host: Optional[str]) -> Optional[str]:
        try:
            return await self.sign.get_embed_url(request_id, embed_host)
        except (ZohoSignError, httpx.HTTPError) as e:
            logger.warning(f"⚠️ No embed URL for {request_id}: {e}")
            return None

    async def get_sign_url(self, contract: Contract, embed_host: Optional[str]) -> dict:
        if contract.zoho_sign_url:
            return {"url": contract.zoho_sign_url}
        if not contract.zoho_request_id:
            raise HTTPException(status_code=404, detail="Contract has no signing request")

        try:
            url = await self._embed_url(contract.zoho_request_id, embed_host)
        except ZohoAuthError as e:
            raise HTTPException(status_code=503, detail="E-signature provider unavailable") from e
        if not url:
            raise HTTPException(status_code=409, detail="Signing URL not available yet")
        self.repo.save(self.db, contract, zoho_sign_url=url)
        return {"url": url}

    async def poll_status(self, contract: Contract) -> dict:
        if not contract.zoho_request_id:
            return {"status": contract.status, "provider_status": None}

        try:
            details = await self.sign.get_request(contract.zoho_request_id)
        except PROVIDER_ERRORS as e:
            # Polling falls back to the local status when Zoho cannot answer
            logger.warning(f"⚠️ Zoho status check failed for contract {contract.id}: {e}")
            return {"status": contract.status, "provider_status": None}

        provider_status = str(details.get("request_status") or "").lower() or None
        if provider_status == "completed" and contract.status != lifecycle.SIGNED:
            await self.complete_contract(contract)
        elif provider_status in (lifecycle.DECLINED, lifecycle.EXPIRED):
            if lifecycle.can_transition(contract.status, provider_status):
                self._set_status(contract, provider_status)
                self.repo.save(self.db, contract)

        return {"status": contract.status, "provider_status": provider_status}

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def handle_webhook(self, raw_body: bytes) -> dict:
        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from e
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        event, request_id, document_id = extract_webhook_ids(payload)
        logger.info(f"📥 Zoho Sign event '{event}' for request {request_id}")
        if not request_id:
            raise HTTPException(status_code=400, detail="Missing request_id")

        if not is_completion_event(event):
            return {"ok": True, "message": "Event ignored"}

        contract = self.repo.get_by_request_id(self.db, request_id)
        if not contract:
            raise HTTPException(status_code=404, detail="Contract not found for request")
        if contract.status == lifecycle.SIGNED:
            return {"ok": True, "message": "Contract already signed"}

        return await self.complete_contract(contract, document_id)

    async def complete_contract(self, contract: Contract, document_id: Optional[str] = None) -> dict:
        """Store the signed PDF (best effort) and mark the contract signed"""
        request_id = contract.zoho_request_id

        if not document_id and request_id:
            try:
                documents = await self.sign.get_documents(request_id)
            except PROVIDER_ERRORS as e:
                logger.warning(f"⚠️ Could not list documents for {request_id}: {e}")
                documents = []
            if documents:
                first = documents[0]
                document_id = first.get("document_id") or first.get("id")

        signed_path = None
        if document_id and request_id:
            key = f"signed/{contract.id}.pdf"
            try:
                pdf = await self.sign.download_document(request_id, str(document_id))
                storage.upload_bytes(config.SIGNED_CONTRACTS_BUCKET, key, pdf, "application/pdf")
                signed_path = key
            except PROVIDER_ERRORS + (storage.StorageError,) as e:
                logger.error(f"❌ Signed PDF not stored for contract {contract.id}: {e}")

        self._set_status(contract, lifecycle.SIGNED)
        self.repo.save(
            self.db,
            contract,
            signed_at=utcnow(),
            zoho_document_id=str(document_id) if document_id else None,
            signed_file_url=signed_path,
        )
        logger.info(f"✅ Contract {contract.id} signed")
        return {
            "ok": True,
            "contract_id": contract.id,
            "document_id": contract.zoho_document_id,
            "signed_file_stored": signed_path is not None,
        }

    # ------------------------------------------------------------------
    # Client views
    # ------------------------------------------------------------------

    def list_for_client(self, user: User) -> list[Contract]:
        return self.repo.list_for_client(self.db, user.id, lifecycle.CLIENT_VISIBLE_STATUSES)

    def download_url(self, contract: Contract) -> dict:
        if contract.status != lifecycle.SIGNED or not contract.signed_file_url:
            raise HTTPException(status_code=404, detail="Signed file not available")
        return self._presign(
            config.SIGNED_CONTRACTS_BUCKET, contract.signed_file_url, DOWNLOAD_URL_TTL_SECONDS
        )

    def view_url(self, contract: Contract) -> dict:
        if not contract.file_url:
            raise HTTPException(status_code=404, detail="Contract file not available")
        return self._presign(config.CONTRACTS_BUCKET, contract.file_url, VIEW_URL_TTL_SECONDS)

    @staticmethod
    def _presign(bucket: str, key: str, ttl: int) -> dict:
        try:
            url = storage.presigned_url(bucket, key, ttl)
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to create signed URL") from e
        return {"url": url, "expires_in": ttl}

    def manual_sign(self, contract: Contract, user: User, signature: Optional[str]) -> Contract:
        if contract.client_user_id != user.id:
            raise HTTPException(status_code=403, detail="Only the client can sign this contract")
        if contract.status == lifecycle.SIGNED:
            raise HTTPException(status_code=409, detail="Contract already signed")
        if not signature or not signature.startswith(PNG_DATA_URL_PREFIX):
            raise HTTPException(status_code=400, detail="Signature must be a PNG data URL")

        try:
            image = base64.b64decode(signature[len(PNG_DATA_URL_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as e:
            raise HTTPException(status_code=400, detail="Signature is not valid base64") from e
        if not image.startswith(PNG_MAGIC):
            raise HTTPException(status_code=400, detail="Signature must be a PNG data URL")

        # Validate the move before writing to storage
        if not lifecycle.can_transition(contract.status, lifecycle.SIGNED):
            raise HTTPException(
                status_code=409, detail=f"Cannot sign a contract that is {contract.status}"
            )

        key = f"signatures/{contract.id}.png"
        try:
            storage.upload_bytes(config.SIGNED_CONTRACTS_BUCKET, key, image, "image/png")
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to store signature") from e

        self._set_status(contract, lifecycle.SIGNED)
        contract = self.repo.save(self.db, contract, signature_image_url=key, signed_at=utcnow())
        logger.info(f"✍️ Contract {contract.id} signed manually by user {user.id}")
        return contract


def request_embed_host(headers) -> Optional[str]:
    """infer_embed_host() using Origin / Host / X-Forwarded-Proto request headers"""
    origin = headers.get("origin")
    if origin and not urlparse(origin).scheme:
        origin = None
    return infer_embed_host(origin, headers.get("host"), headers.get("x-forwarded-proto"))
