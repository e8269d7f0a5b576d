"""Contract router - Admin management, client signing and Zoho Sign webhook"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_active_user, require_admin
from ...database import get_db
from ...models import User
from ...webhook_security import verify_hmac_webhook
from .schemas import (
    AdminContractResponse,
    ContractResponse,
    ContractStatusResponse,
    ContractUrlResponse,
    ManualSignatureRequest,
)
from .service import ContractService, request_embed_host

router = APIRouter(prefix="/contracts", tags=["Contracts"])
admin_router = APIRouter(prefix="/admin/contracts", tags=["Admin Contracts"])
webhooks_router = APIRouter(prefix="/zoho-sign", tags=["Webhooks"])

ZOHO_SIGN_SIGNATURE_HEADERS = ("x-zoho-sign-signature", "x-signature")


def get_contract_service(db: Session = Depends(get_db)) -> ContractService:
    """Dependency injection for ContractService"""
    return ContractService(db)


def signing_response(result: dict):
    """202 with a hint when Zoho has not produced an embed URL yet"""
    if result.get("url"):
        return {"url": result["url"], "request_id": result["request_id"]}
    return JSONResponse(
        status_code=202,
        content={
            "error": "Signing URL not available yet",
            "hint": "The request was created; retry shortly or check the Zoho Sign embed host settings.",
            "request_id": result.get("request_id"),
            "details": {"embed_host_configured": bool(config.SIGN_EMBED_HOST or config.SITE_URL)},
        },
    )


# ============================================================================
# CLIENT
# ============================================================================


@router.get("", response_model=list[ContractResponse])
async def list_contracts(
    current_user: User = Depends(get_active_user),
    service: ContractService = Depends(get_contract_service),
):
    """Contracts sent to the current user, newest first"""
    return service.list_for_client(current_user)


@router.post("/{contract_id}/start-sign")
async def start_sign(
    contract_id: str,
    request: Request,
    current_user: User = Depends(get_active_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.get_accessible_contract(contract_id, current_user)
    result = await service.ensure_signing_link(contract, request_embed_host(request.headers))
    return signing_response(result)


@router.get("/{contract_id}/sign-url")
async def get_sign_url(
    contract_id: str,
    request: Request,
    current_user: User = Depends(get_active_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.get_accessible_contract(contract_id, current_user)
    return await service.get_sign_url(contract, request_embed_host(request.headers))


@router.get("/{contract_id}/status", response_model=ContractStatusResponse)
async def get_status(
    contract_id: str,
    current_user: User = Depends(get_active_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.get_accessible_contract(contract_id, current_user)
    return await service.poll_status(contract)


@router.get("/{contract_id}/download", response_model=ContractUrlResponse)
async def download_signed(
    contract_id: str,
    current_user: User = Depends(get_active_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.get_accessible_contract(contract_id, current_user)
    return service.download_url(contract)


@router.get("/{contract_id}/url", response_model=ContractUrlResponse)
async def view_original(
    contract_id: str,
    current_user: User = Depends(get_active_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.get_accessible_contract(contract_id, current_user)
    return service.view_url(contract)


@router.post("/{contract_id}/sign", response_model=ContractResponse)
async def manual_sign(
    contract_id: str,
    data: ManualSignatureRequest,
    current_user: User = Depends(get_active_user),
    service: ContractService = Depends(get_contract_service),
):
    contract = service.get_accessible_contract(contract_id, current_user)
    return service.manual_sign(contract, current_user, data.signature)


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.post("/upload", response_model=ContractResponse)
async def admin_upload_contract(
    title: Optional[str] = Form(None),
    client_user_id: Optional[str] = Form(None),
    client_email: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    admin: User = Depends(require_admin),
    service: ContractService = Depends(get_contract_service),
):
    return await service.admin_upload(admin, title, client_user_id, client_email, file)


@admin_router.get("", response_model=list[AdminContractResponse])
async def admin_list_contracts(
    _: User = Depends(require_admin),
    service: ContractService = Depends(get_contract_service),
):
    return service.admin_list()


@admin_router.delete("/{contract_id}")
async def admin_delete_contract(
    contract_id: str,
    _: User = Depends(require_admin),
    service: ContractService = Depends(get_contract_service),
):
    return service.admin_delete(contract_id)


@admin_router.post("/{contract_id}/link-zoho")
async def admin_link_zoho(
    contract_id: str,
    request: Request,
    _: User = Depends(require_admin),
    service: ContractService = Depends(get_contract_service),
):
    """Create the Zoho request for a contract whose upload-time request failed"""
    contract = service.get_contract(contract_id)
    result = await service.ensure_signing_link(contract, request_embed_host(request.headers))
    return signing_response(result)


# ============================================================================
# WEBHOOK
# ============================================================================


@webhooks_router.post("/webhook")
async def zoho_sign_webhook(
    request: Request,
    service: ContractService = Depends(get_contract_service),
):
    _, raw_body = await verify_hmac_webhook(
        request,
        config.ZOHO_SIGN_WEBHOOK_SECRET,
        ZOHO_SIGN_SIGNATURE_HEADERS,
        source="Zoho Sign",
    )
    return await service.handle_webhook(raw_body)
