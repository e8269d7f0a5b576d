"""Document router - Client uploads and admin review"""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_active_user, require_admin
from ...database import get_db
from ...models import User
from .schemas import (
    AdminDocumentResponse,
    DocumentResponse,
    DocumentStatusUpdate,
    SignedUrlResponse,
)
from .service import DocumentService

router = APIRouter(prefix="/client/documents", tags=["Documents"])
admin_router = APIRouter(prefix="/admin/client-documents", tags=["Admin Documents"])


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    """Dependency injection for DocumentService"""
    return DocumentService(db)


@router.post("/upload", response_model=DocumentResponse)
async def upload_document(
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_active_user),
    service: DocumentService = Depends(get_document_service),
):
    return await service.upload_document(current_user, file)


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    current_user: User = Depends(get_active_user),
    service: DocumentService = Depends(get_document_service),
):
    return service.list_documents(current_user)


@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    current_user: User = Depends(get_active_user),
    service: DocumentService = Depends(get_document_service),
):
    document = service.get_owned_document(document_id, current_user)
    return service.delete_document(document)


@router.get("/{document_id}/url", response_model=SignedUrlResponse)
async def get_document_url(
    document_id: int,
    current_user: User = Depends(get_active_user),
    service: DocumentService = Depends(get_document_service),
):
    """Short-lived (5 minute) download link for the owner or an admin"""
    return service.get_signed_url(document_id, current_user)


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("", response_model=list[AdminDocumentResponse])
async def admin_list_documents(
    _: User = Depends(require_admin),
    service: DocumentService = Depends(get_document_service),
):
    return service.list_all_documents()


@admin_router.patch("/{document_id}", response_model=DocumentResponse)
async def admin_update_document(
    document_id: int,
    data: DocumentStatusUpdate,
    _: User = Depends(require_admin),
    service: DocumentService = Depends(get_document_service),
):
    return service.update_status(document_id, data.status)


@admin_router.delete("/{document_id}")
async def admin_delete_document(
    document_id: int,
    _: User = Depends(require_admin),
    service: DocumentService = Depends(get_document_service),
):
    return service.delete_document(service.get_document(document_id))
