"""Resource router - Client library and admin management"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_active_user, require_admin
from ...database import get_db
from ...models import User
from .schemas import ResourceResponse
from .service import ResourceService

router = APIRouter(prefix="/resources", tags=["Resources"])
admin_router = APIRouter(prefix="/admin/resources", tags=["Admin Resources"])


def get_resource_service(db: Session = Depends(get_db)) -> ResourceService:
    """Dependency injection for ResourceService"""
    return ResourceService(db)


@router.get("", response_model=list[ResourceResponse])
async def list_resources(
    client_user_id: Optional[str] = None,
    current_user: User = Depends(get_active_user),
    service: ResourceService = Depends(get_resource_service),
):
    return service.list_resources(current_user, client_user_id)


@admin_router.post("/upload", response_model=ResourceResponse)
async def admin_upload_resource(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    client_user_id: Optional[str] = Form(None),
    external_url: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    admin: User = Depends(require_admin),
    service: ResourceService = Depends(get_resource_service),
):
    """Attach a file or an external link to a client's library"""
    return await service.upload_resource(
        admin, title, client_user_id, description, category, external_url, file
    )


@admin_router.delete("/{resource_id}")
async def admin_delete_resource(
    resource_id: int,
    _: User = Depends(require_admin),
    service: ResourceService = Depends(get_resource_service),
):
    return service.delete_resource(resource_id)
