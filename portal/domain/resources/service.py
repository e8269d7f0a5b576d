"""Resource service - Admin-managed files and links shared with clients"""

import logging
import time
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.orm import Session

from ... import config, storage
from ...models import Resource, User
from ...utils.sanitization import safe_filename
from ..users.repository import UserRepository
from .repository import ResourceRepository

logger = logging.getLogger(__name__)

STORED_URL_TTL_SECONDS = 7 * 24 * 60 * 60
LIST_URL_TTL_SECONDS = 60 * 60


class ResourceService:
    """Service layer for the resource library"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ResourceRepository()
        self.users = UserRepository()

    def _object_url(self, key: str, ttl: int) -> str:
        if config.RESOURCES_BUCKET_PUBLIC:
            return storage.public_url(config.RESOURCES_BUCKET, key)
        return storage.presigned_url(config.RESOURCES_BUCKET, key, ttl)

    async def upload_resource(
        self,
        admin: User,
        title: Optional[str],
        client_user_id: Optional[str],
        description: Optional[str] = None,
        category: Optional[str] = None,
        external_url: Optional[str] = None,
        file: Optional[UploadFile] = None,
    ) -> Resource:
        title = (title or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title is required")
        if not client_user_id:
            raise HTTPException(status_code=400, detail="client_user_id is required")
        external_url = (external_url or "").strip()
        has_file = file is not None and bool(file.filename)
        if not external_url and not has_file:
            raise HTTPException(status_code=400, detail="Provide a file or an external_url")
        if not self.users.get_by_id(self.db, client_user_id):
            raise HTTPException(status_code=404, detail="Client not found")

        storage_key = None
        url = external_url
        if has_file:
            content = await file.read()
            storage_key = f"{client_user_id}/{int(time.time() * 1000)}_{safe_filename(file.filename)}"
            try:
                storage.upload_bytes(config.RESOURCES_BUCKET, storage_key, content, file.content_type)
                url = self._object_url(storage_key, STORED_URL_TTL_SECONDS)
            except storage.StorageError as e:
                raise HTTPException(status_code=502, detail="Failed to store resource") from e

        resource = self.repo.create_resource(
            self.db,
            title=title,
            description=(description or "").strip() or None,
            category=(category or "").strip() or "document",
            url=url,
            storage_key=storage_key,
            client_user_id=client_user_id,
            created_by=admin.id,
        )
        logger.info(f"📚 Resource {resource.id} added for client {client_user_id}")
        return resource

    def list_resources(self, user: User, client_user_id: Optional[str] = None) -> list[dict]:
        """Clients see their own resources; admins see all, optionally filtered"""
        owner = (client_user_id or None) if user.is_admin else user.id
        items = []
        for resource in self.repo.list_resources(self.db, owner):
            data = {c.name: getattr(resource, c.name) for c in Resource.__table__.columns}
            if resource.storage_key:
                try:
                    data["url"] = self._object_url(resource.storage_key, LIST_URL_TTL_SECONDS)
                except storage.StorageError:
                    logger.warning(f"⚠️ Could not refresh URL for resource {resource.id}")
            items.append(data)
        return items

    def delete_resource(self, resource_id: int) -> dict:
        resource = self.repo.get_resource(self.db, resource_id)
        if not resource:
            raise HTTPException(status_code=404, detail="Resource not found")

        if resource.storage_key:
            storage.remove_quietly(config.RESOURCES_BUCKET, [resource.storage_key])
        else:
            parsed = storage.parse_storage_url(resource.url)
            if parsed:
                bucket, key = parsed
                storage.remove_quietly(bucket, [key])

        self.repo.delete_resource(self.db, resource)
        logger.info(f"🗑️ Resource {resource_id} deleted")
        return {"ok": True}
