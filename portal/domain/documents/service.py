"""Document service - Upload, listing and access to client documents"""

import logging
import time
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ... import config, storage
from ...models import ClientDocument, User
from ...utils.sanitization import safe_filename
from .repository import DocumentRepository

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 25 * 1024 * 1024
SIGNED_URL_TTL_SECONDS = 300


class DocumentService:
    """Service layer for client documents"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DocumentRepository()

    async def upload_document(self, user: User, file: Optional[UploadFile]) -> ClientDocument:
        if file is None or not file.filename:
            raise HTTPException(status_code=400, detail="No file provided")

        content = await file.read()
        if not content:
            raise HTTPException(status_code=400, detail="File is empty")
        if len(content) > MAX_DOCUMENT_BYTES:
            raise HTTPException(status_code=400, detail="File exceeds 25MB size limit")

        name = safe_filename(file.filename)
        object_path = f"{user.id}/{int(time.time() * 1000)}_{name}"
        try:
            storage.upload_bytes(config.DOCUMENTS_BUCKET, object_path, content, file.content_type)
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to store document") from e

        try:
            document = self.repo.create_document(
                self.db,
                user_id=user.id,
                file_name=file.filename,
                file_path=object_path,
                file_size=len(content),
                mime_type=file.content_type,
                status="submitted",
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Document row insert failed, removing {object_path}: {e}")
            storage.remove_quietly(config.DOCUMENTS_BUCKET, [object_path])
            raise HTTPException(status_code=500, detail="Failed to save document") from e

        logger.info(f"📄 Document {document.id} uploaded by user {user.id}")
        return document

    def list_documents(self, user: User) -> list[ClientDocument]:
        return self.repo.list_for_user(self.db, user.id)

    def get_document(self, document_id: int) -> ClientDocument:
        document = self.repo.get_document(self.db, document_id)
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    def get_owned_document(self, document_id: int, user: User) -> ClientDocument:
        document = self.get_document(document_id)
        if document.user_id != user.id:
            # Same answer as a missing row so ids cannot be guessed
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    def delete_document(self, document: ClientDocument) -> dict:
        storage.remove_quietly(config.DOCUMENTS_BUCKET, [document.file_path])
        self.repo.delete_document(self.db, document)
        return {"ok": True}

    def get_signed_url(self, document_id: int, user: User) -> dict:
        document = self.get_document(document_id)
        if document.user_id != user.id and not user.is_admin:
            raise HTTPException(status_code=404, detail="Document not found")
        try:
            url = storage.presigned_url(
                config.DOCUMENTS_BUCKET, document.file_path, SIGNED_URL_TTL_SECONDS
            )
        except storage.StorageError as e:
            raise HTTPException(status_code=502, detail="Failed to create signed URL") from e
        return {"url": url, "expires_in": SIGNED_URL_TTL_SECONDS}

    def list_all_documents(self) -> list[dict]:
        return [
            {
                **{c.name: getattr(doc, c.name) for c in ClientDocument.__table__.columns},
                "owner_email": doc.user.email if doc.user else None,
                "owner_name": doc.user.full_name if doc.user else None,
            }
            for doc in self.repo.list_all(self.db)
        ]

    def update_status(self, document_id: int, status: str) -> ClientDocument:
        document = self.get_document(document_id)
        return self.repo.update_document(self.db, document, status=status)
