"""Document domain schemas"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class DocumentResponse(BaseModel):
    id: int
    user_id: str
    file_name: str
    file_path: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminDocumentResponse(DocumentResponse):
    owner_email: Optional[str] = None
    owner_name: Optional[str] = None


class DocumentStatusUpdate(BaseModel):
    status: Literal["submitted", "reviewed"]


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int
