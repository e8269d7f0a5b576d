"""Contract domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ContractResponse(BaseModel):
    id: str
    client_user_id: str
    title: str
    file_url: Optional[str] = None
    status: str
    zoho_request_id: Optional[str] = None
    zoho_sign_url: Optional[str] = None
    signed_file_url: Optional[str] = None
    signed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminContractResponse(ContractResponse):
    client_email: Optional[str] = None
    client_name: Optional[str] = None
    zoho_document_id: Optional[str] = None
    signature_image_url: Optional[str] = None


class ManualSignatureRequest(BaseModel):
    signature: Optional[str] = None  # data:image/png;base64,...


class ContractStatusResponse(BaseModel):
    status: str
    provider_status: Optional[str] = None


class ContractUrlResponse(BaseModel):
    url: str
    expires_in: Optional[int] = None
