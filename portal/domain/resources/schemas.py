"""Resource domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ResourceResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    category: str
    url: str
    storage_key: Optional[str] = None
    client_user_id: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
