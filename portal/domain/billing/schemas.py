"""Billing domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel


class CustomerInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class SubscribeRequest(BaseModel):
    planCode: Optional[str] = None
    customer: Optional[CustomerInfo] = None


class SubscribeResponse(BaseModel):
    url: str
