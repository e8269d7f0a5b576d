"""Auth domain schemas - Pydantic models for validation

Fields are optional so that missing values produce the portal's 400 messages
instead of a generic validation error.
"""

from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ..users.schemas import UserResponse


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class VerifyOtpRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v):
        # Clients sometimes send the code as a number
        return str(v).strip() if v is not None else v


class EmailRequest(BaseModel):
    email: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    newPassword: Optional[str] = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class LandingResponse(BaseModel):
    redirect: Optional[str] = None
