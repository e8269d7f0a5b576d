"""Auth router - Signup, OTP verification, login, password reset"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ..users.schemas import UserResponse
from .schemas import (
    EmailRequest,
    LandingResponse,
    LoginRequest,
    LoginResponse,
    ResetPasswordRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from .service import AuthService, resolve_landing_route

router = APIRouter(prefix="/auth", tags=["Auth"])

rate_limit_signup = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="signup")
rate_limit_verify = create_rate_limiter(limit=10, window_seconds=600, key_prefix="verify_otp")
rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")
rate_limit_reset = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="password_reset")


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    """Dependency injection for AuthService"""
    return AuthService(db)


@router.post("/signup")
async def signup(
    data: SignupRequest,
    service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_signup),
):
    """Create an unverified account and email a 6-digit verification code"""
    return await service.signup(data)


@router.post("/verify-otp")
async def verify_otp(
    data: VerifyOtpRequest,
    service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_verify),
):
    return service.verify_otp(data)


@router.post("/resend-otp")
async def resend_otp(
    data: EmailRequest,
    service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_signup),
):
    return await service.resend_otp(data)


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_login),
):
    return service.login(data)


@router.post("/forgot-password")
async def forgot_password(
    data: EmailRequest,
    service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_reset),
):
    """Always answers with the same message to avoid email enumeration"""
    return await service.forgot_password(data)


@router.post("/reset-password")
async def reset_password(
    data: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
    _: None = Depends(rate_limit_reset),
):
    return service.reset_password(data)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/landing", response_model=LandingResponse)
async def landing(
    path: str = Query("/", description="Front-end path being visited"),
    current_user: Optional[User] = Depends(get_optional_user),
):
    return LandingResponse(redirect=resolve_landing_route(path, current_user))
