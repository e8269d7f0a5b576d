"""Auth service - Onboarding, login and password reset business logic"""

import logging
from datetime import timedelta
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...auth import clear_expired_suspension
from ...email_service import (
    EmailNotConfiguredError,
    EmailSendError,
    send_email_verification_otp,
    send_password_reset_email,
)
from ...models import User, utcnow
from ...security_utils import (
    create_access_token,
    generate_otp,
    generate_reset_token,
    hash_code,
    hash_password,
    is_strong_password,
    verify_password,
)
from ...shared.validators import normalize_email
from ...utils.sanitization import sanitize_string
from ..users.repository import UserRepository
from .repository import OtpRepository
from .schemas import (
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyOtpRequest,
)

logger = logging.getLogger(__name__)

OTP_TTL = timedelta(hours=1)
RESET_TOKEN_TTL = timedelta(hours=1)
MAX_OTP_ATTEMPTS = 5
PASSWORD_RULE = "Password must be at least 8 chars and include upper, lower, number, and special."
RESET_GENERIC_MESSAGE = "If the email exists, a reset link has been sent."
PROFILE_FIELDS = ("full_name", "company_name", "phone", "address")

ADMIN_ENTRY_PREFIXES = ("/mgdashboard", "/login", "/register")


def profile_metadata(raw: Optional[dict[str, Any]]) -> dict[str, str]:
    """Profile fields from signup metadata; numbers become strings, other shapes are dropped"""
    metadata = {}
    for key, value in (raw or {}).items():
        if key not in PROFILE_FIELDS or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            value = str(value)
        if isinstance(value, str):
            metadata[key] = value
    return metadata


def resolve_landing_route(path: str, user: Optional[User]) -> Optional[str]:
    """
    Where the portal front end should send a visitor of `path`, or None to stay.

    Rules are evaluated in order: suspension, admin entry points, anonymous
    access to protected areas, /auth aliases, registered users on /register,
    and non-admins on /admin.
    """
    path = path or "/"
    is_admin = bool(user and user.is_admin)

    if user and user.suspended and not path.startswith("/suspended"):
        return "/suspended"
    if is_admin and (path == "/" or path.startswith(ADMIN_ENTRY_PREFIXES)):
        return "/admin"
    if not user and (path.startswith("/mgdashboard") or path.startswith("/admin")):
        return "/login"
    if path.startswith("/auth"):
        return "/register"
    if user and path.startswith("/register"):
        return "/mgdashboard"
    if user and path.startswith("/admin") and not is_admin:
        return "/mgdashboard"
    return None


class AuthService:
    """Service layer for authentication flows"""

    def __init__(self, db: Session):
        self.db = db
        self.otps = OtpRepository()
        self.users = UserRepository()

    # ------------------------------------------------------------------
    # Signup + OTP
    # ------------------------------------------------------------------

    async def signup(self, data: SignupRequest) -> dict:
        email = normalize_email(data.email)
        if not email or not data.password:
            raise HTTPException(status_code=400, detail="Missing email or password")
        if not is_strong_password(data.password):
            raise HTTPException(status_code=400, detail=PASSWORD_RULE)

        metadata = profile_metadata(data.metadata)

        user = self.users.get_by_email(self.db, email)
        if user and user.email_verified:
            raise HTTPException(status_code=400, detail="An account with this email already exists")

        if user:
            # Re-registration before verification replaces the pending password
            user = self.users.update_user(
                self.db, user, password_hash=hash_password(data.password)
            )
        else:
            user = self.users.create_user(
                self.db,
                email=email,
                password_hash=hash_password(data.password),
                email_verified=False,
                role="client",
            )
            logger.info(f"👤 Created unverified user {user.id}")

        self.otps.invalidate_pending(self.db, email, "signup")
        await self._issue_signup_otp(user, metadata)
        return {"ok": True}

    async def _issue_signup_otp(self, user: User, metadata: dict) -> None:
        code = generate_otp()
        otp = self.otps.create_otp(
            self.db,
            email=user.email,
            code_hash=hash_code(code),
            expires_at=utcnow() + OTP_TTL,
            purpose="signup",
            user_id=user.id,
            metadata=metadata or None,
        )

        try:
            await send_email_verification_otp(user.email, metadata.get("full_name"), code)
            logger.info(f"📧 Verification code sent to user {user.id}")
        except EmailNotConfiguredError:
            logger.warning("⚠️ Email not configured; verification code was not delivered")
        except EmailSendError as e:
            # Rollback so an undeliverable code cannot be redeemed later
            self.otps.delete_otp(self.db, otp)
            raise HTTPException(status_code=500, detail=f"Email send failed: {e}") from e

    def verify_otp(self, data: VerifyOtpRequest) -> dict:
        email = normalize_email(data.email)
        if not email or not data.code:
            raise HTTPException(status_code=400, detail="Missing email or code")

        pending = self.otps.get_latest_pending(self.db, email, "signup")
        if not pending:
            raise HTTPException(status_code=400, detail="No OTP pending for this email")

        if utcnow() > pending.expires_at:
            self.otps.update_otp(self.db, pending, used=True)
            raise HTTPException(status_code=400, detail="OTP expired")

        if pending.attempts >= MAX_OTP_ATTEMPTS:
            self.otps.update_otp(self.db, pending, used=True)
            raise HTTPException(status_code=400, detail="Too many attempts, request a new code")

        if hash_code(data.code) != pending.code_hash:
            self.otps.update_otp(self.db, pending, attempts=pending.attempts + 1)
            raise HTTPException(status_code=400, detail="Invalid code")

        self.otps.update_otp(self.db, pending, used=True, attempts=pending.attempts + 1)

        user = None
        if pending.user_id:
            user = self.users.get_by_id(self.db, pending.user_id)
        if not user:
            user = self.users.get_by_email(self.db, email)
        if not user:
            raise HTTPException(status_code=400, detail="Cannot resolve user for this code")

        profile = {
            key: sanitize_string(value)
            for key, value in profile_metadata(pending.otp_metadata).items()
        }
        self.users.update_user(self.db, user, email_verified=True, **profile)
        logger.info(f"✅ Email verified for user {user.id}")
        return {"ok": True}

    async def resend_otp(self, data: EmailRequest) -> dict:
        email = normalize_email(data.email)
        if not email:
            raise HTTPException(status_code=400, detail="Missing email")

        user = self.users.get_by_email(self.db, email)
        if user and not user.email_verified:
            previous = self.otps.get_latest_pending(self.db, email, "signup")
            metadata = (previous.otp_metadata if previous else None) or {}
            self.otps.invalidate_pending(self.db, email, "signup")
            await self._issue_signup_otp(user, metadata)
        return {"ok": True, "message": "If a pending signup exists, a new code has been sent."}

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, data: LoginRequest) -> dict:
        email = normalize_email(data.email)
        if not email or not data.password:
            raise HTTPException(status_code=400, detail="Email and password are required")

        user = self.users.get_by_email(self.db, email)
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning("🚫 Failed login attempt")
            raise HTTPException(status_code=401, detail="Invalid login credentials")

        if not user.email_verified:
            raise HTTPException(status_code=403, detail="Email not confirmed")

        user = clear_expired_suspension(self.db, user)
        if user.suspended:
            raise HTTPException(status_code=403, detail="Account suspended")

        token = create_access_token(user.id, user.role)
        logger.info(f"✅ User {user.id} logged in")
        return {"access_token": token, "token_type": "bearer", "user": user}

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def forgot_password(self, data: EmailRequest) -> dict:
        email = normalize_email(data.email)
        if not email:
            raise HTTPException(status_code=400, detail="Missing email")

        user = self.users.get_by_email(self.db, email)
        if not user:
            return {"message": RESET_GENERIC_MESSAGE}

        token = generate_reset_token()
        self.otps.create_otp(
            self.db,
            email=email,
            code_hash=hash_code(token),
            expires_at=utcnow() + RESET_TOKEN_TTL,
            purpose="password_reset",
            user_id=user.id,
            metadata={"purpose": "password_reset"},
        )

        reset_url = f"{config.FRONTEND_URL.rstrip('/')}/register/forgotpassword?{urlencode({'token': token})}"
        try:
            await send_password_reset_email(email, reset_url)
        except (EmailNotConfiguredError, EmailSendError) as e:
            # The response stays generic either way
            logger.error(f"❌ Password reset email not sent for user {user.id}: {e}")

        return {"message": RESET_GENERIC_MESSAGE}

    def reset_password(self, data: ResetPasswordRequest) -> dict:
        token = (data.token or "").strip()
        new_password = (data.newPassword or "").strip()
        if not token or not new_password:
            raise HTTPException(status_code=400, detail="Missing token or newPassword")
        if not is_strong_password(new_password):
            raise HTTPException(status_code=400, detail=PASSWORD_RULE)

        record = self.otps.get_pending_by_hash(self.db, hash_code(token), "password_reset")
        if not record:
            raise HTTPException(status_code=400, detail="Invalid or already used reset token")

        if utcnow() > record.expires_at:
            self.otps.update_otp(self.db, record, used=True)
            raise HTTPException(status_code=400, detail="Reset token expired")

        user = self.users.get_by_id(self.db, record.user_id) if record.user_id else None
        if not user:
            user = self.users.get_by_email(self.db, record.email)
        if not user:
            raise HTTPException(status_code=400, detail="Cannot resolve user for reset")

        self.users.update_user(self.db, user, password_hash=hash_password(new_password))
        self.otps.update_otp(self.db, record, used=True, attempts=record.attempts + 1)
        logger.info(f"🔑 Password reset for user {user.id}")
        return {"message": "Password has been reset successfully."}
