"""
Security Utilities
Password hashing, session tokens and one-time code helpers
"""

import hashlib
import logging
import re
import secrets
from datetime import timedelta
from typing import Any, Optional

from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY
from .models import utcnow

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
OTP_LENGTH = 6

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify password against bcrypt hash"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def is_strong_password(password: str) -> bool:
    """At least 8 chars with upper, lower, number and one of !@#$%^&*"""
    return (
        len(password) >= 8
        and re.search(r"[A-Z]", password) is not None
        and re.search(r"[a-z]", password) is not None
        and re.search(r"[0-9]", password) is not None
        and re.search(r"[!@#$%^&*]", password) is not None
    )


# ============================================================================
# ONE-TIME CODES
# ============================================================================


def hash_code(code: str) -> str:
    """sha256 hex digest used to store OTP codes and reset tokens"""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def generate_otp() -> str:
    """Generate a 6-digit numeric code"""
    return "".join(secrets.choice("0123456789") for _ in range(OTP_LENGTH))


def generate_reset_token() -> str:
    return secrets.token_hex(24)


# ============================================================================
# SESSION TOKENS
# ============================================================================


def create_access_token(
    subject: str, role: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed session JWT

    Args:
        subject: User id stored in the "sub" claim
        role: User role, informational for clients
        expires_delta: Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": subject, "role": role, "exp": expire}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a session JWT

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None
