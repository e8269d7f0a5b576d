"""Auth domain - Signup with email OTP, login, password reset"""

from .router import router

__all__ = ["router"]
