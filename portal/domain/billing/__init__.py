"""Billing domain - Zoho Billing hosted checkout handoff"""

from .router import router

__all__ = ["router"]
