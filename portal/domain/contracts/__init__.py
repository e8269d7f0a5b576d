"""Contracts domain - E-signature lifecycle over Zoho Sign"""

from .router import admin_router, router, webhooks_router

__all__ = ["router", "admin_router", "webhooks_router"]
