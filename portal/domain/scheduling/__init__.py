"""Scheduling domain - Appointments, slot helpers and Calendly sync"""

from .router import calendly_router, router

__all__ = ["router", "calendly_router"]
