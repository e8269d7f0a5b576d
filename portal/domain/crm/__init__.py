"""CRM domain - Voice-call lead capture into Zoho CRM"""

from .router import router

__all__ = ["router"]
