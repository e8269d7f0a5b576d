"""OAuth domain - Zoho authorization-code callback"""

from .router import router

__all__ = ["router"]
