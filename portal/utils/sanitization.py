import html
import re
from typing import Optional

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(value.strip(), quote=True)


def safe_filename(name: Optional[str], default: str = "file") -> str:
    """Replace every character outside [a-zA-Z0-9._-] with an underscore"""
    name = (name or "").strip()
    if not name:
        return default
    return UNSAFE_FILENAME_CHARS.sub("_", name)
