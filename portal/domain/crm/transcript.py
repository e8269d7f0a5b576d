"""Lead details pulled out of a call transcript"""

import re
from typing import Any, Optional

NAME_PATTERN = re.compile(r"(?:name[:\s]*is|my name is|this is)\s*([a-zA-Z\s]+)", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
COMPANY_PATTERN = re.compile(
    r"(?:company|organization|business)[:\s]*(?:is|called)?\s*([a-zA-Z0-9 &]+)", re.IGNORECASE
)
LOCATION_PATTERN = re.compile(
    r"(?:location|based in|city)[:\s]*(?:is|at)?\s*([a-zA-Z0-9, ]+)", re.IGNORECASE
)
INDUSTRY_PATTERN = re.compile(
    r"(?:industry|sector)[:\s]*(?:is|in)?\s*([a-zA-Z0-9 &]+)", re.IGNORECASE
)

FIELD_PATTERNS = (
    ("name", NAME_PATTERN),
    ("email", EMAIL_PATTERN),
    ("company", COMPANY_PATTERN),
    ("location", LOCATION_PATTERN),
    ("industry", INDUSTRY_PATTERN),
)


def extract_final_details(entries: Any) -> dict[str, Optional[str]]:
    """
    Scan transcript entries newest first and keep the first match per field.

    Later statements win, so a caller who corrects their email keeps the
    corrected one.
    """
    result: dict[str, Optional[str]] = {field: None for field, _ in FIELD_PATTERNS}
    if not isinstance(entries, list):
        return result

    for entry in reversed(entries):
        text = (entry.get("content") if isinstance(entry, dict) else None) or ""
        for field, pattern in FIELD_PATTERNS:
            if result[field]:
                continue
            match = pattern.search(text)
            if match:
                value = match.group(1).strip()
                result[field] = value.lower() if field == "email" else value
    return result


def transcript_entries(call: dict[str, Any]) -> list:
    analysis = call.get("call_analysis") or {}
    for candidate in (
        call.get("transcript_object"),
        call.get("conversation"),
        analysis.get("conversation"),
        analysis.get("messages"),
    ):
        if isinstance(candidate, list) and candidate:
            return candidate
    return []


def transcript_text(body: dict[str, Any], call: dict[str, Any], entries: list) -> str:
    if isinstance(body.get("transcript"), str) and body["transcript"]:
        return body["transcript"]
    if isinstance(call.get("transcript"), str) and call["transcript"]:
        return call["transcript"]
    return "\n".join((e.get("content") or "") for e in entries if isinstance(e, dict))
