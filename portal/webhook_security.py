"""
Webhook Security Module

Shared-secret signature verification for inbound vendor webhooks:
- Constant-time signature comparison
- Timestamp validation for providers that sign one
- Verification skipped (with a warning) when no secret is configured
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """
    Verify webhook timestamp is within acceptable range.

    Args:
        timestamp: Unix timestamp as string
        max_age: Maximum age in seconds

    Returns:
        True if timestamp is valid, False otherwise
    """
    if not timestamp:
        return True  # Timestamp is optional for some providers

    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def verify_hex_signature(secret: str, payload: bytes, provided: Optional[str]) -> bool:
    """Check a hex HMAC-SHA256 signature, tolerating a "sha256=" prefix"""
    if not provided:
        return False
    provided = provided.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]
    return constant_time_compare(compute_hmac_sha256(secret, payload), provided.lower())


async def verify_hmac_webhook(
    request: Request,
    secret: Optional[str],
    header_names: tuple[str, ...],
    source: str,
    raise_on_failure: bool = True,
) -> tuple[bool, bytes]:
    """
    Verify a webhook signed as hex HMAC-SHA256 of the raw body.

    Args:
        request: FastAPI request object
        secret: Shared secret; verification is skipped when empty
        header_names: Headers to read the signature from, first match wins
        source: Provider label for logs
        raise_on_failure: If True, raises HTTPException(401) on failure

    Returns:
        Tuple of (is_valid, raw_body)
    """
    raw_body = await request.body()
    logger.info(f"📥 {source} webhook received ({len(raw_body)} bytes)")

    if not secret:
        logger.warning(f"⚠️ No {source} webhook secret configured, skipping verification")
        return True, raw_body

    signature = next((request.headers.get(h) for h in header_names if request.headers.get(h)), None)
    if not signature:
        logger.error(f"❌ Missing {source} signature header")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Invalid signature")
        return False, raw_body

    if not verify_hex_signature(secret, raw_body, signature):
        logger.error(f"❌ Invalid {source} webhook signature")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Invalid signature")
        return False, raw_body

    logger.info(f"✅ {source} webhook signature verified")
    return True, raw_body


def parse_calendly_signature(header: str) -> tuple[Optional[str], Optional[str]]:
    """Split "t=<ts>,v1=<sig>" into (timestamp, signature)"""
    parts = dict(
        item.split("=", 1) for item in header.split(",") if "=" in item
    )
    return parts.get("t"), parts.get("v1")


async def verify_calendly_webhook(
    request: Request, signing_key: Optional[str], raise_on_failure: bool = True
) -> tuple[bool, bytes]:
    """
    Verify Calendly's Calendly-Webhook-Signature header.

    The signed message is "{t}.{raw_body}".
    """
    raw_body = await request.body()
    if not signing_key:
        logger.warning("⚠️ No Calendly signing key configured, skipping verification")
        return True, raw_body

    header = request.headers.get("Calendly-Webhook-Signature", "")
    timestamp, signature = parse_calendly_signature(header)
    if not timestamp or not signature:
        logger.error("❌ Missing or malformed Calendly signature header")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Invalid signature")
        return False, raw_body

    if not verify_timestamp(timestamp):
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Webhook timestamp expired")
        return False, raw_body

    expected = compute_hmac_sha256(signing_key, timestamp.encode("utf-8") + b"." + raw_body)
    if not constant_time_compare(expected, signature):
        logger.error("❌ Invalid Calendly webhook signature")
        if raise_on_failure:
            raise HTTPException(status_code=401, detail="Invalid signature")
        return False, raw_body

    return True, raw_body
