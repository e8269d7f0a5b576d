"""
Object storage on Cloudflare R2 (or any S3-compatible endpoint)

Buckets: client documents, contract originals, signed contracts, resources.
Objects are private; access is granted through presigned GET URLs.
"""

import logging
import re
from typing import Optional
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from . import config

logger = logging.getLogger(__name__)

# Legacy Supabase-style object URLs: /object/public/<bucket>/<path> or /object/sign/<bucket>/<path>
OBJECT_URL_PATTERN = re.compile(r"/object/(?:public|sign)/([^/]+)/(.+)$")


class StorageError(Exception):
    """Raised when an object storage operation fails"""


def get_storage_client():
    """Create and return an S3 client for the configured endpoint."""
    return boto3.client(
        "s3",
        endpoint_url=config.STORAGE_ENDPOINT_URL,
        aws_access_key_id=config.R2_ACCESS_KEY_ID,
        aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def upload_bytes(bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> str:
    """Upload an object, overwriting any existing one. Returns the key."""
    extra = {"ContentType": content_type} if content_type else {}
    try:
        get_storage_client().put_object(Bucket=bucket, Key=key, Body=data, **extra)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Upload failed for {bucket}/{key}: {e}")
        raise StorageError(f"Failed to upload {key}") from e
    logger.info(f"✅ Uploaded {bucket}/{key} ({len(data)} bytes)")
    return key


def download_bytes(bucket: str, key: str) -> bytes:
    try:
        response = get_storage_client().get_object(Bucket=bucket, Key=key)
        return response["Body"].read()
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Download failed for {bucket}/{key}: {e}")
        raise StorageError(f"Failed to read {key}") from e


def remove(bucket: str, keys: list[str]) -> None:
    keys = [k for k in keys if k]
    if not keys:
        return
    try:
        get_storage_client().delete_objects(
            Bucket=bucket, Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True}
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Delete failed for {bucket} keys={keys}: {e}")
        raise StorageError("Failed to delete objects") from e
    logger.info(f"🗑️ Removed {len(keys)} object(s) from {bucket}")


def remove_quietly(bucket: str, keys: list[str]) -> bool:
    """Best-effort removal used by cleanup paths. Returns False on failure."""
    try:
        remove(bucket, keys)
        return True
    except StorageError as e:
        logger.warning(f"⚠️ Storage cleanup skipped: {e}")
        return False


def presigned_url(bucket: str, key: str, expires: int = 3600) -> str:
    """Generate a presigned GET URL for a private object."""
    params = {"Bucket": bucket, "Key": key}
    if key.lower().endswith(".pdf") or key.lower().endswith(".png"):
        params["ResponseContentDisposition"] = "inline"
    try:
        return get_storage_client().generate_presigned_url(
            "get_object", Params=params, ExpiresIn=expires
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"❌ Failed to generate presigned URL for {bucket}/{key}: {e}")
        raise StorageError(f"Failed to sign URL for {key}") from e


def public_url(bucket: str, key: str) -> str:
    base = (config.STORAGE_PUBLIC_BASE_URL or config.STORAGE_ENDPOINT_URL or "").rstrip("/")
    return f"{base}/{bucket}/{key}"


def parse_storage_url(url: Optional[str]) -> Optional[tuple[str, str]]:
    """
    Recover (bucket, key) from a stored object URL.

    Understands /object/(public|sign)/<bucket>/<path> URLs and URLs built by
    public_url(). Query strings (signatures) are ignored.
    """
    if not url:
        return None
    path = unquote(urlparse(url).path)

    match = OBJECT_URL_PATTERN.search(path)
    if match:
        return match.group(1), match.group(2)

    base = (config.STORAGE_PUBLIC_BASE_URL or config.STORAGE_ENDPOINT_URL or "").rstrip("/")
    if base and url.startswith(base + "/"):
        remainder = unquote(url[len(base) + 1 :].split("?", 1)[0])
        if "/" in remainder:
            bucket, key = remainder.split("/", 1)
            return bucket, key
    return None
