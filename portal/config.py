import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./portal.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

# Public URLs
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
SITE_URL = os.getenv("SITE_URL")
# Origin whitelisted in Zoho Sign "Allowed Domains" for embedded signing
SIGN_EMBED_HOST = os.getenv("SIGN_EMBED_HOST")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", FRONTEND_URL)

# Object storage (Cloudflare R2 or any S3-compatible endpoint)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
STORAGE_ENDPOINT_URL = os.getenv(
    "STORAGE_ENDPOINT_URL",
    f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com" if R2_ACCOUNT_ID else None,
)
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
STORAGE_PUBLIC_BASE_URL = os.getenv("STORAGE_PUBLIC_BASE_URL")
DOCUMENTS_BUCKET = os.getenv("DOCUMENTS_BUCKET", "client-documents")
CONTRACTS_BUCKET = os.getenv("CONTRACTS_BUCKET", "contracts")
SIGNED_CONTRACTS_BUCKET = os.getenv("SIGNED_CONTRACTS_BUCKET", "contracts-signed")
RESOURCES_BUCKET = os.getenv("RESOURCES_BUCKET", "resources")
RESOURCES_BUCKET_PUBLIC = os.getenv("RESOURCES_BUCKET_PUBLIC", "false").lower() == "true"

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "MG Consulting <noreply@mgconsulting.com>")
SUPPORT_TO_EMAIL = os.getenv("SUPPORT_TO_EMAIL")

# Zoho (Sign, Billing, CRM, Campaigns share one OAuth client)
ZOHO_REGION = os.getenv("ZOHO_REGION", "com")  # com, eu, in, com.au
ZOHO_CLIENT_ID = os.getenv("ZOHO_CLIENT_ID")
ZOHO_CLIENT_SECRET = os.getenv("ZOHO_CLIENT_SECRET")
ZOHO_REFRESH_TOKEN = os.getenv("ZOHO_REFRESH_TOKEN")
ZOHO_REDIRECT_URI = os.getenv("ZOHO_REDIRECT_URI", "http://localhost:8000/oauth/callback")
ZOHO_SIGN_WEBHOOK_SECRET = os.getenv("ZOHO_SIGN_WEBHOOK_SECRET")
ZOHO_ORG_ID = os.getenv("ZOHO_ORG_ID")
ZOHO_BILLING_WEBHOOK_SECRET = os.getenv("ZOHO_BILLING_WEBHOOK_SECRET")
ZOHO_CAMPAIGNS_AUTH_TOKEN = os.getenv("ZOHO_CAMPAIGNS_AUTH_TOKEN")
ZOHO_CAMPAIGNS_LIST_KEY = os.getenv("ZOHO_CAMPAIGNS_LIST_KEY")
RETELL_CALL_FIELD_API_NAME = os.getenv("RETELL_CALL_FIELD_API_NAME", "Retell_Call_ID")

# Calendly
CALENDLY_API_TOKEN = os.getenv("CALENDLY_API_TOKEN")
CALENDLY_WEBHOOK_SIGNING_KEY = os.getenv("CALENDLY_WEBHOOK_SIGNING_KEY")

# Rate limiting is enabled by default; set to false for local development without Redis
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Response hardening
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"

# Database pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))
