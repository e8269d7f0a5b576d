import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import config, models  # noqa: F401
from .database import Base, engine
from .domain.auth import router as auth_router
from .domain.billing import router as billing_router
from .domain.contracts import admin_router as admin_contracts_router
from .domain.contracts import router as contracts_router
from .domain.contracts import webhooks_router as zoho_sign_webhooks_router
from .domain.crm import router as crm_router
from .domain.documents import admin_router as admin_documents_router
from .domain.documents import router as documents_router
from .domain.oauth import router as oauth_router
from .domain.resources import admin_router as admin_resources_router
from .domain.resources import router as resources_router
from .domain.scheduling import calendly_router
from .domain.scheduling import router as appointments_router
from .domain.support import admin_router as admin_support_router
from .domain.support import router as support_router
from .domain.users import admin_router as admin_users_router
from .domain.users import router as users_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    if not config.RATE_LIMIT_ENABLED:
        logger.warning("Rate limiting DISABLED - only use in development!")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="MG Consulting Client Portal API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw input/context objects (may hold bytes or exceptions)"""
    return [
        {key: value for key, value in error.items() if key not in ("input", "ctx", "url")}
        for error in exc.errors()
    ]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


if config.SECURITY_HEADERS_ENABLED:
    app.add_middleware(
        SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"]
    )
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")


# CORS Configuration
ALLOWED_ORIGINS = [origin.strip() for origin in config.ALLOWED_ORIGINS.split(",") if origin.strip()]
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(admin_users_router)
app.include_router(documents_router)
app.include_router(admin_documents_router)
app.include_router(contracts_router)
app.include_router(admin_contracts_router)
app.include_router(zoho_sign_webhooks_router)
app.include_router(appointments_router)
app.include_router(calendly_router)
app.include_router(support_router)
app.include_router(admin_support_router)
app.include_router(resources_router)
app.include_router(admin_resources_router)
app.include_router(billing_router)
app.include_router(oauth_router)
app.include_router(crm_router)


@app.get("/")
def root():
    return {"message": "MG Consulting Client Portal API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
