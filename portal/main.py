import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

# Import all models so every table and relationship is registered with Base
from . import (
    models,  # noqa: F401
    models_contract,  # noqa: F401
    models_files,  # noqa: F401
    models_invoice,  # noqa: F401
    models_messaging,  # noqa: F401
    models_project,  # noqa: F401
    models_quickbooks,  # noqa: F401
    models_service,  # noqa: F401
    models_staff,  # noqa: F401
    models_ticket,  # noqa: F401
    models_webhooks,  # noqa: F401
)
from .config import ALLOWED_ORIGINS, ENVIRONMENT, SECURITY_HEADERS_ENABLED
from .database import Base, engine
from .domain.ai.router import router as ai_router
from .domain.audit.router import router as audit_router
from .domain.contracts.router import router as contracts_router
from .domain.cron.router import router as cron_router
from .domain.files.router import router as files_router
from .domain.integrations.calendar.router import router as calendar_router
from .domain.integrations.quickbooks.router import router as quickbooks_router
from .domain.integrations.zapier.router import router as zapier_router
from .domain.invoices.router import router as invoices_router
from .domain.invoices.stripe_webhook import router as stripe_webhook_router
from .domain.messaging.router import router as messaging_router
from .domain.notifications.router import router as notifications_router
from .domain.organizations.router import router as organizations_router
from .domain.plans.router import router as plans_router
from .domain.projects.router import router as projects_router
from .domain.reports.router import router as reports_router
from .domain.service_catalog.router import requests_router as service_requests_router
from .domain.service_catalog.router import router as service_catalog_router
from .domain.tickets.router import router as tickets_router
from .domain.users.router import router as users_router
from .domain.workload.router import router as workload_router
from .rate_limiter import get_redis_client
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


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Agency portal starting ({ENVIRONMENT})")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info(f"✅ Schema ready: {len(Base.metadata.tables)} tables")
    except Exception as e:
        # Concurrent workers race on CREATE TABLE
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Schema already created by another worker")
        else:
            logger.error(f"❌ Schema creation failed: {e}")

    if get_redis_client() is None:
        logger.info("REDIS_URL not set - rate limits are per process")

    yield
    logger.info("👋 Agency portal shutting down")


app = FastAPI(title="Agency Portal API", version="1.0.0", lifespan=lifespan)


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
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    duration_ms = (time.time() - start) * 1000
    if response.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)")
    return response


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("🔒 Security headers enabled")
else:
    logger.warning("⚠️ Security headers disabled")

logger.info(f"🌐 CORS origins: {ALLOWED_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Routes
app.include_router(users_router)
app.include_router(organizations_router)
app.include_router(tickets_router)
app.include_router(notifications_router)
app.include_router(invoices_router)
app.include_router(stripe_webhook_router)
app.include_router(plans_router)
app.include_router(contracts_router)
app.include_router(files_router)
app.include_router(messaging_router)
app.include_router(workload_router)
app.include_router(ai_router)
app.include_router(projects_router)
app.include_router(service_catalog_router)
app.include_router(service_requests_router)
app.include_router(zapier_router)
app.include_router(quickbooks_router)
app.include_router(calendar_router)
app.include_router(audit_router)
app.include_router(reports_router)
app.include_router(cron_router)


@app.get("/")
def root():
    return {"message": "Agency Portal API is running"}


@app.get("/health")
def health():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error(f"❌ Health check database ping failed: {e}")
        database = "unavailable"
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "rate_limit_backend": "redis" if get_redis_client() else "memory",
    }
