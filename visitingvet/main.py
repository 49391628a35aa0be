import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401 - registers tables on Base
from .config import ALLOWED_ORIGINS, ENVIRONMENT
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.service_requests.router import router as service_requests_router
from .domain.verification.router import admin_router as admin_verification_router
from .domain.verification.router import router as verification_router
from .rate_limiter import get_redis_client
from .routes.admin import router as admin_router
from .routes.analytics import router as analytics_router
from .routes.auth import router as auth_router
from .routes.availability import router as availability_router
from .routes.clinics import router as clinics_router
from .routes.notifications import router as notifications_router
from .routes.pets import router as pets_router
from .routes.profiles import router as profiles_router
from .routes.profiles import services_router
from .routes.reviews import router as reviews_router
from .routes.settings import router as settings_router
from .routes.users import router as users_router
from .security_headers import SecurityHeadersMiddleware
from .services.usage_tracking_service import UsageTrackingMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

for noisy in ("httpx", "httpcore", "botocore", "boto3"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"

ROUTERS = (
    auth_router,
    users_router,
    profiles_router,
    services_router,
    pets_router,
    availability_router,
    appointments_router,
    service_requests_router,
    clinics_router,
    verification_router,
    admin_verification_router,
    admin_router,
    reviews_router,
    notifications_router,
    settings_router,
    analytics_router,
)


def _create_tables() -> None:
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Database tables ready")
    except SQLAlchemyError as e:
        # Concurrent workers race on CREATE TABLE; the loser sees a duplicate error
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Database tables were created by another worker")
        else:
            logger.error(f"❌ Failed to create database tables: {e}")


def _check_redis() -> None:
    try:
        get_redis_client()
    except Exception as e:
        logger.warning(f"⚠️ Redis unreachable, rate limits are per process until it returns: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🐾 VisitingVet API starting ({ENVIRONMENT})")
    _create_tables()
    _check_redis()
    yield
    logger.info("VisitingVet API shutting down")


app = FastAPI(title="VisitingVet API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """A malformed Authorization header is an auth failure, not a body validation error"""
    errors = exc.errors()
    if any("authorization" in str(err.get("loc", "")).lower() for err in errors):
        logger.warning(f"Rejected {request.url.path}: malformed Authorization header")
        return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

    logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})


app.add_middleware(UsageTrackingMiddleware)

if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
else:
    logger.warning("Security headers DISABLED - only use in development!")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Session-Expired", "Retry-After", "Content-Disposition"],
)
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

for router in ROUTERS:
    app.include_router(router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
