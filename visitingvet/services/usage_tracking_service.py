"""
Service usage tracking
Records business events and one API_CALL row per request for analytics
"""

import logging
import time
from typing import Callable, Optional

from fastapi import Request
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..config import USAGE_TRACKING_ENABLED
from ..constants import USAGE_EVENT_TYPES
from ..database import SessionLocal
from ..models import ServiceUsageLog
from ..security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

SKIP_PATHS = ("/health", "/docs", "/openapi.json", "/redoc")


def log_usage(
    db: Session, event_type: str, user_id: Optional[int] = None, details: Optional[dict] = None
) -> None:
    """Best-effort usage event; never raises"""
    if event_type not in USAGE_EVENT_TYPES:
        details = {**(details or {}), "original_event_type": event_type}
        event_type = "OTHER"
    try:
        db.add(ServiceUsageLog(event_type=event_type, user_id=user_id, details=details))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to record usage event {event_type}: {e}")


def _user_id_from_request(request: Request) -> Optional[int]:
    auth_header = request.headers.get("Authorization", "")
    token = auth_header[7:] if auth_header.startswith("Bearer ") else request.cookies.get("jwt")
    if not token:
        return None
    payload = verify_jwt_token(token, expected_type="access")
    try:
        return int(payload["sub"]) if payload else None
    except (KeyError, TypeError, ValueError):
        return None


class UsageTrackingMiddleware(BaseHTTPMiddleware):
    """Logs an API_CALL usage event for every request in its own session"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not USAGE_TRACKING_ENABLED or request.url.path.startswith(SKIP_PATHS):
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        forwarded = request.headers.get("X-Forwarded-For")
        ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)

        db = SessionLocal()
        try:
            log_usage(
                db,
                "API_CALL",
                _user_id_from_request(request),
                {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "ip": ip,
                    "user_agent": request.headers.get("User-Agent"),
                },
            )
        finally:
            db.close()

        return response
