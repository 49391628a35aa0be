import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import (
    ACCESS_COOKIE_NAME,
    ADMIN_SESSION_TIMEOUT_MINUTES,
    DEFAULT_SESSION_TIMEOUT_MINUTES,
)
from .constants import ADMIN_PERMISSIONS, ROLE_ADMIN
from .database import get_db
from .models import User
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

# auto_error=False so the session cookie can be used when no header is sent
security = HTTPBearer(auto_error=False)


def session_timeout_for(user: User) -> int:
    if user.session_timeout_minutes:
        return user.session_timeout_minutes
    if user.role == ROLE_ADMIN:
        return ADMIN_SESSION_TIMEOUT_MINUTES
    return DEFAULT_SESSION_TIMEOUT_MINUTES


def is_session_expired(user: User, now: Optional[datetime] = None) -> bool:
    """True when the user has been inactive longer than their session timeout"""
    if not user.last_activity:
        return False
    now = now or datetime.utcnow()
    return now - user.last_activity > timedelta(minutes=session_timeout_for(user))


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the Bearer token or the session cookie"""
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_COOKIE_NAME)

    if not token:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    payload = verify_jwt_token(token, expected_type="access")
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token claims") from e

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.warning(f"⚠️ Token for unknown user id {user_id}")
        raise HTTPException(status_code=401, detail="User no longer exists")

    if user.is_banned:
        logger.warning(f"⚠️ Banned user {user.email} attempted access")
        raise HTTPException(status_code=403, detail=f"Account banned: {user.ban_reason}")

    now = datetime.utcnow()
    if is_session_expired(user, now):
        logger.info(f"ℹ️ Session expired due to inactivity for {user.email}")
        raise HTTPException(
            status_code=401,
            detail="Session expired due to inactivity. Please log in again.",
            headers={"X-Session-Expired": "true"},
        )

    user.last_activity = now
    db.commit()

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


def require_roles(*roles: str):
    """Dependency factory that allows only the given roles"""

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            logger.warning(
                f"⚠️ User {current_user.email} ({current_user.role}) denied, requires {roles}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"User role {current_user.role} is not authorized to access this route",
            )
        return current_user

    return role_checker


def get_admin_permissions(user: User) -> set[str]:
    if user.role != ROLE_ADMIN:
        return set()
    if user.admin_permissions is None:
        return set(ADMIN_PERMISSIONS)
    return set(user.admin_permissions)


def require_permission(permission: str):
    """Dependency factory for admin routes guarded by a named permission"""

    async def permission_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role != ROLE_ADMIN:
            raise HTTPException(status_code=403, detail="Admin access required")
        if permission not in get_admin_permissions(current_user):
            logger.warning(f"⚠️ Admin {current_user.email} lacks permission {permission}")
            raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
        return current_user

    return permission_checker


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
