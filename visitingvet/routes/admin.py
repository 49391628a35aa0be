"""
Admin moderation routes
User management, bans, warnings, manual verification and audit log browsing
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..auth import require_permission
from ..constants import ADMIN_PERMISSIONS, ROLE_ADMIN, VERIFICATION_APPROVED
from ..database import get_db
from ..domain.verification.schemas import VerificationRequestResponse
from ..domain.verification.service import VerificationService
from ..email_service import EmailNotConfigured, send_account_banned_email
from ..models import AdminActionLog, DocumentAccessLog, User, UserActivityLog
from ..schemas import (
    AdminActionLogPage,
    AdminUserCreate,
    AdminUserList,
    BanRequest,
    BulkActionRequest,
    BulkActionResult,
    DocumentAccessLogPage,
    ProviderProfileResponse,
    UserActivityLogPage,
    UserResponse,
    WarnRequest,
    build_pagination,
)
from ..security_utils import check_password_strength, hash_password
from ..services.audit_service import log_admin_action
from ..services.notification_service import notify_user
from ..services.sla_tracking_service import calculate_sla_status
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

DEFAULT_BAN_REASON = "No reason provided"


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _paginate(query, page: int, limit: int, order_by) -> dict:
    total = query.count()
    items = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
    return {"items": items, "pagination": build_pagination(page, limit, total)}


# ----------------------------------------------------------------------------
# Moderation actions, shared by single and bulk endpoints
# ----------------------------------------------------------------------------


async def _ban(db: Session, user: User, admin: User, reason: Optional[str]) -> None:
    if user.role == ROLE_ADMIN:
        raise HTTPException(status_code=400, detail="Admin accounts cannot be banned")
    if user.is_banned:
        raise HTTPException(status_code=400, detail="User is already banned")

    reason = sanitize_string(reason) or DEFAULT_BAN_REASON
    user.is_banned = True
    user.ban_reason = reason
    user.banned_at = datetime.utcnow()
    db.commit()
    logger.info(f"🚫 User {user.id} banned by admin {admin.id}")

    log_admin_action(db, admin, "BanUser", user.id, reason)
    try:
        await send_account_banned_email(user.email, user.name, reason)
    except (EmailNotConfigured, RuntimeError) as e:
        logger.warning(f"⚠️ Ban email not sent to {user.email}: {e}")


def _unban(db: Session, user: User, admin: User) -> None:
    if not user.is_banned:
        raise HTTPException(status_code=400, detail="User is not banned")

    user.is_banned = False
    user.ban_reason = None
    user.banned_at = None
    db.commit()
    logger.info(f"✅ User {user.id} unbanned by admin {admin.id}")
    log_admin_action(db, admin, "UnbanUser", user.id)


def _verify(db: Session, user: User, admin: User) -> None:
    user.is_verified = True
    user.verification_status = VERIFICATION_APPROVED
    request = VerificationService(db).approve_pending_for_user(user, admin)
    db.commit()
    logger.info(f"✅ User {user.id} manually verified by admin {admin.id}")
    log_admin_action(
        db,
        admin,
        "VerifyUser",
        user.id,
        "Manually verified by admin",
        {"verification_request_id": request.id if request else None},
    )


# ----------------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------------


@router.get("/users", response_model=AdminUserList)
async def list_users(
    role: Optional[str] = Query(None),
    verification_status: Optional[str] = Query(None),
    is_banned: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    current_user: User = Depends(require_permission("users:read")),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if verification_status:
        query = query.filter(User.verification_status == verification_status)
    if is_banned is not None:
        query = query.filter(User.is_banned.is_(is_banned))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    return _paginate(query, page, limit, (User.created_at.desc(), User.id.desc()))


@router.post("/users/create", response_model=UserResponse, status_code=201)
async def create_user(
    data: AdminUserCreate,
    current_user: User = Depends(require_permission("users:create")),
    db: Session = Depends(get_db),
):
    """Create an account of any role, including other admins"""
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    strength = check_password_strength(data.password)
    if not strength["is_valid"]:
        raise HTTPException(
            status_code=400,
            detail={"message": "Password is too weak", "feedback": strength["feedback"]},
        )

    permissions = None
    if data.role == ROLE_ADMIN and data.admin_permissions is not None:
        unknown = set(data.admin_permissions) - set(ADMIN_PERMISSIONS)
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown permissions: {', '.join(sorted(unknown))}")
        permissions = data.admin_permissions

    user = User(
        email=email,
        hashed_password=hash_password(data.password),
        name=sanitize_string(data.name),
        role=data.role,
        phone_number=data.phone_number,
        admin_permissions=permissions,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"✅ Admin {current_user.id} created {user.role} account {user.id}")
    return user


@router.get("/users/{user_id}")
async def get_user_detail(
    user_id: int,
    current_user: User = Depends(require_permission("users:read")),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    profile = user.provider_profile
    request = user.verification_request
    return {
        "user": UserResponse.model_validate(user),
        "provider_profile": ProviderProfileResponse.model_validate(profile) if profile else None,
        "verification": (
            {
                **VerificationRequestResponse.model_validate(request).model_dump(),
                "sla": calculate_sla_status(request),
            }
            if request
            else None
        ),
    }


@router.put("/users/{user_id}/ban", response_model=UserResponse)
async def ban_user(
    user_id: int,
    data: Optional[BanRequest] = None,
    current_user: User = Depends(require_permission("users:update")),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    await _ban(db, user, current_user, data.reason if data else None)
    db.refresh(user)
    return user


@router.put("/users/{user_id}/unban", response_model=UserResponse)
async def unban_user(
    user_id: int,
    current_user: User = Depends(require_permission("users:update")),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    _unban(db, user, current_user)
    db.refresh(user)
    return user


@router.put("/users/{user_id}/verify", response_model=UserResponse)
async def verify_user(
    user_id: int,
    current_user: User = Depends(require_permission("users:verify")),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    _verify(db, user, current_user)
    db.refresh(user)
    return user


@router.put("/users/{user_id}/warn", response_model=UserResponse)
async def warn_user(
    user_id: int,
    data: WarnRequest,
    current_user: User = Depends(require_permission("users:update")),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    reason = sanitize_string(data.reason)
    user.warning_level = (user.warning_level or 0) + 1
    db.commit()
    logger.info(f"⚠️ Warning {user.warning_level} issued to user {user.id} by admin {current_user.id}")

    log_admin_action(db, current_user, "IssueWarning", user.id, reason, {"warning_level": user.warning_level})
    await notify_user(
        db,
        user,
        "Account warning",
        f"You have received a warning from the VisitingVet team: {reason}",
        notification_type="moderation",
    )
    db.refresh(user)
    return user


@router.post("/users/bulk-action", response_model=BulkActionResult)
async def bulk_user_action(
    data: BulkActionRequest,
    current_user: User = Depends(require_permission("users:bulk_manage")),
    db: Session = Depends(get_db),
):
    """Apply ban, unban or verify to each user independently"""
    succeeded = 0
    failed = []
    for user_id in data.user_ids:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            failed.append({"user_id": user_id, "error": "User not found"})
            continue
        try:
            if data.action == "ban":
                await _ban(db, user, current_user, data.reason)
            elif data.action == "unban":
                _unban(db, user, current_user)
            else:
                _verify(db, user, current_user)
            succeeded += 1
        except HTTPException as e:
            db.rollback()
            failed.append({"user_id": user_id, "error": e.detail})

    log_admin_action(
        db,
        current_user,
        "BulkAction",
        None,
        data.reason,
        {"action": data.action, "user_ids": data.user_ids, "succeeded": succeeded, "failed": len(failed)},
    )
    logger.info(f"📊 Bulk {data.action}: {succeeded}/{len(data.user_ids)} succeeded")
    return {"processed": len(data.user_ids), "succeeded": succeeded, "failed": failed}


@router.get("/users/{user_id}/activity", response_model=UserActivityLogPage)
async def get_user_activity(
    user_id: int,
    action: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_permission("users:read_activity")),
    db: Session = Depends(get_db),
):
    _get_user(db, user_id)
    query = db.query(UserActivityLog).filter(UserActivityLog.user_id == user_id)
    if action:
        query = query.filter(UserActivityLog.action == action)
    return _paginate(query, page, limit, (UserActivityLog.timestamp.desc(), UserActivityLog.id.desc()))


# ----------------------------------------------------------------------------
# Audit logs
# ----------------------------------------------------------------------------


@router.get("/documents/access-logs", response_model=DocumentAccessLogPage)
async def get_document_access_logs(
    target_user_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_permission("logs:read")),
    db: Session = Depends(get_db),
):
    query = db.query(DocumentAccessLog)
    if target_user_id is not None:
        query = query.filter(DocumentAccessLog.target_user_id == target_user_id)
    return _paginate(query, page, limit, (DocumentAccessLog.timestamp.desc(), DocumentAccessLog.id.desc()))


@router.get("/logs", response_model=AdminActionLogPage)
async def get_admin_logs(
    action_type: Optional[str] = Query(None),
    admin_user_id: Optional[int] = Query(None),
    target_user_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_permission("logs:read")),
    db: Session = Depends(get_db),
):
    query = db.query(AdminActionLog)
    if action_type:
        query = query.filter(AdminActionLog.action_type == action_type)
    if admin_user_id is not None:
        query = query.filter(AdminActionLog.admin_user_id == admin_user_id)
    if target_user_id is not None:
        query = query.filter(AdminActionLog.target_user_id == target_user_id)
    return _paginate(query, page, limit, (AdminActionLog.created_at.desc(), AdminActionLog.id.desc()))
