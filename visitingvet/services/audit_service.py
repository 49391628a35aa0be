"""
Audit trail: admin actions, document access and user account activity
All writes are best effort so auditing never blocks the request
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import AdminActionLog, DocumentAccessLog, User, UserActivityLog

logger = logging.getLogger(__name__)


def _persist(db: Session, entry, label: str) -> None:
    try:
        db.add(entry)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to write {label}: {e}")


def log_admin_action(
    db: Session,
    admin: User,
    action_type: str,
    target_user_id: Optional[int] = None,
    reason: Optional[str] = None,
    details: Optional[dict] = None,
) -> None:
    logger.info(f"🛡️ Admin {admin.id} {action_type} target={target_user_id}")
    _persist(
        db,
        AdminActionLog(
            admin_user_id=admin.id,
            target_user_id=target_user_id,
            action_type=action_type,
            reason=reason,
            details=details,
        ),
        "admin action log",
    )


def log_user_activity(
    db: Session,
    user_id: int,
    action: str,
    status: str = "SUCCESS",
    ip_address: Optional[str] = None,
    details: Optional[dict] = None,
    error_message: Optional[str] = None,
) -> None:
    _persist(
        db,
        UserActivityLog(
            user_id=user_id,
            action=action,
            status=status,
            ip_address=ip_address,
            details=details,
            error_message=error_message,
        ),
        "user activity log",
    )


def log_document_access(
    db: Session,
    admin: User,
    target_user_id: Optional[int],
    document_key: str,
    document_type: Optional[str] = None,
    action: str = "VIEW",
    ip_address: Optional[str] = None,
) -> None:
    logger.info(f"🔍 Admin {admin.id} {action} document {document_key}")
    _persist(
        db,
        DocumentAccessLog(
            admin_user_id=admin.id,
            target_user_id=target_user_id,
            document_key=document_key,
            document_type=document_type,
            action=action,
            ip_address=ip_address,
        ),
        "document access log",
    )
