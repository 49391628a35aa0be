"""Verification service - document submission, admin review and annotations"""

import logging
import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import SIGNED_URL_EXPIRES_SECONDS
from ...constants import (
    SLA_BREACHED,
    VERIFICATION_APPROVED,
    VERIFICATION_PENDING,
    VERIFICATION_REJECTED,
)
from ...email_templates import verification_result_template
from ...models import User, VerificationDocument, VerificationRequest
from ...schemas import UserSummary, build_pagination
from ...services.audit_service import log_admin_action, log_document_access
from ...services.credential_validation_service import validate_credentials
from ...services.document_service import (
    StorageError,
    delete_document,
    generate_document_key,
    get_signed_url,
    upload_document,
    validate_document,
)
from ...services.notification_service import notify_admins, notify_user
from ...services.sla_tracking_service import calculate_sla_status, update_sla_on_completion
from ...services.verification_scoring_service import score_verification_request
from ...utils.sanitization import sanitize_string
from .repository import VerificationRepository
from .schemas import Annotation, VerificationRequestResponse, VerificationSubmit

logger = logging.getLogger(__name__)


class VerificationService:
    """Service layer for identity and credential verification"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = VerificationRepository()

    # ------------------------------------------------------------------
    # Submitter side
    # ------------------------------------------------------------------

    def upload_document(
        self,
        user: User,
        document_type: str,
        file_name: str,
        content_type: Optional[str],
        content: bytes,
        expiration_date: Optional[date] = None,
    ) -> VerificationDocument:
        document_type = (document_type or "").strip().upper()
        if not document_type:
            raise HTTPException(status_code=400, detail="document_type is required")

        is_valid, error = validate_document(file_name, content_type, len(content))
        if not is_valid:
            raise HTTPException(status_code=400, detail=error)

        request = self.repo.get_for_user(self.db, user.id)
        if request and request.status == VERIFICATION_APPROVED:
            raise HTTPException(status_code=400, detail="Account is already verified")

        key = generate_document_key(user.id, document_type, file_name)
        try:
            upload_document(content, key, content_type, {"user_id": user.id, "document_type": document_type})
        except StorageError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        if request is None:
            request = self.repo.create_for_user(self.db, user.id)

        user.verification_status = VERIFICATION_PENDING
        document = self.repo.add_document(
            self.db,
            verification_request_id=request.id,
            document_type=document_type,
            document_key=key,
            original_file_name=file_name,
            content_type=content_type,
            size_bytes=len(content),
            expiration_date=expiration_date,
            annotations=[],
        )
        logger.info(f"✅ Verification document {document.id} uploaded for user {user.id}")
        return document

    def delete_own_document(self, user: User, document_id: int) -> None:
        document = self.repo.get_document(self.db, document_id)
        if not document or document.verification_request.user_id != user.id:
            raise HTTPException(status_code=404, detail="Document not found")
        if document.verification_request.status == VERIFICATION_APPROVED:
            raise HTTPException(status_code=400, detail="Documents of an approved verification cannot be removed")

        try:
            delete_document(document.document_key)
        except StorageError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        self.db.delete(document)
        self.db.commit()
        logger.info(f"🗑️ Verification document {document_id} removed by user {user.id}")

    async def submit(self, user: User, data: VerificationSubmit) -> VerificationRequest:
        request = self.repo.get_for_user(self.db, user.id)
        if not request or not request.documents:
            raise HTTPException(status_code=400, detail="Upload at least one document before submitting")
        if request.status == VERIFICATION_APPROVED:
            raise HTTPException(status_code=400, detail="Account is already verified")

        now = datetime.utcnow()
        if request.status == VERIFICATION_REJECTED:
            request.status = VERIFICATION_PENDING
            request.completed_at = None
            request.reviewed_at = None
            request.reviewed_by_id = None
            request.sla_processing_time_hours = None
            request.submitted_at = None
        if request.submitted_at is None:
            # The SLA clock starts at (re)submission
            request.created_at = now
            request.submitted_at = now

        request.priority = data.priority
        request.notes = sanitize_string(data.notes)

        profile = user.provider_profile
        credential_status = None
        if profile is not None:
            credential = await validate_credentials(profile.license_number, profile.license_state)
            credential_status = credential["status"]
        request.credential_status = credential_status

        risk = score_verification_request(request, credential_status)
        request.risk_score = risk["score"]
        request.risk_level = risk["level"]
        request.sla_status = calculate_sla_status(request, now)["status"]
        user.verification_status = VERIFICATION_PENDING
        self.db.commit()
        self.db.refresh(request)
        logger.info(
            f"✅ Verification {request.id} submitted by user {user.id} "
            f"(priority={request.priority}, risk={request.risk_score})"
        )

        await notify_admins(
            self.db,
            "New verification submission",
            f"{user.name or user.email} ({user.role}) submitted {len(request.documents)} documents, "
            f"{request.priority} priority, {request.risk_level} risk.",
            notification_type="verification",
            reference_type="VerificationRequest",
            reference_id=request.id,
            action_url="/admin/verifications",
        )
        return request

    def get_status(self, user: User) -> dict:
        request = self.repo.get_for_user(self.db, user.id)
        return {
            "verification_status": user.verification_status,
            "is_verified": user.is_verified,
            "request": request,
            "sla": calculate_sla_status(request) if request else None,
        }

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------

    def _get_request(self, request_id: int) -> VerificationRequest:
        request = self.repo.get_by_id(self.db, request_id)
        if not request:
            raise HTTPException(status_code=404, detail="Verification request not found")
        return request

    def list_pending(self, priority: Optional[str], page: int, limit: int) -> dict:
        requests, total = self.repo.list_pending(self.db, priority, page, limit)
        now = datetime.utcnow()
        items = [
            {
                **VerificationRequestResponse.model_validate(r).model_dump(),
                "user": UserSummary.model_validate(r.user),
                "sla": calculate_sla_status(r, now),
            }
            for r in requests
        ]
        return {"items": items, "pagination": build_pagination(page, limit, total)}

    def _mark_approved(self, request: VerificationRequest, admin: User, notes: Optional[str]) -> None:
        request.status = VERIFICATION_APPROVED
        request.reviewed_by_id = admin.id
        request.reviewed_at = datetime.utcnow()
        request.notes = notes
        update_sla_on_completion(request, request.reviewed_at)
        request.user.is_verified = True
        request.user.verification_status = VERIFICATION_APPROVED

    async def _notify_result(self, request: VerificationRequest, approved: bool, reason: Optional[str] = None):
        user = request.user
        await notify_user(
            self.db,
            user,
            "Verification approved" if approved else "Verification not approved",
            "Your account has been verified." if approved else f"Your verification was rejected: {reason}",
            notification_type="verification",
            reference_type="VerificationRequest",
            reference_id=request.id,
            action_url="/verification",
            email_mjml=verification_result_template(user.name, approved, reason),
        )

    async def approve(self, request_id: int, admin: User, notes: Optional[str] = None) -> VerificationRequest:
        request = self._get_request(request_id)
        if request.status != VERIFICATION_PENDING:
            raise HTTPException(status_code=400, detail=f"Verification request is already {request.status}")

        self._mark_approved(request, admin, sanitize_string(notes))
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"✅ Verification {request.id} approved by admin {admin.id} ({request.sla_status})")

        log_admin_action(
            self.db,
            admin,
            "VerifyUser",
            request.user_id,
            notes,
            {"verification_request_id": request.id, "sla_status": request.sla_status},
        )
        await self._notify_result(request, approved=True)
        return request

    async def reject(self, request_id: int, admin: User, reason: str) -> VerificationRequest:
        request = self._get_request(request_id)
        if request.status != VERIFICATION_PENDING:
            raise HTTPException(status_code=400, detail=f"Verification request is already {request.status}")

        reason = sanitize_string(reason)
        request.status = VERIFICATION_REJECTED
        request.reviewed_by_id = admin.id
        request.reviewed_at = datetime.utcnow()
        request.notes = f"Rejection reason: {reason}"
        update_sla_on_completion(request, request.reviewed_at)
        request.user.is_verified = False
        request.user.verification_status = VERIFICATION_REJECTED
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"❌ Verification {request.id} rejected by admin {admin.id}")

        log_admin_action(
            self.db,
            admin,
            "RejectVerification",
            request.user_id,
            reason,
            {"verification_request_id": request.id, "sla_status": request.sla_status},
        )
        await self._notify_result(request, approved=False, reason=reason)
        return request

    def approve_pending_for_user(self, user: User, admin: User) -> Optional[VerificationRequest]:
        """Manual verification from the user admin screen; caller commits"""
        request = self.repo.get_for_user(self.db, user.id)
        if request and request.status == VERIFICATION_PENDING:
            self._mark_approved(request, admin, "Manually verified by admin")
            return request
        return None

    def get_metrics(self) -> dict:
        by_status = self.repo.count_by_status(self.db)
        now = datetime.utcnow()

        pending_by_sla: dict[str, int] = {}
        for request in self.repo.list_submitted_pending(self.db):
            status = calculate_sla_status(request, now)["status"]
            pending_by_sla[status] = pending_by_sla.get(status, 0) + 1

        completed = self.repo.list_completed(self.db)
        hours = [r.sla_processing_time_hours for r in completed if r.sla_processing_time_hours is not None]
        approved = by_status.get(VERIFICATION_APPROVED, 0)
        rejected = by_status.get(VERIFICATION_REJECTED, 0)
        breached = sum(1 for r in completed if r.sla_status == SLA_BREACHED)

        return {
            "by_status": by_status,
            "pending_by_sla_status": pending_by_sla,
            "average_processing_hours": round(sum(hours) / len(hours), 2) if hours else None,
            "approval_rate": round(approved / (approved + rejected), 4) if approved + rejected else 0.0,
            "breach_rate": round(breached / len(completed), 4) if completed else 0.0,
            "total_completed": len(completed),
        }

    # ------------------------------------------------------------------
    # Documents for reviewers
    # ------------------------------------------------------------------

    def _get_document(self, document_id: int) -> VerificationDocument:
        document = self.repo.get_document(self.db, document_id)
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        return document

    def get_document_url(self, document_id: int, admin: User, action: str, ip: Optional[str]) -> dict:
        document = self._get_document(document_id)
        try:
            url = get_signed_url(document.document_key)
        except StorageError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        log_document_access(
            self.db,
            admin,
            document.verification_request.user_id,
            document.document_key,
            document.document_type,
            action,
            ip,
        )
        return {"url": url, "expires_in": SIGNED_URL_EXPIRES_SECONDS}

    def get_annotations(self, document_id: int) -> dict:
        document = self._get_document(document_id)
        return {"document_id": document.id, "annotations": document.annotations or []}

    def replace_annotations(self, document_id: int, annotations: list[Annotation], admin: User) -> dict:
        document = self._get_document(document_id)
        now = datetime.utcnow()
        stored = []
        for annotation in annotations:
            item = annotation.model_dump(mode="json", exclude_none=True)
            item.setdefault("id", str(uuid.uuid4()))
            item.setdefault("created_at", now.isoformat())
            if "text" in item:
                item["text"] = sanitize_string(item["text"])
            stored.append(item)

        document.annotations = stored
        self.db.commit()
        logger.info(f"✅ Admin {admin.id} saved {len(stored)} annotations on document {document.id}")
        return {"document_id": document.id, "annotations": stored}
