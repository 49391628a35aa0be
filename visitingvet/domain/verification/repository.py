"""Verification repository - Database operations for verification requests"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...constants import VERIFICATION_PENDING
from ...models import VerificationDocument, VerificationRequest


class VerificationRepository:
    """Repository for verification database operations"""

    @staticmethod
    def get_for_user(db: Session, user_id: int) -> Optional[VerificationRequest]:
        return (
            db.query(VerificationRequest)
            .options(joinedload(VerificationRequest.documents))
            .filter(VerificationRequest.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_by_id(db: Session, request_id: int) -> Optional[VerificationRequest]:
        return (
            db.query(VerificationRequest)
            .options(joinedload(VerificationRequest.documents), joinedload(VerificationRequest.user))
            .filter(VerificationRequest.id == request_id)
            .first()
        )

    @staticmethod
    def create_for_user(db: Session, user_id: int) -> VerificationRequest:
        request = VerificationRequest(user_id=user_id, status=VERIFICATION_PENDING)
        db.add(request)
        db.flush()
        return request

    @staticmethod
    def add_document(db: Session, **data) -> VerificationDocument:
        document = VerificationDocument(**data)
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def get_document(db: Session, document_id: int) -> Optional[VerificationDocument]:
        return (
            db.query(VerificationDocument)
            .options(joinedload(VerificationDocument.verification_request))
            .filter(VerificationDocument.id == document_id)
            .first()
        )

    @staticmethod
    def list_pending(
        db: Session, priority: Optional[str], page: int, limit: int
    ) -> tuple[list[VerificationRequest], int]:
        query = db.query(VerificationRequest).filter(
            VerificationRequest.status == VERIFICATION_PENDING,
            VerificationRequest.submitted_at.isnot(None),
        )
        if priority:
            query = query.filter(VerificationRequest.priority == priority)
        total = query.count()
        items = (
            query.options(joinedload(VerificationRequest.user), joinedload(VerificationRequest.documents))
            .order_by(VerificationRequest.created_at.asc(), VerificationRequest.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def list_submitted_pending(db: Session) -> list[VerificationRequest]:
        return (
            db.query(VerificationRequest)
            .filter(
                VerificationRequest.status == VERIFICATION_PENDING,
                VerificationRequest.submitted_at.isnot(None),
            )
            .all()
        )

    @staticmethod
    def count_by_status(db: Session) -> dict:
        return dict(
            db.query(VerificationRequest.status, func.count(VerificationRequest.id))
            .filter(VerificationRequest.submitted_at.isnot(None))
            .group_by(VerificationRequest.status)
            .all()
        )

    @staticmethod
    def list_completed(db: Session) -> list[VerificationRequest]:
        return db.query(VerificationRequest).filter(VerificationRequest.completed_at.isnot(None)).all()
