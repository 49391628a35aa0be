"""Service request repository - Database operations for clinic referrals"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import ProviderProfile, Service, ServiceRequest, User


class ServiceRequestRepository:
    """Repository for service request database operations"""

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_profile_for_user(db: Session, user_id: int) -> Optional[ProviderProfile]:
        return db.query(ProviderProfile).filter(ProviderProfile.user_id == user_id).first()

    @staticmethod
    def get_service(db: Session, service_id: int, profile_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.provider_profile_id == profile_id)
            .first()
        )

    @staticmethod
    def get_first_active_service(db: Session, profile_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.provider_profile_id == profile_id, Service.is_active.is_(True))
            .order_by(Service.id)
            .first()
        )

    @staticmethod
    def create(db: Session, **data) -> ServiceRequest:
        request = ServiceRequest(**data)
        db.add(request)
        db.commit()
        db.refresh(request)
        return request

    @staticmethod
    def get_by_id(db: Session, request_id: int) -> Optional[ServiceRequest]:
        return (
            db.query(ServiceRequest)
            .options(
                joinedload(ServiceRequest.clinic),
                joinedload(ServiceRequest.provider),
                joinedload(ServiceRequest.pet_owner),
            )
            .filter(ServiceRequest.id == request_id)
            .first()
        )

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: Optional[int],
        status: Optional[str],
        urgency: Optional[str],
        page: int,
        limit: int,
    ) -> tuple[list[ServiceRequest], int]:
        """Requests where the user is any party; user_id None lists everything"""
        query = db.query(ServiceRequest)
        if user_id is not None:
            query = query.filter(
                or_(
                    ServiceRequest.clinic_id == user_id,
                    ServiceRequest.provider_id == user_id,
                    ServiceRequest.pet_owner_id == user_id,
                )
            )
        if status:
            query = query.filter(ServiceRequest.status == status)
        if urgency:
            query = query.filter(ServiceRequest.urgency == urgency)

        total = query.count()
        items = (
            query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def count_by(db: Session, column) -> dict:
        return dict(db.query(column, func.count(ServiceRequest.id)).group_by(column).all())

    @staticmethod
    def get_completed(db: Session) -> list[ServiceRequest]:
        return db.query(ServiceRequest).filter(ServiceRequest.completed_at.isnot(None)).all()
