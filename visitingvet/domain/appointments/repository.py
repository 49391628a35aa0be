"""Appointment repository - Database operations for appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...constants import ACTIVE_APPOINTMENT_STATUSES
from ...models import Appointment, Availability, Pet, ProviderProfile, Service


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_profile(db: Session, profile_id: int) -> Optional[ProviderProfile]:
        return db.query(ProviderProfile).filter(ProviderProfile.id == profile_id).first()

    @staticmethod
    def get_profile_for_user(db: Session, user_id: int) -> Optional[ProviderProfile]:
        return db.query(ProviderProfile).filter(ProviderProfile.user_id == user_id).first()

    @staticmethod
    def get_service_for_profile(db: Session, service_id: int, profile_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(Service.id == service_id, Service.provider_profile_id == profile_id)
            .first()
        )

    @staticmethod
    def get_availability(db: Session, profile_id: int) -> Optional[Availability]:
        return db.query(Availability).filter(Availability.provider_profile_id == profile_id).first()

    @staticmethod
    def get_pet(db: Session, pet_id: int) -> Optional[Pet]:
        return db.query(Pet).filter(Pet.id == pet_id).first()

    @staticmethod
    def find_conflict(
        db: Session,
        profile_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """First active appointment overlapping [start, end); back-to-back is not a conflict"""
        query = db.query(Appointment).filter(
            Appointment.provider_profile_id == profile_id,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            Appointment.appointment_time < end,
            Appointment.estimated_end_time > start,
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.first()

    @staticmethod
    def get_booked_intervals(
        db: Session, profile_id: int, start: datetime, end: datetime
    ) -> list[tuple[datetime, datetime]]:
        rows = (
            db.query(Appointment.appointment_time, Appointment.estimated_end_time)
            .filter(
                Appointment.provider_profile_id == profile_id,
                Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
                Appointment.appointment_time < end,
                Appointment.estimated_end_time > start,
            )
            .all()
        )
        return [(row[0], row[1]) for row in rows]

    @staticmethod
    def create_appointment(db: Session, **data) -> Appointment:
        appointment = Appointment(**data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.pet))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def list_for_owner(db: Session, owner_id: int, status: Optional[str] = None) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.pet))
            .filter(Appointment.pet_owner_id == owner_id)
        )
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.appointment_time.desc()).all()

    @staticmethod
    def list_for_profile(db: Session, profile_id: int, status: Optional[str] = None) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.pet))
            .filter(Appointment.provider_profile_id == profile_id)
        )
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.appointment_time.desc()).all()
