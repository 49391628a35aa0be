"""Appointment service - Booking rules, status workflow and notifications"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...constants import (
    APPT_CANCELLED,
    APPT_CANCELLED_BY_OWNER,
    APPT_COMPLETED,
    APPT_CONFIRMED,
    APPT_REQUESTED,
    ROLE_ADMIN,
)
from ...email_templates import appointment_email_template
from ...models import Appointment, ProviderProfile, User
from ...services.availability_service import is_time_available
from ...services.notification_service import notify_user
from ...services.usage_tracking_service import log_usage
from ...utils.sanitization import sanitize_string
from .repository import AppointmentRepository
from .schemas import AppointmentCancel, AppointmentCreate, AppointmentStatusUpdate

logger = logging.getLogger(__name__)

# Provider-driven transitions; owners cancel through cancel_by_owner
ALLOWED_TRANSITIONS = {
    APPT_REQUESTED: (APPT_CONFIRMED, APPT_CANCELLED),
    APPT_CONFIRMED: (APPT_COMPLETED, APPT_CANCELLED),
}


def format_when(dt: datetime) -> str:
    return dt.strftime("%a %b %d, %Y %H:%M")


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()

    def _provider_profile(self, user: User) -> ProviderProfile:
        profile = self.repo.get_profile_for_user(self.db, user.id)
        if not profile:
            raise HTTPException(status_code=404, detail="Provider profile not found")
        return profile

    async def create_appointment(self, data: AppointmentCreate, user: User) -> Appointment:
        """Book an appointment after availability and conflict checks"""
        logger.info(f"📥 Booking request from user {user.id} for profile {data.provider_profile_id}")

        profile = self.repo.get_profile(self.db, data.provider_profile_id)
        if not profile:
            raise HTTPException(status_code=404, detail="Provider profile not found")

        service = self.repo.get_service_for_profile(self.db, data.service_id, profile.id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found for this provider")

        if data.appointment_time <= datetime.utcnow():
            raise HTTPException(status_code=400, detail="Appointment time must be in the future")

        if data.pet_id is not None:
            pet = self.repo.get_pet(self.db, data.pet_id)
            if not pet or pet.owner_id != user.id:
                raise HTTPException(status_code=404, detail="Pet not found")

        availability = self.repo.get_availability(self.db, profile.id)
        if not availability:
            raise HTTPException(status_code=404, detail="Provider has no availability set")

        start = data.appointment_time
        end = start + timedelta(minutes=service.estimated_duration_minutes)

        if not is_time_available(availability, start, service.estimated_duration_minutes):
            raise HTTPException(
                status_code=400, detail="The requested time is outside the provider's availability"
            )

        conflict = self.repo.find_conflict(self.db, profile.id, start, end)
        if conflict:
            logger.info(f"⚠️ Booking conflict with appointment {conflict.id} on profile {profile.id}")
            raise HTTPException(
                status_code=400, detail="The requested time conflicts with another appointment"
            )

        appointment = self.repo.create_appointment(
            self.db,
            pet_owner_id=user.id,
            provider_profile_id=profile.id,
            service_id=service.id,
            pet_id=data.pet_id,
            appointment_time=start,
            estimated_end_time=end,
            status=APPT_REQUESTED,
            location_details=sanitize_string(data.location_details),
            owner_notes=sanitize_string(data.owner_notes),
        )
        logger.info(f"✅ Appointment {appointment.id} requested for {start.isoformat()}")

        log_usage(
            self.db,
            "APPOINTMENT_CREATED",
            user.id,
            {"appointment_id": appointment.id, "provider_profile_id": profile.id},
        )
        await notify_user(
            self.db,
            profile.user,
            "New appointment request",
            f"{user.name or user.email} requested {service.name} on {format_when(start)} UTC.",
            notification_type="appointment",
            reference_type="Appointment",
            reference_id=appointment.id,
            action_url="/appointments",
            email_mjml=appointment_email_template(
                "New appointment request", service.name, format_when(start), appointment.owner_notes
            ),
        )
        return appointment

    def list_for_owner(self, user: User, status: Optional[str] = None) -> list[Appointment]:
        return self.repo.list_for_owner(self.db, user.id, status)

    def list_for_provider(self, user: User, status: Optional[str] = None) -> list[Appointment]:
        profile = self._provider_profile(user)
        return self.repo.list_for_profile(self.db, profile.id, status)

    def get_appointment(self, appointment_id: int, user: User) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")

        is_owner = appointment.pet_owner_id == user.id
        is_provider = appointment.provider_profile.user_id == user.id
        if not (is_owner or is_provider or user.role == ROLE_ADMIN):
            raise HTTPException(status_code=403, detail="Not authorized to view this appointment")
        return appointment

    async def update_status(
        self, appointment_id: int, data: AppointmentStatusUpdate, user: User
    ) -> Appointment:
        """Provider moves an appointment through Requested -> Confirmed -> Completed"""
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if appointment.provider_profile.user_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to update this appointment")

        allowed = ALLOWED_TRANSITIONS.get(appointment.status, ())
        if data.status not in allowed:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot change appointment status from {appointment.status} to {data.status}",
            )

        previous = appointment.status
        appointment.status = data.status
        if data.provider_notes is not None:
            appointment.provider_notes = sanitize_string(data.provider_notes)
        if data.status == APPT_CANCELLED:
            appointment.cancellation_reason = sanitize_string(data.cancellation_reason)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment.id}: {previous} -> {appointment.status}")

        event = "APPOINTMENT_CANCELLED" if data.status == APPT_CANCELLED else "APPOINTMENT_UPDATED"
        log_usage(self.db, event, user.id, {"appointment_id": appointment.id, "status": data.status})

        when = format_when(appointment.appointment_time)
        details = appointment.cancellation_reason if data.status == APPT_CANCELLED else appointment.provider_notes
        await notify_user(
            self.db,
            appointment.pet_owner,
            f"Appointment {data.status.lower()}",
            f"Your {appointment.service.name} appointment on {when} UTC is now {data.status}.",
            notification_type="appointment",
            reference_type="Appointment",
            reference_id=appointment.id,
            action_url="/appointments",
            email_mjml=appointment_email_template(
                f"Appointment {data.status.lower()}", appointment.service.name, when, details
            ),
        )
        return appointment

    async def cancel_by_owner(
        self, appointment_id: int, data: AppointmentCancel, user: User
    ) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if appointment.pet_owner_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to cancel this appointment")
        if appointment.status not in (APPT_REQUESTED, APPT_CONFIRMED):
            raise HTTPException(
                status_code=400, detail=f"Cannot cancel an appointment that is {appointment.status}"
            )

        appointment.status = APPT_CANCELLED_BY_OWNER
        appointment.cancellation_reason = sanitize_string(data.reason)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment.id} cancelled by owner {user.id}")

        log_usage(self.db, "APPOINTMENT_CANCELLED", user.id, {"appointment_id": appointment.id})
        when = format_when(appointment.appointment_time)
        await notify_user(
            self.db,
            appointment.provider_profile.user,
            "Appointment cancelled by owner",
            f"The {appointment.service.name} appointment on {when} UTC was cancelled by the pet owner.",
            notification_type="appointment",
            reference_type="Appointment",
            reference_id=appointment.id,
            action_url="/appointments",
            email_mjml=appointment_email_template(
                "Appointment cancelled by owner", appointment.service.name, when, appointment.cancellation_reason
            ),
        )
        return appointment
