"""Service request service - Clinic referral workflow"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import S3_BUCKET_NAME
from ...constants import (
    APPT_CONFIRMED,
    ROLE_ADMIN,
    ROLE_PET_OWNER,
    ROLE_PROVIDER,
    SR_ACCEPTED,
    SR_CANCELLED,
    SR_COMPLETED,
    SR_DECLINED,
    SR_PENDING,
    SR_SCHEDULED,
    SR_TERMINAL_STATUSES,
)
from ...models import Appointment, ServiceRequest, User
from ...schemas import build_pagination
from ...services.document_service import (
    StorageError,
    generate_attachment_key,
    get_signed_url,
    upload_document,
    validate_document,
)
from ...services.notification_service import notify_user
from ...services.usage_tracking_service import log_usage
from ...utils.sanitization import sanitize_string
from ..appointments.repository import AppointmentRepository
from .repository import ServiceRequestRepository
from .schemas import (
    PetOwnerResponseCreate,
    ProviderResponseCreate,
    ServiceRequestCreate,
    ServiceRequestStatusUpdate,
    TimeSlot,
)

logger = logging.getLogger(__name__)


def _slot_key(slot: dict) -> tuple[str, str]:
    return slot.get("start_time"), slot.get("end_time")


class ServiceRequestService:
    """Service layer for clinic referrals"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ServiceRequestRepository()

    # ------------------------------------------------------------------
    # Access helpers
    # ------------------------------------------------------------------

    def _get(self, request_id: int) -> ServiceRequest:
        request = self.repo.get_by_id(self.db, request_id)
        if not request:
            raise HTTPException(status_code=404, detail="Service request not found")
        return request

    @staticmethod
    def _is_party(request: ServiceRequest, user: User) -> bool:
        return user.id in (request.clinic_id, request.provider_id, request.pet_owner_id)

    def get_request(self, request_id: int, user: User) -> ServiceRequest:
        request = self._get(request_id)
        if not (self._is_party(request, user) or user.role == ROLE_ADMIN):
            raise HTTPException(status_code=403, detail="Not authorized to access this service request")
        return request

    async def _notify(self, user: Optional[User], title: str, message: str, request: ServiceRequest):
        if user is None:
            return
        await notify_user(
            self.db,
            user,
            title,
            message,
            notification_type="service_request",
            reference_type="ServiceRequest",
            reference_id=request.id,
            action_url=f"/service-requests/{request.id}",
        )

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    async def create_request(self, data: ServiceRequestCreate, clinic: User) -> ServiceRequest:
        provider = self.repo.get_user(self.db, data.provider_id)
        if not provider or provider.role != ROLE_PROVIDER:
            raise HTTPException(status_code=404, detail="Provider not found")

        pet_owner = self.repo.get_user(self.db, data.pet_owner_id)
        if not pet_owner or pet_owner.role != ROLE_PET_OWNER:
            raise HTTPException(status_code=404, detail="Pet owner not found")

        if data.service_id is not None:
            profile = self.repo.get_profile_for_user(self.db, provider.id)
            if not profile or not self.repo.get_service(self.db, data.service_id, profile.id):
                raise HTTPException(status_code=404, detail="Service not found for this provider")

        request = self.repo.create(
            self.db,
            clinic_id=clinic.id,
            provider_id=provider.id,
            pet_owner_id=pet_owner.id,
            pet_id=data.pet_id,
            service_id=data.service_id,
            service_type=sanitize_string(data.service_type),
            description=sanitize_string(data.description),
            urgency=data.urgency,
            preferred_dates=[d.isoformat() for d in data.preferred_dates or []],
            status=SR_PENDING,
        )
        logger.info(f"✅ Service request {request.id} created by clinic {clinic.id} for provider {provider.id}")

        log_usage(self.db, "SERVICE_REQUEST_CREATED", clinic.id, {"service_request_id": request.id})
        await self._notify(
            provider,
            "New service request",
            f"{clinic.name or 'A clinic'} sent you a {request.urgency} urgency referral: {request.service_type}.",
            request,
        )
        return request

    def list_requests(
        self,
        user: User,
        status: Optional[str] = None,
        urgency: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict:
        user_filter = None if user.role == ROLE_ADMIN else user.id
        items, total = self.repo.list_for_user(self.db, user_filter, status, urgency, page, limit)
        return {"items": items, "pagination": build_pagination(page, limit, total)}

    async def provider_response(
        self, request_id: int, data: ProviderResponseCreate, user: User
    ) -> ServiceRequest:
        request = self._get(request_id)
        if request.provider_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to respond to this service request")
        if request.status != SR_PENDING:
            raise HTTPException(status_code=400, detail=f"Service request is already {request.status}")

        slots = data.available_time_slots or []
        if data.status == SR_ACCEPTED and not slots:
            raise HTTPException(
                status_code=400, detail="At least one available time slot is required to accept"
            )

        request.provider_response = {
            "status": data.status,
            "message": sanitize_string(data.message),
            "available_time_slots": [slot.as_stored() for slot in slots],
            "responded_at": datetime.utcnow().isoformat(),
        }
        request.status = SR_ACCEPTED if data.status == SR_ACCEPTED else SR_DECLINED
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"✅ Provider {user.id} {request.status} service request {request.id}")

        if request.status == SR_ACCEPTED:
            await self._notify(
                request.clinic,
                "Service request accepted",
                f"The provider accepted the referral for {request.service_type} and offered {len(slots)} time slots.",
                request,
            )
            await self._notify(
                request.pet_owner,
                "Choose an appointment time",
                f"A provider accepted your clinic's referral for {request.service_type}. Pick a time slot.",
                request,
            )
        else:
            await self._notify(
                request.clinic,
                "Service request declined",
                f"The provider declined the referral for {request.service_type}.",
                request,
            )
        return request

    async def pet_owner_response(
        self, request_id: int, data: PetOwnerResponseCreate, user: User
    ) -> ServiceRequest:
        request = self._get(request_id)
        if request.pet_owner_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to respond to this service request")
        if request.status != SR_ACCEPTED:
            raise HTTPException(
                status_code=400, detail="Service request must be accepted by the provider first"
            )

        response = {
            "status": data.status,
            "message": sanitize_string(data.message),
            "selected_time_slot": None,
            "responded_at": datetime.utcnow().isoformat(),
        }

        if data.status == "declined":
            request.pet_owner_response = response
            request.status = SR_CANCELLED
            self.db.commit()
            self.db.refresh(request)
            logger.info(f"ℹ️ Pet owner {user.id} declined service request {request.id}")
            message = f"The pet owner declined the time slots for {request.service_type}."
            await self._notify(request.provider, "Service request declined by owner", message, request)
            await self._notify(request.clinic, "Service request declined by owner", message, request)
            return request

        slot = data.selected_time_slot
        if slot is None:
            raise HTTPException(status_code=400, detail="selected_time_slot is required")
        offered = (request.provider_response or {}).get("available_time_slots", [])
        if _slot_key(slot.as_stored()) not in {_slot_key(s) for s in offered}:
            raise HTTPException(status_code=400, detail="Selected time slot was not offered by the provider")

        appointment = self._create_appointment(request, slot)
        response["selected_time_slot"] = slot.as_stored()
        request.pet_owner_response = response
        request.status = SR_SCHEDULED
        request.scheduled_appointment_id = appointment.id
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"✅ Service request {request.id} scheduled as appointment {appointment.id}")

        when = slot.start_time.strftime("%a %b %d, %Y %H:%M")
        await self._notify(
            request.provider,
            "Appointment scheduled",
            f"The pet owner scheduled the referred {request.service_type} for {when} UTC.",
            request,
        )
        await self._notify(
            request.clinic,
            "Service request scheduled",
            f"The pet owner scheduled {request.service_type} with the provider for {when} UTC.",
            request,
        )
        return request

    def _create_appointment(self, request: ServiceRequest, slot: TimeSlot) -> Appointment:
        profile = self.repo.get_profile_for_user(self.db, request.provider_id)
        if not profile:
            raise HTTPException(status_code=400, detail="Provider has no profile to schedule against")

        service = None
        if request.service_id:
            service = self.repo.get_service(self.db, request.service_id, profile.id)
        if service is None:
            service = self.repo.get_first_active_service(self.db, profile.id)
        if service is None:
            raise HTTPException(status_code=400, detail="Provider has no services to schedule")

        conflict = AppointmentRepository.find_conflict(self.db, profile.id, slot.start_time, slot.end_time)
        if conflict:
            logger.info(f"⚠️ Referral slot conflicts with appointment {conflict.id} on profile {profile.id}")
            raise HTTPException(
                status_code=400, detail="The requested time conflicts with another appointment"
            )

        appointment = Appointment(
            pet_owner_id=request.pet_owner_id,
            provider_profile_id=profile.id,
            service_id=service.id,
            pet_id=request.pet_id,
            service_request_id=request.id,
            appointment_time=slot.start_time,
            estimated_end_time=slot.end_time,
            status=APPT_CONFIRMED,
            owner_notes=f"Clinic referral: {request.service_type}",
        )
        self.db.add(appointment)
        self.db.flush()
        return appointment

    async def update_status(
        self, request_id: int, data: ServiceRequestStatusUpdate, user: User
    ) -> ServiceRequest:
        request = self._get(request_id)
        if not self._is_party(request, user):
            raise HTTPException(status_code=403, detail="Not authorized to update this service request")

        if data.status == SR_COMPLETED and request.status != SR_SCHEDULED:
            raise HTTPException(status_code=400, detail="Only scheduled service requests can be completed")
        if data.status == SR_CANCELLED and request.status in SR_TERMINAL_STATUSES:
            raise HTTPException(status_code=400, detail=f"Service request is already {request.status}")

        request.status = data.status
        if data.status == SR_COMPLETED:
            request.result_notes = sanitize_string(data.result_notes)
            request.completed_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"✅ Service request {request.id} marked {request.status} by user {user.id}")

        for party in (request.clinic, request.provider, request.pet_owner):
            if party and party.id != user.id:
                await self._notify(
                    party,
                    f"Service request {request.status}",
                    f"The referral for {request.service_type} is now {request.status}.",
                    request,
                )
        return request

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_attachment(
        self,
        request_id: int,
        user: User,
        file_name: str,
        content_type: Optional[str],
        content: bytes,
    ) -> ServiceRequest:
        request = self._get(request_id)
        if not self._is_party(request, user):
            raise HTTPException(status_code=403, detail="Not authorized to access this service request")

        is_valid, error = validate_document(file_name, content_type, len(content))
        if not is_valid:
            raise HTTPException(status_code=400, detail=error)

        key = generate_attachment_key(request.id, file_name)
        try:
            upload_document(
                content, key, content_type, {"service_request_id": request.id, "uploaded_by": user.id}
            )
        except StorageError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

        attachment = {
            "file_name": file_name,
            "file_key": key,
            "file_url": f"s3://{S3_BUCKET_NAME}/{key}",
            "content_type": content_type,
            "uploaded_by": user.id,
            "uploaded_at": datetime.utcnow().isoformat(),
        }
        # Reassign so SQLAlchemy sees the JSON change
        request.attachments = [*(request.attachments or []), attachment]
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"✅ Attachment {key} added to service request {request.id}")
        return request

    def get_attachment_url(self, request_id: int, index: int, user: User) -> dict:
        request = self.get_request(request_id, user)
        attachments = request.attachments or []
        if index < 0 or index >= len(attachments):
            raise HTTPException(status_code=404, detail="Attachment not found")
        try:
            url = get_signed_url(attachments[index]["file_key"])
        except StorageError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return {"url": url, "file_name": attachments[index]["file_name"]}

    # ------------------------------------------------------------------
    # Admin stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        by_status = self.repo.count_by(self.db, ServiceRequest.status)
        by_urgency = self.repo.count_by(self.db, ServiceRequest.urgency)
        durations = [
            (r.completed_at - r.created_at).total_seconds() / 3600
            for r in self.repo.get_completed(self.db)
            if r.created_at
        ]
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_urgency": by_urgency,
            "average_completion_hours": round(sum(durations) / len(durations), 2) if durations else None,
        }
