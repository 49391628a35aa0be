"""Appointment router - FastAPI endpoints for booking and managing appointments"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...constants import APPOINTMENT_STATUSES, ROLE_PET_OWNER, ROLE_PROVIDER
from ...database import get_db
from ...models import User
from .schemas import AppointmentCancel, AppointmentCreate, AppointmentResponse, AppointmentStatusUpdate
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

STATUS_PATTERN = "^(" + "|".join(APPOINTMENT_STATUSES) + ")$"


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Request an appointment with a provider"""
    return await service.create_appointment(data, current_user)


@router.get("/my-appointments", response_model=list[AppointmentResponse])
async def get_my_appointments(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_for_owner(current_user, status)


@router.get("/provider", response_model=list[AppointmentResponse])
async def get_provider_appointments(
    status: Optional[str] = Query(None, pattern=STATUS_PATTERN),
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_for_provider(current_user, status)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id, current_user)


@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Provider confirms, completes or cancels an appointment"""
    return await service.update_status(appointment_id, data, current_user)


@router.put("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    data: Optional[AppointmentCancel] = None,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Pet owner cancels their own appointment"""
    return await service.cancel_by_owner(appointment_id, data or AppointmentCancel(), current_user)
