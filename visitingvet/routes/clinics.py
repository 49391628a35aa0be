import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..auth import require_roles
from ..constants import ROLE_CLINIC, ROLE_PROVIDER
from ..database import get_db
from ..domain.appointments.schemas import AppointmentResponse
from ..models import Appointment, ProviderProfile, ServiceRequest, User
from ..schemas import ProviderProfileResponse
from ..shared.validators import parse_iso_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clinics", tags=["Clinics"])


@router.get("/appointments", response_model=list[AppointmentResponse])
async def get_clinic_appointments(
    date: str = Query(..., description="YYYY-MM-DD (UTC)"),
    current_user: User = Depends(require_roles(ROLE_CLINIC)),
    db: Session = Depends(get_db),
):
    """Appointments on a day that came from this clinic's referrals"""
    try:
        day = parse_iso_date(date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    day_start = datetime(day.year, day.month, day.day)
    referral_ids = db.query(ServiceRequest.id).filter(ServiceRequest.clinic_id == current_user.id)
    scheduled_ids = db.query(ServiceRequest.scheduled_appointment_id).filter(
        ServiceRequest.clinic_id == current_user.id,
        ServiceRequest.scheduled_appointment_id.isnot(None),
    )
    appointments = (
        db.query(Appointment)
        .options(joinedload(Appointment.service), joinedload(Appointment.pet))
        .filter(
            or_(Appointment.service_request_id.in_(referral_ids), Appointment.id.in_(scheduled_ids)),
            Appointment.appointment_time >= day_start,
            Appointment.appointment_time < day_start + timedelta(days=1),
        )
        .order_by(Appointment.appointment_time.asc())
        .all()
    )
    logger.info(f"🔍 Clinic {current_user.id} has {len(appointments)} referral appointments on {date}")
    return appointments


@router.get("/providers", response_model=list[ProviderProfileResponse])
async def get_referral_providers(
    current_user: User = Depends(require_roles(ROLE_CLINIC)),
    db: Session = Depends(get_db),
):
    """Verified, active providers a clinic can refer to"""
    return (
        db.query(ProviderProfile)
        .join(User, ProviderProfile.user_id == User.id)
        .options(joinedload(ProviderProfile.user), joinedload(ProviderProfile.services))
        .filter(User.role == ROLE_PROVIDER, User.is_verified.is_(True), User.is_banned.is_(False))
        .order_by(ProviderProfile.business_name.asc())
        .all()
    )
