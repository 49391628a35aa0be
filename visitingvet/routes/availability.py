import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import require_roles
from ..constants import ROLE_PROVIDER
from ..database import get_db
from ..domain.appointments.repository import AppointmentRepository
from ..models import Availability, ProviderProfile, Service, User
from ..schemas import (
    AvailabilityResponse,
    AvailabilityUpdate,
    OpenSlotsResponse,
    PublicAvailabilityResponse,
)
from ..services.availability_service import open_slots, validate_weekly_schedule
from ..shared.validators import parse_iso_date
from ..utils.sanitization import sanitize_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])


def _get_own_profile(db: Session, user: User) -> ProviderProfile:
    profile = db.query(ProviderProfile).filter(ProviderProfile.user_id == user.id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Provider profile not found. Create your profile first.")
    return profile


@router.get("/me", response_model=AvailabilityResponse)
async def get_my_availability(
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    profile = _get_own_profile(db, current_user)
    availability = profile.availability
    if not availability:
        return {"weekly_schedule": [], "special_dates": []}
    return {
        "weekly_schedule": availability.weekly_schedule or [],
        "special_dates": availability.special_dates or [],
    }


@router.post("/me", response_model=AvailabilityResponse)
async def set_my_availability(
    data: AvailabilityUpdate,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    """Replace the weekly schedule and/or special dates that were sent"""
    profile = _get_own_profile(db, current_user)

    weekly = None
    if data.weekly_schedule is not None:
        try:
            weekly = validate_weekly_schedule([entry.model_dump() for entry in data.weekly_schedule])
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    availability = profile.availability
    if availability is None:
        availability = Availability(provider_profile_id=profile.id, weekly_schedule=[], special_dates=[])
        db.add(availability)

    if weekly is not None:
        availability.weekly_schedule = weekly
    if data.special_dates is not None:
        availability.special_dates = [
            sanitize_dict(special.model_dump(exclude_none=True)) for special in data.special_dates
        ]

    db.commit()
    db.refresh(availability)
    logger.info(f"✅ Availability saved for profile {profile.id}")
    return {
        "weekly_schedule": availability.weekly_schedule,
        "special_dates": availability.special_dates,
    }


@router.get("/{profile_id}", response_model=PublicAvailabilityResponse)
async def get_public_availability(profile_id: int, db: Session = Depends(get_db)):
    availability = db.query(Availability).filter(Availability.provider_profile_id == profile_id).first()
    if not availability:
        raise HTTPException(status_code=404, detail="Availability not found for this provider")
    return {"weekly_schedule": availability.weekly_schedule or []}


@router.get("/{profile_id}/slots", response_model=OpenSlotsResponse)
async def get_open_slots(
    profile_id: int,
    date: str = Query(..., description="YYYY-MM-DD"),
    service_id: int = Query(...),
    step_minutes: int = Query(30, ge=5, le=240),
    db: Session = Depends(get_db),
):
    """Start times on a date where the service fits the provider's hours and bookings"""
    try:
        day = parse_iso_date(date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    availability = db.query(Availability).filter(Availability.provider_profile_id == profile_id).first()
    if not availability:
        raise HTTPException(status_code=404, detail="Provider has no availability set")

    service = (
        db.query(Service)
        .filter(Service.id == service_id, Service.provider_profile_id == profile_id, Service.is_active.is_(True))
        .first()
    )
    if not service:
        raise HTTPException(status_code=404, detail="Service not found for this provider")

    day_start = datetime(day.year, day.month, day.day)
    booked = AppointmentRepository.get_booked_intervals(db, profile_id, day_start, day_start + timedelta(days=1))
    now = datetime.utcnow()
    slots = [
        slot
        for slot in open_slots(availability, day, service.estimated_duration_minutes, booked, step_minutes)
        if slot > now
    ]
    return {"date": date, "duration_minutes": service.estimated_duration_minutes, "slots": slots}
