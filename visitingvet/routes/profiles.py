import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session, joinedload

from ..auth import require_roles
from ..constants import ROLE_PROVIDER
from ..database import get_db
from ..models import Appointment, ProviderProfile, Service, User
from ..schemas import (
    MessageResponse,
    ProviderProfileResponse,
    ProviderProfileUpsert,
    ProviderSearchResponse,
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    build_pagination,
)
from ..utils.sanitization import sanitize_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles/visiting-vet", tags=["Provider Profiles"])
services_router = APIRouter(prefix="/services", tags=["Services"])


def _split_csv(value: Optional[str]) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _json_contains(column, item: str):
    """Match one element of a JSON string list stored in column"""
    return cast(column, String).ilike(f'%"{item}"%')


def _get_own_profile(db: Session, user: User) -> ProviderProfile:
    profile = db.query(ProviderProfile).filter(ProviderProfile.user_id == user.id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Provider profile not found. Create your profile first.")
    return profile


# ============================================
# Provider profiles
# ============================================


@router.post("", response_model=ProviderProfileResponse)
async def upsert_my_profile(
    data: ProviderProfileUpsert,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    """Create the caller's profile, or update the fields that were sent"""
    values = sanitize_dict(data.model_dump(exclude_unset=True))
    profile = db.query(ProviderProfile).filter(ProviderProfile.user_id == current_user.id).first()
    created = profile is None
    if created:
        profile = ProviderProfile(user_id=current_user.id)
        db.add(profile)

    for field, value in values.items():
        setattr(profile, field, value)

    db.commit()
    db.refresh(profile)
    logger.info(f"✅ {'Created' if created else 'Updated'} provider profile {profile.id} for user {current_user.id}")
    return profile


@router.get("/me", response_model=ProviderProfileResponse)
async def get_my_profile(
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    return _get_own_profile(db, current_user)


@router.get("/search", response_model=ProviderSearchResponse)
async def search_providers(
    search: Optional[str] = Query(None, max_length=100),
    animal_types: Optional[str] = Query(None, description="Comma separated"),
    specialty_services: Optional[str] = Query(None, description="Comma separated"),
    location: Optional[str] = Query(None, description="ZIP code"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Public directory of providers who are not banned"""
    query = (
        db.query(ProviderProfile)
        .join(User, ProviderProfile.user_id == User.id)
        .filter(User.role == ROLE_PROVIDER, User.is_banned.is_(False))
    )

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                ProviderProfile.business_name.ilike(pattern),
                ProviderProfile.bio.ilike(pattern),
                ProviderProfile.service_area_description.ilike(pattern),
                User.name.ilike(pattern),
            )
        )
    for animal in _split_csv(animal_types):
        query = query.filter(_json_contains(ProviderProfile.animal_types, animal))
    for specialty in _split_csv(specialty_services):
        query = query.filter(_json_contains(ProviderProfile.specialty_services, specialty))
    if location:
        zip_code = location.strip()
        query = query.filter(
            or_(
                _json_contains(ProviderProfile.service_area_zip_codes, zip_code),
                ProviderProfile.business_zip_code == zip_code,
            )
        )

    total = query.count()
    items = (
        query.options(joinedload(ProviderProfile.user), joinedload(ProviderProfile.services))
        .order_by(ProviderProfile.created_at.desc(), ProviderProfile.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    logger.info(f"🔍 Provider search matched {total} profiles")
    return {"items": items, "pagination": build_pagination(page, limit, total)}


@router.get("/{profile_id}", response_model=ProviderProfileResponse)
async def get_profile(profile_id: int, db: Session = Depends(get_db)):
    profile = db.query(ProviderProfile).filter(ProviderProfile.id == profile_id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Provider profile not found")
    return profile


@router.get("/{profile_id}/services", response_model=list[ServiceResponse])
async def list_profile_services(profile_id: int, db: Session = Depends(get_db)):
    if not db.query(ProviderProfile.id).filter(ProviderProfile.id == profile_id).first():
        raise HTTPException(status_code=404, detail="Provider profile not found")
    return (
        db.query(Service)
        .filter(Service.provider_profile_id == profile_id, Service.is_active.is_(True))
        .order_by(Service.name.asc())
        .all()
    )


# ============================================
# Services offered by a provider
# ============================================


def _get_own_service(db: Session, service_id: int, user: User) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    if service.profile.user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only manage your own services")
    return service


@services_router.post("", response_model=ServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    profile = _get_own_profile(db, current_user)
    service = Service(provider_profile_id=profile.id, **sanitize_dict(data.model_dump()))
    db.add(service)
    db.commit()
    db.refresh(service)
    logger.info(f"✅ Service {service.id} created on profile {profile.id}")
    return service


@services_router.put("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    service = _get_own_service(db, service_id, current_user)
    for field, value in sanitize_dict(data.model_dump(exclude_unset=True)).items():
        setattr(service, field, value)
    db.commit()
    db.refresh(service)
    return service


@services_router.delete("/{service_id}", response_model=MessageResponse)
async def delete_service(
    service_id: int,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    db: Session = Depends(get_db),
):
    service = _get_own_service(db, service_id, current_user)
    if db.query(Appointment.id).filter(Appointment.service_id == service.id).first():
        # Booked services stay for appointment history
        service.is_active = False
        db.commit()
        logger.info(f"ℹ️ Service {service_id} has bookings, deactivated instead of deleted")
        return {"message": "Service deactivated"}

    db.delete(service)
    db.commit()
    logger.info(f"🗑️ Service {service_id} deleted by user {current_user.id}")
    return {"message": "Service deleted"}
