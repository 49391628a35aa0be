"""Service request router - clinic referral endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...constants import ROLE_ADMIN, ROLE_CLINIC, ROLE_PET_OWNER, ROLE_PROVIDER
from ...database import get_db
from ...models import User
from .schemas import (
    PetOwnerResponseCreate,
    ProviderResponseCreate,
    ServiceRequestCreate,
    ServiceRequestListResponse,
    ServiceRequestResponse,
    ServiceRequestStats,
    ServiceRequestStatusUpdate,
)
from .service import ServiceRequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/service-requests", tags=["Service Requests"])


def get_service_request_service(db: Session = Depends(get_db)) -> ServiceRequestService:
    """Dependency injection for ServiceRequestService"""
    return ServiceRequestService(db)


@router.post("", response_model=ServiceRequestResponse, status_code=201)
async def create_service_request(
    data: ServiceRequestCreate,
    current_user: User = Depends(require_roles(ROLE_CLINIC)),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    """Clinic refers a pet owner to a provider"""
    return await service.create_request(data, current_user)


@router.get("", response_model=ServiceRequestListResponse)
async def list_service_requests(
    status: Optional[str] = Query(None, pattern="^(pending|accepted|declined|scheduled|completed|cancelled)$"),
    urgency: Optional[str] = Query(None, pattern="^(low|medium|high|emergency)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return service.list_requests(current_user, status, urgency, page, limit)


# Declared before /{request_id} so "admin" is not parsed as an id
@router.get("/admin/stats", response_model=ServiceRequestStats)
async def get_service_request_stats(
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return service.get_stats()


@router.get("/{request_id}", response_model=ServiceRequestResponse)
async def get_service_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return service.get_request(request_id, current_user)


@router.put("/{request_id}/provider-response", response_model=ServiceRequestResponse)
async def provider_response(
    request_id: int,
    data: ProviderResponseCreate,
    current_user: User = Depends(require_roles(ROLE_PROVIDER)),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return await service.provider_response(request_id, data, current_user)


@router.put("/{request_id}/pet-owner-response", response_model=ServiceRequestResponse)
async def pet_owner_response(
    request_id: int,
    data: PetOwnerResponseCreate,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return await service.pet_owner_response(request_id, data, current_user)


@router.put("/{request_id}/status", response_model=ServiceRequestResponse)
async def update_service_request_status(
    request_id: int,
    data: ServiceRequestStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return await service.update_status(request_id, data, current_user)


@router.post("/{request_id}/attachments", response_model=ServiceRequestResponse)
async def upload_attachment(
    request_id: int,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    content = await file.read()
    return service.add_attachment(request_id, current_user, file.filename, file.content_type, content)


@router.get("/{request_id}/attachments/{index}/url")
async def get_attachment_url(
    request_id: int,
    index: int,
    current_user: User = Depends(get_current_user),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return service.get_attachment_url(request_id, index, current_user)
