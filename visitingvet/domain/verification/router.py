"""Verification router - document upload for providers and the admin review queue"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy.orm import Session

from ...auth import get_client_ip, require_permission, require_roles
from ...constants import ROLE_CLINIC, ROLE_PROVIDER
from ...database import get_db
from ...models import User
from ...schemas import MessageResponse
from ...shared.validators import parse_iso_date
from .schemas import (
    AnnotationsResponse,
    AnnotationsUpdate,
    ApproveRequest,
    PendingVerificationList,
    RejectRequest,
    SignedUrlResponse,
    VerificationDocumentResponse,
    VerificationMetrics,
    VerificationRequestResponse,
    VerificationStatusResponse,
    VerificationSubmit,
)
from .service import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verification", tags=["Verification"])
admin_router = APIRouter(prefix="/admin/verifications", tags=["Admin Verification"])


def get_verification_service(db: Session = Depends(get_db)) -> VerificationService:
    """Dependency injection for VerificationService"""
    return VerificationService(db)


# ============================================
# Submitter endpoints
# ============================================


@router.post("/documents", response_model=VerificationDocumentResponse, status_code=201)
async def upload_verification_document(
    document_type: str = Form(...),
    expiration_date: Optional[str] = Form(None),
    file: UploadFile = File(...),
    current_user: User = Depends(require_roles(ROLE_PROVIDER, ROLE_CLINIC)),
    service: VerificationService = Depends(get_verification_service),
):
    """Upload a license or registration document to private storage"""
    expires = None
    if expiration_date:
        try:
            expires = parse_iso_date(expiration_date)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    content = await file.read()
    return service.upload_document(
        current_user, document_type, file.filename, file.content_type, content, expires
    )


@router.delete("/documents/{document_id}", response_model=MessageResponse)
async def delete_verification_document(
    document_id: int,
    current_user: User = Depends(require_roles(ROLE_PROVIDER, ROLE_CLINIC)),
    service: VerificationService = Depends(get_verification_service),
):
    service.delete_own_document(current_user, document_id)
    return {"message": "Document removed"}


@router.post("/submit", response_model=VerificationRequestResponse)
async def submit_verification(
    data: VerificationSubmit,
    current_user: User = Depends(require_roles(ROLE_PROVIDER, ROLE_CLINIC)),
    service: VerificationService = Depends(get_verification_service),
):
    return await service.submit(current_user, data)


@router.get("/me", response_model=VerificationStatusResponse)
async def get_my_verification(
    current_user: User = Depends(require_roles(ROLE_PROVIDER, ROLE_CLINIC)),
    service: VerificationService = Depends(get_verification_service),
):
    return service.get_status(current_user)


# ============================================
# Admin review queue
# ============================================


@admin_router.get("/pending", response_model=PendingVerificationList)
async def list_pending_verifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    priority: Optional[Literal["Standard", "Expedited"]] = Query(None),
    current_user: User = Depends(require_permission("verifications:read")),
    service: VerificationService = Depends(get_verification_service),
):
    """Pending requests, oldest first, with live SLA status"""
    return service.list_pending(priority, page, limit)


@admin_router.get("/metrics", response_model=VerificationMetrics)
async def get_verification_metrics(
    current_user: User = Depends(require_permission("verifications:read_metrics")),
    service: VerificationService = Depends(get_verification_service),
):
    return service.get_metrics()


@admin_router.put("/{request_id}/approve", response_model=VerificationRequestResponse)
async def approve_verification(
    request_id: int,
    data: Optional[ApproveRequest] = None,
    current_user: User = Depends(require_permission("verifications:manage")),
    service: VerificationService = Depends(get_verification_service),
):
    return await service.approve(request_id, current_user, data.notes if data else None)


@admin_router.put("/{request_id}/reject", response_model=VerificationRequestResponse)
async def reject_verification(
    request_id: int,
    data: RejectRequest,
    current_user: User = Depends(require_permission("verifications:manage")),
    service: VerificationService = Depends(get_verification_service),
):
    return await service.reject(request_id, current_user, data.reason)


@admin_router.get("/documents/{document_id}/signed-url", response_model=SignedUrlResponse)
async def get_document_signed_url(
    document_id: int,
    request: Request,
    action: Literal["VIEW", "DOWNLOAD"] = Query("VIEW"),
    current_user: User = Depends(require_permission("documents:read")),
    service: VerificationService = Depends(get_verification_service),
):
    """Short-lived URL for a private document; every call is written to the access log"""
    return service.get_document_url(document_id, current_user, action, get_client_ip(request))


@admin_router.get("/documents/{document_id}/annotations", response_model=AnnotationsResponse)
async def get_document_annotations(
    document_id: int,
    current_user: User = Depends(require_permission("documents:read")),
    service: VerificationService = Depends(get_verification_service),
):
    return service.get_annotations(document_id)


@admin_router.put("/documents/{document_id}/annotations", response_model=AnnotationsResponse)
async def save_document_annotations(
    document_id: int,
    data: AnnotationsUpdate,
    current_user: User = Depends(require_permission("verifications:manage")),
    service: VerificationService = Depends(get_verification_service),
):
    return service.replace_annotations(document_id, data.annotations, current_user)
