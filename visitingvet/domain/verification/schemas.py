"""Verification domain schemas - document submission, review and annotations"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from ...schemas import Pagination, UserSummary


class VerificationSubmit(BaseModel):
    priority: Literal["Standard", "Expedited"] = "Standard"
    notes: Optional[str] = Field(None, max_length=2000)


class ApproveRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class SLAInfo(BaseModel):
    status: str
    elapsed_hours: Optional[float]
    time_remaining_hours: Optional[float]
    goal_hours: int


class VerificationDocumentResponse(BaseModel):
    id: int
    document_type: str
    original_file_name: Optional[str]
    content_type: Optional[str]
    size_bytes: Optional[int]
    expiration_date: Optional[date]
    submitted_at: Optional[datetime]

    class Config:
        from_attributes = True


class VerificationRequestResponse(BaseModel):
    id: int
    user_id: int
    priority: str
    status: str
    notes: Optional[str]
    submitted_at: Optional[datetime] = None
    reviewed_by_id: Optional[int]
    reviewed_at: Optional[datetime]
    completed_at: Optional[datetime]
    sla_status: str
    sla_processing_time_hours: Optional[float]
    risk_score: Optional[int]
    risk_level: Optional[str]
    credential_status: Optional[str]
    created_at: Optional[datetime]
    documents: List[VerificationDocumentResponse] = []

    class Config:
        from_attributes = True


class VerificationStatusResponse(BaseModel):
    verification_status: str
    is_verified: bool
    request: Optional[VerificationRequestResponse] = None
    sla: Optional[SLAInfo] = None


class PendingVerificationItem(VerificationRequestResponse):
    user: UserSummary
    sla: SLAInfo


class PendingVerificationList(BaseModel):
    items: List[PendingVerificationItem]
    pagination: Pagination


class VerificationMetrics(BaseModel):
    by_status: dict
    pending_by_sla_status: dict
    average_processing_hours: Optional[float]
    approval_rate: float
    breach_rate: float
    total_completed: int


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int


class Annotation(BaseModel):
    """One mark made in the document viewer"""

    id: Optional[str] = None
    type: Literal["highlight", "note", "drawing"]
    page: int = Field(..., ge=1)
    x: float
    y: float
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)
    text: Optional[str] = Field(None, max_length=2000)
    path: Optional[List[List[float]]] = None
    color: Optional[str] = Field(None, max_length=20)
    stroke_width: Optional[float] = Field(None, gt=0)
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_shape(self):
        if self.type == "note" and not self.text:
            raise ValueError("Note annotations require text")
        if self.type == "drawing" and not self.path:
            raise ValueError("Drawing annotations require a path")
        return self


class AnnotationsUpdate(BaseModel):
    annotations: List[Annotation]


class AnnotationsResponse(BaseModel):
    document_id: int
    annotations: List[dict]
