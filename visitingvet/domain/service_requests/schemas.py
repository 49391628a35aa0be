"""Service request domain schemas - clinic referral payloads"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...schemas import Pagination, UserSummary
from ...shared.validators import to_naive_utc


class TimeSlot(BaseModel):
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    def as_stored(self) -> dict:
        return {"start_time": self.start_time.isoformat(), "end_time": self.end_time.isoformat()}


class ServiceRequestCreate(BaseModel):
    """Clinic referral to a provider on behalf of a pet owner"""

    provider_id: int
    pet_owner_id: int
    pet_id: Optional[int] = None
    service_id: Optional[int] = None
    service_type: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)
    urgency: Literal["low", "medium", "high", "emergency"] = "medium"
    preferred_dates: Optional[List[datetime]] = None


class ProviderResponseCreate(BaseModel):
    status: Literal["accepted", "declined"]
    message: Optional[str] = Field(None, max_length=2000)
    available_time_slots: Optional[List[TimeSlot]] = None


class PetOwnerResponseCreate(BaseModel):
    status: Literal["selected", "declined"]
    selected_time_slot: Optional[TimeSlot] = None
    message: Optional[str] = Field(None, max_length=2000)


class ServiceRequestStatusUpdate(BaseModel):
    status: Literal["completed", "cancelled"]
    result_notes: Optional[str] = Field(None, max_length=5000)


class ServiceRequestResponse(BaseModel):
    id: int
    clinic_id: int
    provider_id: int
    pet_owner_id: int
    pet_id: Optional[int]
    service_id: Optional[int] = None
    service_type: str
    description: str
    urgency: str
    preferred_dates: Optional[list] = None
    status: str
    provider_response: Optional[dict] = None
    pet_owner_response: Optional[dict] = None
    scheduled_appointment_id: Optional[int] = None
    result_notes: Optional[str] = None
    attachments: Optional[list] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    clinic: Optional[UserSummary] = None
    provider: Optional[UserSummary] = None
    pet_owner: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class ServiceRequestListResponse(BaseModel):
    items: List[ServiceRequestResponse]
    pagination: Pagination


class ServiceRequestStats(BaseModel):
    total: int
    by_status: dict
    by_urgency: dict
    average_completion_hours: Optional[float]
