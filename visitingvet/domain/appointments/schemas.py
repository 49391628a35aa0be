"""Appointment domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import to_naive_utc


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    provider_profile_id: int
    service_id: int
    appointment_time: datetime
    pet_id: Optional[int] = None
    location_details: Optional[str] = Field(None, max_length=1000)
    owner_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("appointment_time")
    @classmethod
    def normalize_time(cls, v):
        return to_naive_utc(v)


class AppointmentStatusUpdate(BaseModel):
    """Provider-driven status change"""

    status: Literal["Confirmed", "Cancelled", "Completed"]
    provider_notes: Optional[str] = Field(None, max_length=2000)
    cancellation_reason: Optional[str] = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class AppointmentPetSummary(BaseModel):
    id: int
    name: str
    species: str

    class Config:
        from_attributes = True


class AppointmentServiceSummary(BaseModel):
    id: int
    name: str
    estimated_duration_minutes: int
    price: Optional[float] = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: int
    pet_owner_id: int
    provider_profile_id: int
    service_id: int
    pet_id: Optional[int]
    service_request_id: Optional[int] = None
    appointment_time: datetime
    estimated_end_time: datetime
    status: str
    location_details: Optional[str]
    owner_notes: Optional[str]
    provider_notes: Optional[str]
    cancellation_reason: Optional[str]
    created_at: Optional[datetime] = None
    service: Optional[AppointmentServiceSummary] = None
    pet: Optional[AppointmentPetSummary] = None

    class Config:
        from_attributes = True
