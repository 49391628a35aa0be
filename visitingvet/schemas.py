import math
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .shared.validators import parse_iso_date, validate_time_string, validate_us_phone, validate_zip_code


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


# ============================================================================
# USERS
# ============================================================================


class UserResponse(BaseModel):
    id: int
    email: str
    name: Optional[str]
    role: str
    phone_number: Optional[str] = None
    carrier: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    is_verified: bool
    verification_status: str
    is_banned: bool
    ban_reason: Optional[str] = None
    warning_level: int = 0
    email_notifications_enabled: bool
    sms_notifications_enabled: bool
    mfa_enabled: bool = False
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    id: int
    email: str
    name: Optional[str]
    role: str

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = None
    carrier: Optional[str] = Field(None, max_length=50)
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    zip_code: Optional[str] = None
    email_notifications_enabled: Optional[bool] = None
    sms_notifications_enabled: Optional[bool] = None

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("zip_code")
    @classmethod
    def validate_zip(cls, v):
        return validate_zip_code(v)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


class NotificationPreferences(BaseModel):
    email_notifications_enabled: bool
    sms_notifications_enabled: bool


# ============================================================================
# PROVIDER PROFILES & SERVICES
# ============================================================================


class ProviderProfileUpsert(BaseModel):
    business_name: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = Field(None, max_length=5000)
    credentials: Optional[str] = None
    years_experience: Optional[int] = Field(None, ge=0, le=80)
    license_info: Optional[str] = None
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    insurance_info: Optional[str] = None
    service_area_description: Optional[str] = None
    service_area_zip_codes: Optional[List[str]] = None
    service_area_radius_miles: Optional[int] = Field(None, ge=0)
    animal_types: Optional[List[str]] = None
    specialty_services: Optional[List[str]] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    business_street: Optional[str] = None
    business_city: Optional[str] = None
    business_state: Optional[str] = None
    business_zip_code: Optional[str] = None

    @field_validator("contact_phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("service_area_zip_codes")
    @classmethod
    def validate_zip_codes(cls, v):
        if v:
            return [validate_zip_code(z) for z in v]
        return v


class ServiceResponse(BaseModel):
    id: int
    provider_profile_id: int
    name: str
    description: Optional[str]
    estimated_duration_minutes: int
    price: Optional[float]
    price_type: Optional[str]
    offered_location: Optional[str]
    animal_type: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class ProviderProfileResponse(BaseModel):
    id: int
    user_id: int
    business_name: Optional[str]
    bio: Optional[str]
    credentials: Optional[str]
    years_experience: Optional[int]
    license_info: Optional[str]
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    insurance_info: Optional[str]
    service_area_description: Optional[str]
    service_area_zip_codes: Optional[List[str]]
    service_area_radius_miles: Optional[int]
    animal_types: Optional[List[str]]
    specialty_services: Optional[List[str]]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    business_city: Optional[str] = None
    business_state: Optional[str] = None
    average_rating: Optional[float]
    number_of_reviews: int
    user: Optional[UserSummary] = None
    services: List[ServiceResponse] = []

    class Config:
        from_attributes = True


class ProviderSearchResponse(BaseModel):
    items: List[ProviderProfileResponse]
    pagination: Pagination


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    estimated_duration_minutes: int = Field(..., gt=0, le=24 * 60)
    price: Optional[float] = Field(None, ge=0)
    price_type: Literal["Fixed", "Starting At", "Hourly", "Contact for Price"] = "Fixed"
    offered_location: Literal["Home Visit", "Clinic", "Virtual", "Mixed"] = "Home Visit"
    animal_type: Optional[str] = None


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    estimated_duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    price: Optional[float] = Field(None, ge=0)
    price_type: Optional[Literal["Fixed", "Starting At", "Hourly", "Contact for Price"]] = None
    offered_location: Optional[Literal["Home Visit", "Clinic", "Virtual", "Mixed"]] = None
    animal_type: Optional[str] = None
    is_active: Optional[bool] = None


# ============================================================================
# AVAILABILITY
# ============================================================================


class DaySchedule(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Sunday
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v):
        return validate_time_string(v)


class SpecialDate(BaseModel):
    date: str  # YYYY-MM-DD
    is_available: bool = False
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    note: Optional[str] = Field(None, max_length=500)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        # Stored zero-padded so it matches the calendar day lookups
        return parse_iso_date(v).isoformat()

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v):
        if v is not None:
            return validate_time_string(v)
        return v


class AvailabilityUpdate(BaseModel):
    weekly_schedule: Optional[List[DaySchedule]] = None
    special_dates: Optional[List[SpecialDate]] = None


class AvailabilityResponse(BaseModel):
    weekly_schedule: List[dict]
    special_dates: List[dict] = []


class PublicAvailabilityResponse(BaseModel):
    weekly_schedule: List[dict]


class OpenSlotsResponse(BaseModel):
    date: str
    duration_minutes: int
    slots: List[datetime]


# ============================================================================
# PETS
# ============================================================================


class PetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    species: str = Field(..., min_length=1, max_length=50)
    breed: Optional[str] = Field(None, max_length=100)
    age_years: Optional[float] = Field(None, ge=0, le=100)
    weight_kg: Optional[float] = Field(None, gt=0)
    sex: Optional[str] = None
    medical_notes: Optional[str] = Field(None, max_length=5000)


class PetUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    species: Optional[str] = Field(None, min_length=1, max_length=50)
    breed: Optional[str] = Field(None, max_length=100)
    age_years: Optional[float] = Field(None, ge=0, le=100)
    weight_kg: Optional[float] = Field(None, gt=0)
    sex: Optional[str] = None
    medical_notes: Optional[str] = Field(None, max_length=5000)


class PetResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    species: str
    breed: Optional[str]
    age_years: Optional[float]
    weight_kg: Optional[float]
    sex: Optional[str]
    medical_notes: Optional[str]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# NOTIFICATIONS
# ============================================================================


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    is_read: bool
    reference_type: Optional[str]
    reference_id: Optional[int]
    action_url: Optional[str]
    sent_via_email: bool
    sent_via_sms: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    unread_count: int
    pagination: Pagination


# ============================================================================
# REVIEWS
# ============================================================================


class ReviewCreate(BaseModel):
    appointment_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=1000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1, max_length=1000)


class ReviewModeration(BaseModel):
    status: Literal["Approved", "Rejected"]
    moderator_notes: Optional[str] = Field(None, max_length=500)


class ReviewResponseCreate(BaseModel):
    response_comment: str = Field(..., min_length=1, max_length=1000)


class ReviewResponse(BaseModel):
    id: int
    reviewer_id: int
    provider_profile_id: int
    appointment_id: int
    rating: int
    comment: str
    moderation_status: str
    moderator_notes: Optional[str] = None
    provider_response_comment: Optional[str] = None
    provider_response_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    reviewer: Optional[UserSummary] = None

    class Config:
        from_attributes = True


# ============================================================================
# SETTINGS
# ============================================================================


class SettingUpdate(BaseModel):
    value: Any
    description: Optional[str] = None
    value_type: Optional[Literal["string", "number", "boolean", "json", "array"]] = None
    category: Optional[str] = None


class SettingResponse(BaseModel):
    key: str
    value: Any
    description: Optional[str]
    value_type: str
    is_editable: bool
    category: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# ADMIN
# ============================================================================


class AdminUserCreate(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(..., min_length=1, max_length=255)
    role: Literal["PetOwner", "MVSProvider", "Clinic", "Admin"]
    phone_number: Optional[str] = None
    admin_permissions: Optional[List[str]] = None

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v


class AdminUserList(BaseModel):
    items: List[UserResponse]
    pagination: Pagination


class BanRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class WarnRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class BulkActionRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1, max_length=100)
    action: Literal["ban", "unban", "verify"]
    reason: Optional[str] = Field(None, max_length=1000)


class BulkActionResult(BaseModel):
    processed: int
    succeeded: int
    failed: List[dict]


class AdminActionLogResponse(BaseModel):
    id: int
    admin_user_id: int
    target_user_id: Optional[int]
    action_type: str
    reason: Optional[str]
    details: Optional[dict]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class DocumentAccessLogResponse(BaseModel):
    id: int
    admin_user_id: int
    target_user_id: Optional[int]
    document_key: str
    document_type: Optional[str]
    action: str
    ip_address: Optional[str]
    timestamp: Optional[datetime]

    class Config:
        from_attributes = True


class UserActivityLogResponse(BaseModel):
    id: int
    user_id: int
    action: str
    status: str
    ip_address: Optional[str]
    details: Optional[dict]
    error_message: Optional[str]
    timestamp: Optional[datetime]

    class Config:
        from_attributes = True


class AdminActionLogPage(BaseModel):
    items: List[AdminActionLogResponse]
    pagination: Pagination


class DocumentAccessLogPage(BaseModel):
    items: List[DocumentAccessLogResponse]
    pagination: Pagination


class UserActivityLogPage(BaseModel):
    items: List[UserActivityLogResponse]
    pagination: Pagination
