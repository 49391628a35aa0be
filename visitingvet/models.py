from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .constants import (
    APPT_REQUESTED,
    PRIORITY_STANDARD,
    REVIEW_PENDING,
    SLA_NOT_APPLICABLE,
    SR_PENDING,
    VERIFICATION_NOT_SUBMITTED,
    VERIFICATION_PENDING,
)
from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, index=True)  # PetOwner, MVSProvider, Clinic, Admin
    phone_number = Column(String(20), nullable=True)  # E.164
    carrier = Column(String(50), nullable=True)
    sms_notifications_enabled = Column(Boolean, default=False, nullable=False)
    email_notifications_enabled = Column(Boolean, default=True, nullable=False)

    # Mailing address, used by verification risk scoring
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)

    is_verified = Column(Boolean, default=False, nullable=False)
    verification_status = Column(String(20), default=VERIFICATION_NOT_SUBMITTED, nullable=False)

    # Moderation
    is_banned = Column(Boolean, default=False, nullable=False, index=True)
    ban_reason = Column(Text, nullable=True)
    banned_at = Column(DateTime, nullable=True)
    warning_level = Column(Integer, default=0, nullable=False)

    # Session security
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    last_activity = Column(DateTime, nullable=True)
    session_timeout_minutes = Column(Integer, nullable=True)  # None = role default

    # TOTP MFA
    mfa_enabled = Column(Boolean, default=False, nullable=False)
    mfa_secret = Column(String(64), nullable=True)
    mfa_backup_codes = Column(JSON, nullable=True)  # Fernet-encrypted codes

    admin_permissions = Column(JSON, nullable=True)  # None = every admin permission

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider_profile = relationship(
        "ProviderProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    pets = relationship("Pet", back_populates="owner", cascade="all, delete-orphan")
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )
    verification_request = relationship(
        "VerificationRequest",
        back_populates="user",
        uselist=False,
        foreign_keys="VerificationRequest.user_id",
        cascade="all, delete-orphan",
    )


class ProviderProfile(Base):
    __tablename__ = "provider_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    business_name = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    credentials = Column(String(255), nullable=True)  # e.g. DVM, CVT
    years_experience = Column(Integer, nullable=True)
    license_info = Column(Text, nullable=True)
    license_number = Column(String(100), nullable=True)
    license_state = Column(String(50), nullable=True)
    insurance_info = Column(Text, nullable=True)
    service_area_description = Column(Text, nullable=True)
    service_area_zip_codes = Column(JSON, nullable=True)
    service_area_radius_miles = Column(Integer, nullable=True)
    animal_types = Column(JSON, nullable=True)
    specialty_services = Column(JSON, nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(20), nullable=True)
    business_street = Column(String(255), nullable=True)
    business_city = Column(String(100), nullable=True)
    business_state = Column(String(50), nullable=True)
    business_zip_code = Column(String(20), nullable=True)
    average_rating = Column(Float, nullable=True)
    number_of_reviews = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="provider_profile")
    services = relationship("Service", back_populates="profile", cascade="all, delete-orphan")
    availability = relationship(
        "Availability", back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    provider_profile_id = Column(
        Integer, ForeignKey("provider_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    estimated_duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=True)
    price_type = Column(String(30), default="Fixed")  # Fixed, Starting At, Hourly, Contact for Price
    offered_location = Column(String(30), default="Home Visit")  # Home Visit, Clinic, Virtual, Mixed
    animal_type = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    profile = relationship("ProviderProfile", back_populates="services")


class Availability(Base):
    __tablename__ = "availabilities"

    id = Column(Integer, primary_key=True, index=True)
    provider_profile_id = Column(
        Integer, ForeignKey("provider_profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    # [{day_of_week, start_time, end_time, is_available}], Sunday = 0
    weekly_schedule = Column(JSON, nullable=False, default=list)
    # [{date, is_available, start_time, end_time, note}]
    special_dates = Column(JSON, nullable=False, default=list)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    profile = relationship("ProviderProfile", back_populates="availability")


class Pet(Base):
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    species = Column(String(50), nullable=False)
    breed = Column(String(100), nullable=True)
    age_years = Column(Float, nullable=True)
    weight_kg = Column(Float, nullable=True)
    sex = Column(String(20), nullable=True)
    medical_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    owner = relationship("User", back_populates="pets")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    pet_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_profile_id = Column(
        Integer, ForeignKey("provider_profiles.id"), nullable=False, index=True
    )
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    pet_id = Column(Integer, ForeignKey("pets.id", ondelete="SET NULL"), nullable=True)
    service_request_id = Column(Integer, nullable=True, index=True)  # originating clinic referral
    appointment_time = Column(DateTime, nullable=False, index=True)
    estimated_end_time = Column(DateTime, nullable=False)
    status = Column(String(20), default=APPT_REQUESTED, nullable=False, index=True)
    location_details = Column(Text, nullable=True)
    owner_notes = Column(Text, nullable=True)
    provider_notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    pet_owner = relationship("User", foreign_keys=[pet_owner_id])
    provider_profile = relationship("ProviderProfile")
    service = relationship("Service")
    pet = relationship("Pet")


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pet_owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pet_id = Column(Integer, ForeignKey("pets.id", ondelete="SET NULL"), nullable=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    service_type = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    urgency = Column(String(20), default="medium", nullable=False)
    preferred_dates = Column(JSON, nullable=True)
    status = Column(String(20), default=SR_PENDING, nullable=False, index=True)
    provider_response = Column(JSON, nullable=True)  # {message, available_time_slots, responded_at}
    pet_owner_response = Column(JSON, nullable=True)  # {message, selected_time_slot, responded_at}
    scheduled_appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    result_notes = Column(Text, nullable=True)
    attachments = Column(JSON, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    clinic = relationship("User", foreign_keys=[clinic_id])
    provider = relationship("User", foreign_keys=[provider_id])
    pet_owner = relationship("User", foreign_keys=[pet_owner_id])
    pet = relationship("Pet")
    service = relationship("Service")
    scheduled_appointment = relationship("Appointment", foreign_keys=[scheduled_appointment_id])


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="general")
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    reference_type = Column(String(50), nullable=True)  # Appointment, ServiceRequest, ...
    reference_id = Column(Integer, nullable=True)
    action_url = Column(String(500), nullable=True)
    sent_via_email = Column(Boolean, default=False, nullable=False)
    sent_via_sms = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    user = relationship("User", back_populates="notifications")


class VerificationRequest(Base):
    __tablename__ = "verification_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    priority = Column(String(20), default=PRIORITY_STANDARD, nullable=False)
    status = Column(String(20), default=VERIFICATION_PENDING, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    submitted_at = Column(DateTime, nullable=True)  # None until the owner submits for review
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    sla_status = Column(String(20), default=SLA_NOT_APPLICABLE, nullable=False)
    sla_processing_time_hours = Column(Float, nullable=True)
    risk_score = Column(Integer, nullable=True)
    risk_level = Column(String(10), nullable=True)
    credential_status = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="verification_request", foreign_keys=[user_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
    documents = relationship(
        "VerificationDocument",
        back_populates="verification_request",
        cascade="all, delete-orphan",
        order_by="VerificationDocument.id",
    )


class VerificationDocument(Base):
    __tablename__ = "verification_documents"

    id = Column(Integer, primary_key=True, index=True)
    verification_request_id = Column(
        Integer, ForeignKey("verification_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_type = Column(String(50), nullable=False)
    document_key = Column(String(500), nullable=False)  # S3 object key
    original_file_name = Column(String(255), nullable=True)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    expiration_date = Column(Date, nullable=True)
    annotations = Column(JSON, nullable=False, default=list)
    submitted_at = Column(DateTime, server_default=func.now())

    verification_request = relationship("VerificationRequest", back_populates="documents")


class AdminActionLog(Base):
    __tablename__ = "admin_action_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    target_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action_type = Column(String(30), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    admin_user = relationship("User", foreign_keys=[admin_user_id])
    target_user = relationship("User", foreign_keys=[target_user_id])


class DocumentAccessLog(Base):
    __tablename__ = "document_access_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    target_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    document_key = Column(String(500), nullable=False)
    document_type = Column(String(50), nullable=True)
    action = Column(String(10), default="VIEW", nullable=False)
    ip_address = Column(String(64), nullable=True)
    timestamp = Column(DateTime, server_default=func.now(), index=True)


class UserActivityLog(Base):
    __tablename__ = "user_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)  # LOGIN_SUCCESS, PASSWORD_CHANGE, ...
    status = Column(String(10), nullable=False)  # SUCCESS, FAILURE
    ip_address = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    timestamp = Column(DateTime, server_default=func.now(), index=True)


class ServiceUsageLog(Base):
    __tablename__ = "service_usage_logs"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(40), nullable=False, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime, server_default=func.now(), index=True)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("appointment_id", name="uq_review_appointment"),)

    id = Column(Integer, primary_key=True, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_profile_id = Column(
        Integer, ForeignKey("provider_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    moderation_status = Column(String(20), default=REVIEW_PENDING, nullable=False, index=True)
    moderator_notes = Column(Text, nullable=True)
    provider_response_comment = Column(Text, nullable=True)
    provider_response_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    reviewer = relationship("User")
    provider_profile = relationship("ProviderProfile")
    appointment = relationship("Appointment")


class Setting(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    value_type = Column(String(20), default="string", nullable=False)  # string, number, boolean, json, array
    is_editable = Column(Boolean, default=True, nullable=False)
    category = Column(String(50), default="General", nullable=False)
    updated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
