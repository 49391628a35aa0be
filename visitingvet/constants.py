"""Role names, workflow statuses and other shared enumerations"""

# User roles
ROLE_PET_OWNER = "PetOwner"
ROLE_PROVIDER = "MVSProvider"
ROLE_CLINIC = "Clinic"
ROLE_ADMIN = "Admin"
SELF_REGISTER_ROLES = (ROLE_PET_OWNER, ROLE_PROVIDER, ROLE_CLINIC)

# Account verification status on the user
VERIFICATION_NOT_SUBMITTED = "NotSubmitted"
VERIFICATION_PENDING = "Pending"
VERIFICATION_APPROVED = "Approved"
VERIFICATION_REJECTED = "Rejected"

# Verification request priority drives the SLA goal
PRIORITY_STANDARD = "Standard"
PRIORITY_EXPEDITED = "Expedited"

SLA_ON_TRACK = "On Track"
SLA_AT_RISK = "At Risk"
SLA_BREACHED = "Breached"
SLA_COMPLETED = "Completed"
SLA_NOT_APPLICABLE = "N/A"

RECOGNIZED_DOCUMENT_TYPES = ("VETERINARY_LICENSE", "BUSINESS_LICENSE", "DEA_REGISTRATION")

# Appointments
APPT_REQUESTED = "Requested"
APPT_CONFIRMED = "Confirmed"
APPT_CANCELLED = "Cancelled"
APPT_COMPLETED = "Completed"
APPT_CANCELLED_BY_OWNER = "CancelledByOwner"
APPOINTMENT_STATUSES = (
    APPT_REQUESTED,
    APPT_CONFIRMED,
    APPT_CANCELLED,
    APPT_COMPLETED,
    APPT_CANCELLED_BY_OWNER,
)
# Statuses that occupy the provider's calendar
ACTIVE_APPOINTMENT_STATUSES = (APPT_REQUESTED, APPT_CONFIRMED)

# Clinic referrals
SR_PENDING = "pending"
SR_ACCEPTED = "accepted"
SR_DECLINED = "declined"
SR_SCHEDULED = "scheduled"
SR_COMPLETED = "completed"
SR_CANCELLED = "cancelled"
SR_TERMINAL_STATUSES = (SR_DECLINED, SR_COMPLETED, SR_CANCELLED)

USAGE_EVENT_TYPES = (
    "API_CALL",
    "APPOINTMENT_CREATED",
    "APPOINTMENT_UPDATED",
    "APPOINTMENT_CANCELLED",
    "USER_LOGIN",
    "USER_REGISTER",
    "PET_CREATED",
    "SERVICE_REQUEST_CREATED",
    "OTHER",
)

REVIEW_PENDING = "Pending"
REVIEW_APPROVED = "Approved"
REVIEW_REJECTED = "Rejected"

ADMIN_PERMISSIONS = (
    "users:read",
    "users:create",
    "users:update",
    "users:verify",
    "users:read_activity",
    "users:bulk_manage",
    "verifications:read",
    "verifications:manage",
    "verifications:read_metrics",
    "documents:read",
    "logs:read",
    "analytics:read",
    "reviews:moderate",
    "settings:manage",
)
