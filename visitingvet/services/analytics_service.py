"""
Admin analytics dashboard metrics
Every metric works over a half-open [start, end) UTC range
"""

import csv
import logging
from collections import Counter
from datetime import datetime
from io import StringIO

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..constants import (
    APPT_CANCELLED,
    APPT_CANCELLED_BY_OWNER,
    APPT_COMPLETED,
    ROLE_PROVIDER,
    VERIFICATION_APPROVED,
    VERIFICATION_PENDING,
    VERIFICATION_REJECTED,
)
from ..models import (
    Appointment,
    ProviderProfile,
    Review,
    Service,
    ServiceRequest,
    ServiceUsageLog,
    User,
    VerificationRequest,
)
from ..utils.aggregation_helpers import bucket_counts, fill_series

logger = logging.getLogger(__name__)

COMPARISON_METRICS = {
    "users": User.created_at,
    "appointments": Appointment.created_at,
    "verifications": VerificationRequest.submitted_at,
}
EXPORT_REPORTS = ("users", "appointments", "verifications")


def _in_range(column, start: datetime, end: datetime):
    return (column >= start, column < end)


def _count(db: Session, column, start: datetime, end: datetime) -> int:
    return db.query(func.count(column)).filter(*_in_range(column, start, end)).scalar() or 0


def get_user_growth(db: Session, start: datetime, end: datetime, period: str = "day") -> dict:
    new_users = db.query(User.created_at, User.role).filter(*_in_range(User.created_at, start, end)).all()
    total_users = db.query(func.count(User.id)).filter(User.created_at < end).scalar() or 0
    previous_total = db.query(func.count(User.id)).filter(User.created_at < start).scalar() or 0

    if previous_total > 0:
        growth_rate = round(total_users / previous_total - 1, 4)
    else:
        growth_rate = 1.0 if new_users else 0.0

    counts = bucket_counts((row.created_at for row in new_users), period)
    return {
        "newUsers": len(new_users),
        "totalUsers": total_users,
        "previousTotal": previous_total,
        "growthRate": growth_rate,
        "byRole": dict(Counter(row.role for row in new_users)),
        "series": fill_series(start, end, period, counts),
    }


def get_verification_rate(db: Session, start: datetime, end: datetime, period: str = "day") -> dict:
    submitted = (
        db.query(VerificationRequest.submitted_at)
        .filter(*_in_range(VerificationRequest.submitted_at, start, end))
        .all()
    )
    completed = (
        db.query(VerificationRequest)
        .filter(
            *_in_range(VerificationRequest.completed_at, start, end),
            VerificationRequest.status.in_([VERIFICATION_APPROVED, VERIFICATION_REJECTED]),
        )
        .all()
    )
    approved = sum(1 for r in completed if r.status == VERIFICATION_APPROVED)
    rejected = len(completed) - approved
    currently_pending = (
        db.query(func.count(VerificationRequest.id))
        .filter(
            VerificationRequest.status == VERIFICATION_PENDING,
            VerificationRequest.submitted_at.isnot(None),
        )
        .scalar()
        or 0
    )

    processing_hours = [
        (r.completed_at - r.created_at).total_seconds() / 3600
        for r in completed
        if r.created_at and r.completed_at
    ]
    average_hours = round(sum(processing_hours) / len(processing_hours), 2) if processing_hours else None

    return {
        "submitted": len(submitted),
        "approved": approved,
        "rejected": rejected,
        "currentlyPending": currently_pending,
        "approvalRate": round(approved / (approved + rejected), 4) if approved + rejected else 0,
        "averageProcessingHours": average_hours,
        "series": fill_series(start, end, period, bucket_counts((r.submitted_at for r in submitted), period)),
    }


def get_service_usage(db: Session, start: datetime, end: datetime, period: str = "day") -> dict:
    appointments = (
        db.query(Appointment.created_at, Appointment.status, Appointment.service_id)
        .filter(*_in_range(Appointment.created_at, start, end))
        .all()
    )
    top_services = (
        db.query(Service.id, Service.name, func.count(Appointment.id).label("bookings"))
        .join(Appointment, Appointment.service_id == Service.id)
        .filter(*_in_range(Appointment.created_at, start, end))
        .group_by(Service.id, Service.name)
        .order_by(func.count(Appointment.id).desc())
        .limit(5)
        .all()
    )
    api_calls = (
        db.query(func.count(ServiceUsageLog.id))
        .filter(ServiceUsageLog.event_type == "API_CALL", *_in_range(ServiceUsageLog.timestamp, start, end))
        .scalar()
        or 0
    )

    return {
        "appointmentsBooked": len(appointments),
        "appointmentsCompleted": sum(1 for a in appointments if a.status == APPT_COMPLETED),
        "appointmentsCancelled": sum(
            1 for a in appointments if a.status in (APPT_CANCELLED, APPT_CANCELLED_BY_OWNER)
        ),
        "serviceRequestsCreated": _count(db, ServiceRequest.created_at, start, end),
        "reviewsSubmitted": _count(db, Review.created_at, start, end),
        "apiCalls": api_calls,
        "topServices": [
            {"serviceId": row.id, "name": row.name, "count": row.bookings} for row in top_services
        ],
        "series": fill_series(start, end, period, bucket_counts((a.created_at for a in appointments), period)),
    }


def get_user_segmentation(db: Session) -> dict:
    by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    by_verification = dict(
        db.query(User.verification_status, func.count(User.id)).group_by(User.verification_status).all()
    )
    banned = db.query(func.count(User.id)).filter(User.is_banned.is_(True)).scalar() or 0
    total = db.query(func.count(User.id)).scalar() or 0

    animal_counts: Counter = Counter()
    profiles = (
        db.query(ProviderProfile.animal_types)
        .join(User, User.id == ProviderProfile.user_id)
        .filter(User.role == ROLE_PROVIDER)
        .all()
    )
    for (animal_types,) in profiles:
        for animal in animal_types or []:
            animal_counts[animal] += 1

    return {
        "byRole": by_role,
        "byVerificationStatus": by_verification,
        "byBanStatus": {"banned": banned, "active": total - banned},
        "providersByAnimalType": dict(animal_counts.most_common()),
        "totalUsers": total,
    }


def get_comparison(db: Session, metric: str, start: datetime, end: datetime) -> dict:
    """Current range against the immediately preceding range of equal length"""
    if metric not in COMPARISON_METRICS:
        raise ValueError(f"Invalid metric: {metric}. Choose from {', '.join(COMPARISON_METRICS)}")

    column = COMPARISON_METRICS[metric]
    previous_start = start - (end - start)
    current = _count(db, column, start, end)
    previous = _count(db, column, previous_start, start)
    change = current - previous

    return {
        "metric": metric,
        "current": current,
        "previous": previous,
        "change": change,
        "changePercent": round(change / previous * 100, 2) if previous else None,
        "currentRange": {"start": start.isoformat(), "end": end.isoformat()},
        "previousRange": {"start": previous_start.isoformat(), "end": start.isoformat()},
    }


def _fmt(dt) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S") if dt else ""


def export_report_csv(db: Session, report: str, start: datetime, end: datetime) -> tuple[str, int]:
    """Render a report as CSV; returns (csv_text, row_count)"""
    if report not in EXPORT_REPORTS:
        raise ValueError(f"Invalid report: {report}. Choose from {', '.join(EXPORT_REPORTS)}")

    output = StringIO()
    writer = csv.writer(output)

    if report == "users":
        rows = db.query(User).filter(*_in_range(User.created_at, start, end)).order_by(User.created_at).all()
        writer.writerow(["ID", "Email", "Name", "Role", "Verification Status", "Banned", "Created At"])
        for u in rows:
            writer.writerow(
                [u.id, u.email, u.name or "", u.role, u.verification_status, u.is_banned, _fmt(u.created_at)]
            )
    elif report == "appointments":
        rows = (
            db.query(Appointment)
            .filter(*_in_range(Appointment.created_at, start, end))
            .order_by(Appointment.created_at)
            .all()
        )
        writer.writerow(
            ["ID", "Pet Owner ID", "Provider Profile ID", "Service ID", "Appointment Time", "Status", "Created At"]
        )
        for a in rows:
            writer.writerow(
                [
                    a.id,
                    a.pet_owner_id,
                    a.provider_profile_id,
                    a.service_id,
                    _fmt(a.appointment_time),
                    a.status,
                    _fmt(a.created_at),
                ]
            )
    else:
        rows = (
            db.query(VerificationRequest)
            .filter(*_in_range(VerificationRequest.submitted_at, start, end))
            .order_by(VerificationRequest.submitted_at)
            .all()
        )
        writer.writerow(
            ["ID", "User ID", "Priority", "Status", "SLA Status", "Risk Score", "Created At", "Completed At"]
        )
        for r in rows:
            writer.writerow(
                [
                    r.id,
                    r.user_id,
                    r.priority,
                    r.status,
                    r.sla_status,
                    r.risk_score if r.risk_score is not None else "",
                    _fmt(r.created_at),
                    _fmt(r.completed_at),
                ]
            )

    logger.info(f"📊 Exported {report} report: {len(rows)} rows")
    return output.getvalue(), len(rows)
