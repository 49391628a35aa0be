"""
SLA tracking for verification requests
Standard reviews are due within 72 hours, expedited within 24 hours;
a request is At Risk once 80% of its window has elapsed
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..constants import (
    PRIORITY_EXPEDITED,
    PRIORITY_STANDARD,
    SLA_AT_RISK,
    SLA_BREACHED,
    SLA_COMPLETED,
    SLA_NOT_APPLICABLE,
    SLA_ON_TRACK,
    VERIFICATION_PENDING,
)
from ..models import VerificationRequest

logger = logging.getLogger(__name__)

SLA_GOALS_HOURS = {
    PRIORITY_STANDARD: 72,
    PRIORITY_EXPEDITED: 24,
}
AT_RISK_RATIO = 0.8


def goal_hours_for(priority: Optional[str]) -> int:
    return SLA_GOALS_HOURS.get(priority, SLA_GOALS_HOURS[PRIORITY_STANDARD])


def calculate_sla_status(request: VerificationRequest, now: Optional[datetime] = None) -> dict:
    """
    Compute SLA status of a verification request.

    Returns:
        dict with status, elapsed_hours, time_remaining_hours, goal_hours
    """
    goal = goal_hours_for(request.priority)

    if not request.created_at:
        return {
            "status": SLA_NOT_APPLICABLE,
            "elapsed_hours": None,
            "time_remaining_hours": None,
            "goal_hours": goal,
        }

    end = request.completed_at or now or datetime.utcnow()
    elapsed = (end - request.created_at).total_seconds() / 3600

    if request.completed_at:
        status = SLA_COMPLETED if elapsed <= goal else SLA_BREACHED
    elif elapsed > goal:
        status = SLA_BREACHED
    elif elapsed >= goal * AT_RISK_RATIO:
        status = SLA_AT_RISK
    else:
        status = SLA_ON_TRACK

    return {
        "status": status,
        "elapsed_hours": round(elapsed, 2),
        "time_remaining_hours": round(goal - elapsed, 2),
        "goal_hours": goal,
    }


def update_sla_on_completion(request: VerificationRequest, now: Optional[datetime] = None) -> dict:
    """Stamp completion time and freeze the SLA outcome on the request (caller commits)"""
    if not request.completed_at:
        request.completed_at = now or datetime.utcnow()
    sla = calculate_sla_status(request)
    request.sla_status = sla["status"]
    request.sla_processing_time_hours = sla["elapsed_hours"]
    return sla


def refresh_pending(db: Session, now: Optional[datetime] = None) -> int:
    """Recompute stored SLA status for every pending request; returns how many changed"""
    now = now or datetime.utcnow()
    changed = 0
    pending = (
        db.query(VerificationRequest)
        .filter(
            VerificationRequest.status == VERIFICATION_PENDING,
            VerificationRequest.submitted_at.isnot(None),
        )
        .all()
    )
    for request in pending:
        status = calculate_sla_status(request, now)["status"]
        if request.sla_status != status:
            request.sla_status = status
            changed += 1
    if changed:
        db.commit()
    logger.info(f"📊 SLA refresh: {changed}/{len(pending)} pending requests changed status")
    return changed
