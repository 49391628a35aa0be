from datetime import datetime, timedelta

from visitingvet.models import VerificationRequest
from visitingvet.services.sla_tracking_service import (
    calculate_sla_status,
    goal_hours_for,
    refresh_pending,
    update_sla_on_completion,
)

NOW = datetime(2030, 3, 10, 12, 0)


def make_request(hours_ago, priority="Standard", completed_after=None):
    created = NOW - timedelta(hours=hours_ago)
    return VerificationRequest(
        priority=priority,
        created_at=created,
        submitted_at=created,
        completed_at=created + timedelta(hours=completed_after) if completed_after is not None else None,
    )


def test_goal_hours_default_to_standard():
    assert goal_hours_for("Expedited") == 24
    assert goal_hours_for("Standard") == 72
    assert goal_hours_for(None) == 72
    assert goal_hours_for("Rush") == 72


def test_standard_request_on_track():
    sla = calculate_sla_status(make_request(10), NOW)
    assert sla["status"] == "On Track"
    assert sla["elapsed_hours"] == 10
    assert sla["time_remaining_hours"] == 62
    assert sla["goal_hours"] == 72


def test_at_risk_starts_at_eighty_percent_of_goal():
    assert calculate_sla_status(make_request(57), NOW)["status"] == "On Track"
    assert calculate_sla_status(make_request(58), NOW)["status"] == "At Risk"
    assert calculate_sla_status(make_request(20, "Expedited"), NOW)["status"] == "At Risk"


def test_goal_boundary_is_not_breached():
    assert calculate_sla_status(make_request(72), NOW)["status"] == "At Risk"
    sla = calculate_sla_status(make_request(73), NOW)
    assert sla["status"] == "Breached"
    assert sla["time_remaining_hours"] == -1


def test_completed_requests_use_completion_time():
    assert calculate_sla_status(make_request(100, completed_after=20), NOW)["status"] == "Completed"
    assert calculate_sla_status(make_request(100, "Expedited", completed_after=30), NOW)["status"] == "Breached"


def test_missing_created_at_is_not_applicable():
    sla = calculate_sla_status(VerificationRequest(priority="Standard"), NOW)
    assert sla["status"] == "N/A"
    assert sla["elapsed_hours"] is None


def test_update_on_completion_freezes_outcome():
    request = make_request(30, "Expedited")
    sla = update_sla_on_completion(request, NOW)
    assert request.completed_at == NOW
    assert request.sla_status == "Breached"
    assert request.sla_processing_time_hours == 30
    assert sla["status"] == "Breached"


def test_refresh_pending_skips_unsubmitted(db, make_user):
    submitted_user = make_user("MVSProvider")
    draft_user = make_user("MVSProvider")
    submitted = VerificationRequest(
        user_id=submitted_user.id,
        status="Pending",
        created_at=NOW - timedelta(hours=80),
        submitted_at=NOW - timedelta(hours=80),
        sla_status="On Track",
    )
    draft = VerificationRequest(
        user_id=draft_user.id, status="Pending", created_at=NOW - timedelta(hours=80), sla_status="N/A"
    )
    db.add_all([submitted, draft])
    db.commit()

    assert refresh_pending(db, NOW) == 1
    db.refresh(submitted)
    db.refresh(draft)
    assert submitted.sla_status == "Breached"
    assert draft.sla_status == "N/A"
