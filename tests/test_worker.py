import asyncio
from datetime import datetime, timedelta

from visitingvet import worker
from visitingvet.models import Notification, User, VerificationRequest


def test_sla_refresh_task(db, make_user):
    provider = make_user("MVSProvider")
    long_ago = datetime.utcnow() - timedelta(hours=100)
    db.add(
        VerificationRequest(
            user_id=provider.id, status="Pending", created_at=long_ago, submitted_at=long_ago, sla_status="On Track"
        )
    )
    db.commit()

    assert asyncio.run(worker.refresh_sla_statuses_task({})) == {"changed": 1}
    db.expire_all()
    assert db.query(VerificationRequest).one().sla_status == "Breached"


def test_anomaly_scan_notifies_admins(db, make_user):
    admin = make_user("Admin")
    midnight = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    # One signup a day for a week, then a burst yesterday
    for day in range(2, 9):
        db.add(
            User(
                email=f"steady{day}@example.com",
                hashed_password="x",
                role="PetOwner",
                created_at=midnight - timedelta(days=day, hours=-12),
            )
        )
    for i in range(12):
        db.add(
            User(
                email=f"burst{i}@example.com",
                hashed_password="x",
                role="PetOwner",
                created_at=midnight - timedelta(hours=12, minutes=i),
            )
        )
    db.commit()

    result = asyncio.run(worker.anomaly_scan_task({}))
    assert "new_users" in result["anomalies"]

    notes = db.query(Notification).filter(Notification.user_id == admin.id, Notification.type == "anomaly").all()
    assert any("new_users" in n.title for n in notes)


def test_queued_notification_for_missing_user_is_dropped():
    assert asyncio.run(worker.send_notification_task({}, 9999, "Hi", "There")) is None


def test_worker_settings_register_cron_jobs():
    names = {job.name for job in worker.WorkerSettings.cron_jobs}
    assert names == {"cron:refresh_sla_statuses_task", "cron:anomaly_scan_task"}
