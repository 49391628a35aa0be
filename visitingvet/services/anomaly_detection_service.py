"""
Anomaly detection over daily platform metrics
A value is anomalous when it falls outside mean +/- k sample standard deviations
of the preceding days
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..config import ANOMALY_HISTORY_DAYS, ANOMALY_STDDEV_THRESHOLD
from ..models import Appointment, ServiceUsageLog, User, VerificationRequest

logger = logging.getLogger(__name__)

METRIC_COLUMNS = {
    "new_users": User.created_at,
    "appointments": Appointment.created_at,
    "verification_requests": VerificationRequest.submitted_at,
    "api_calls": ServiceUsageLog.timestamp,
}


def mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def sample_std_dev(values: list[float]) -> float:
    """Sample standard deviation (n - 1); 0 for fewer than two values"""
    if not values or len(values) < 2:
        return 0.0
    avg = mean(values)
    variance = sum((v - avg) ** 2 for v in values) / (len(values) - 1)
    return math.sqrt(variance)


def detect_anomaly(
    current_value: float, historical: list[float], threshold: float = ANOMALY_STDDEV_THRESHOLD
) -> dict:
    """
    Compare current_value with its history.

    Returns:
        dict with is_anomaly, message and details
    """
    if not historical or len(historical) < 2:
        return {
            "is_anomaly": False,
            "message": "Not enough historical data",
            "details": {
                "current_value": current_value,
                "mean": None,
                "std_dev": None,
                "threshold": threshold,
                "history_points": len(historical or []),
            },
        }

    avg = mean(historical)
    sd = sample_std_dev(historical)
    upper = avg + threshold * sd
    lower = max(0.0, avg - threshold * sd)

    is_anomaly = current_value > upper or current_value < lower
    if current_value > upper:
        message = (
            f"Value {current_value} is above the expected range ({lower:.2f} - {upper:.2f})"
        )
    elif current_value < lower:
        message = (
            f"Value {current_value} is below the expected range ({lower:.2f} - {upper:.2f})"
        )
    else:
        message = f"Value {current_value} is within the expected range"

    return {
        "is_anomaly": is_anomaly,
        "message": message,
        "details": {
            "current_value": current_value,
            "mean": round(avg, 2),
            "std_dev": round(sd, 2),
            "upper_bound": round(upper, 2),
            "lower_bound": round(lower, 2),
            "threshold": threshold,
            "history_points": len(historical),
        },
    }


def daily_counts(db: Session, column, days: int, end: Optional[datetime] = None) -> tuple[list[int], int]:
    """
    Per-day counts of rows by timestamp column.

    Returns:
        (history for the `days` full days before today oldest first, today's count so far)
    """
    end = end or datetime.utcnow()
    today_start = datetime(end.year, end.month, end.day)
    history_start = today_start - timedelta(days=days)

    timestamps = [
        row[0]
        for row in db.query(column).filter(column >= history_start, column < end).all()
        if row[0] is not None
    ]

    history = [0] * days
    today_count = 0
    for ts in timestamps:
        if ts >= today_start:
            today_count += 1
        else:
            history[(ts - history_start).days] += 1
    return history, today_count


def detect_metric_anomaly(
    db: Session,
    metric: str,
    threshold: float = ANOMALY_STDDEV_THRESHOLD,
    history_days: int = ANOMALY_HISTORY_DAYS,
    end: Optional[datetime] = None,
    complete_day: bool = False,
) -> dict:
    """
    By default today's running count is compared with the previous full days.
    With complete_day the last finished day (yesterday) is compared with the
    `history_days` days before it, so a partial day is never judged.
    """
    if metric not in METRIC_COLUMNS:
        raise ValueError(f"Unknown metric: {metric}. Choose from {', '.join(METRIC_COLUMNS)}")

    column = METRIC_COLUMNS[metric]
    if complete_day:
        end = end or datetime.utcnow()
        midnight = datetime(end.year, end.month, end.day)
        counts, _ = daily_counts(db, column, history_days + 1, midnight)
        history, current = counts[:-1], counts[-1]
    else:
        history, current = daily_counts(db, column, history_days, end)

    result = detect_anomaly(current, history, threshold)
    result["metric"] = metric
    result["complete_day"] = complete_day
    if result["is_anomaly"]:
        logger.warning(f"⚠️ Anomaly detected for {metric}: {result['message']}")
    return result


def scan_all(db: Session, end: Optional[datetime] = None) -> list[dict]:
    """Judge the last complete day of every metric and return the anomalous ones"""
    anomalies = []
    for metric in METRIC_COLUMNS:
        result = detect_metric_anomaly(db, metric, end=end, complete_day=True)
        if result["is_anomaly"]:
            anomalies.append(result)
    logger.info(f"📊 Anomaly scan finished: {len(anomalies)} anomalous metrics")
    return anomalies
