"""
Analytics dashboard routes
Every endpoint takes an optional ISO 8601 start_date/end_date (default: last 30 days)
"""

import logging
from datetime import datetime
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..auth import require_permission
from ..config import ANOMALY_HISTORY_DAYS, ANOMALY_STDDEV_THRESHOLD
from ..database import get_db
from ..models import User
from ..services import analytics_service
from ..services.anomaly_detection_service import detect_metric_anomaly
from ..utils.aggregation_helpers import parse_date_range, validate_period

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])

require_analytics = require_permission("analytics:read")


def _range(start_date: Optional[str], end_date: Optional[str]) -> tuple[datetime, datetime]:
    try:
        return parse_date_range(start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _period(period: str) -> str:
    try:
        return validate_period(period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/user-growth")
async def get_user_growth(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    period: str = Query("day"),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db),
):
    start, end = _range(start_date, end_date)
    return analytics_service.get_user_growth(db, start, end, _period(period))


@router.get("/verification-rate")
async def get_verification_rate(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    period: str = Query("day"),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db),
):
    start, end = _range(start_date, end_date)
    return analytics_service.get_verification_rate(db, start, end, _period(period))


@router.get("/service-usage")
async def get_service_usage(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    period: str = Query("day"),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db),
):
    start, end = _range(start_date, end_date)
    return analytics_service.get_service_usage(db, start, end, _period(period))


@router.get("/segmentation")
async def get_segmentation(
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db),
):
    return analytics_service.get_user_segmentation(db)


@router.get("/comparison")
async def get_comparison(
    metric: str = Query(...),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db),
):
    start, end = _range(start_date, end_date)
    try:
        return analytics_service.get_comparison(db, metric, start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/anomalies")
async def get_anomalies(
    metric: str = Query(...),
    threshold: float = Query(ANOMALY_STDDEV_THRESHOLD, gt=0),
    history_days: int = Query(ANOMALY_HISTORY_DAYS, ge=2, le=365),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db),
):
    """Today's running count against recent full days (the daily scan judges yesterday)"""
    try:
        return detect_metric_anomaly(db, metric, threshold, history_days)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/export")
async def export_report(
    report: str = Query(...),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    current_user: User = Depends(require_analytics),
    db: Session = Depends(get_db),
):
    start, end = _range(start_date, end_date)
    try:
        csv_text, row_count = analytics_service.export_report_csv(db, report, start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    filename = f"{report}_{start:%Y%m%d}_{end:%Y%m%d}.csv"
    logger.info(f"📊 Admin {current_user.id} exported {row_count} {report} rows")
    return StreamingResponse(
        BytesIO(csv_text.encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
