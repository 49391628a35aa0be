import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import require_permission
from ..database import get_db
from ..models import Setting, User
from ..schemas import SettingResponse, SettingUpdate
from ..services.audit_service import log_admin_action
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


def value_matches_type(value: Any, value_type: str) -> bool:
    if value_type == "string":
        return isinstance(value, str)
    if value_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if value_type == "boolean":
        return isinstance(value, bool)
    if value_type == "json":
        return isinstance(value, dict)
    if value_type == "array":
        return isinstance(value, list)
    return False


@router.get("")
async def list_settings(
    current_user: User = Depends(require_permission("settings:manage")),
    db: Session = Depends(get_db),
):
    """All platform settings grouped by category"""
    grouped: dict[str, list] = {}
    for setting in db.query(Setting).order_by(Setting.category.asc(), Setting.key.asc()).all():
        grouped.setdefault(setting.category, []).append(SettingResponse.model_validate(setting))
    return grouped


@router.get("/{key}", response_model=SettingResponse)
async def get_setting(
    key: str,
    current_user: User = Depends(require_permission("settings:manage")),
    db: Session = Depends(get_db),
):
    setting = db.query(Setting).filter(Setting.key == key).first()
    if not setting:
        raise HTTPException(status_code=404, detail="Setting not found")
    return setting


@router.put("/{key}", response_model=SettingResponse)
async def upsert_setting(
    key: str,
    data: SettingUpdate,
    current_user: User = Depends(require_permission("settings:manage")),
    db: Session = Depends(get_db),
):
    setting = db.query(Setting).filter(Setting.key == key).first()
    if setting and not setting.is_editable:
        raise HTTPException(status_code=403, detail=f"Setting '{key}' is not editable")

    value_type = data.value_type or (setting.value_type if setting else "string")
    if not value_matches_type(data.value, value_type):
        raise HTTPException(status_code=400, detail=f"Value for '{key}' must be of type {value_type}")

    previous = setting.value if setting else None
    value = sanitize_string(data.value) if isinstance(data.value, str) else data.value
    if setting is None:
        setting = Setting(key=key, category=data.category or "General")
        db.add(setting)

    setting.value = value
    setting.value_type = value_type
    if data.description is not None:
        setting.description = sanitize_string(data.description)
    if data.category:
        setting.category = data.category
    setting.updated_by_id = current_user.id
    db.commit()
    db.refresh(setting)
    logger.info(f"⚙️ Setting {key} updated by admin {current_user.id}")

    log_admin_action(
        db, current_user, "UpdateSetting", None, None, {"key": key, "previous": previous, "value": value}
    )
    return setting
