"""
Runtime settings stored in the settings table.
Read on every dispatch so operators can toggle without a restart.
"""
from typing import Any
from sqlalchemy.orm import Session
from app.config import settings as app_settings
from app.models.settings import Setting
from app.services.auto_dispatch import DispatchSettings

AUTO_CREATE_COURIER_ORDER = "auto_create_courier_order"
DEFAULT_COURIER_ID = "default_courier_id"


def get_setting(db: Session, key: str, default: Any = None) -> Any:
    """Get a setting value by key"""
    setting = db.query(Setting).filter(Setting.key == key).first()
    return setting.value if setting else default


def update_setting(db: Session, key: str, value: Any) -> None:
    """Update or create a setting"""
    setting = db.query(Setting).filter(Setting.key == key).first()
    if setting:
        setting.value = value
    else:
        setting = Setting(key=key, value=value)
        db.add(setting)
    db.commit()


def _as_bool(value: Any) -> bool:
    # Older rows were stored as "true"/"false" strings
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _as_optional_int(value: Any):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def load_dispatch_settings(db: Session) -> DispatchSettings:
    """Snapshot of the dispatch settings, falling back to env defaults"""
    return DispatchSettings(
        auto_create_courier_order=_as_bool(
            get_setting(db, AUTO_CREATE_COURIER_ORDER, app_settings.AUTO_CREATE_COURIER_ORDER)
        ),
        default_courier_id=_as_optional_int(
            get_setting(db, DEFAULT_COURIER_ID, app_settings.DEFAULT_COURIER_ID)
        ),
    )
