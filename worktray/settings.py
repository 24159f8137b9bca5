from __future__ import annotations

import logging
from typing import Callable

from .database import WorkTrayDatabase
from .models import DEFAULT_TARGET_HOURS

logger = logging.getLogger(__name__)

TARGET_HOURS_SETTING_KEY = "target_hours"
REMINDERS_ENABLED_SETTING_KEY = "reminders_enabled"
REMINDER_INTERVAL_SETTING_KEY = "reminder_interval_minutes"
AUTO_STOP_ENABLED_SETTING_KEY = "auto_stop_enabled"
AUTO_STOP_HOUR_SETTING_KEY = "auto_stop_hour"
REGISTER_EXTERNALLY_SETTING_KEY = "register_externally"
LAUNCH_AT_LOGIN_SETTING_KEY = "launch_at_login"
AI_PROVIDER_SETTING_KEY = "ai_provider"
AI_MODEL_SETTING_KEY = "ai_model"
AI_API_KEY_SETTING_KEY = "ai_api_key"
AI_ENDPOINT_SETTING_KEY = "ai_endpoint"

DEFAULT_REMINDER_INTERVAL_MINUTES = 60
DEFAULT_AUTO_STOP_HOUR = 20

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class Settings:
    """Typed key/value configuration kept in the database settings table."""

    def __init__(
        self,
        db: WorkTrayDatabase,
        on_launch_at_login: Callable[[bool], None] | None = None,
    ):
        self._db = db
        self._on_launch_at_login = on_launch_at_login

    @property
    def target_hours(self) -> float:
        value = self._get_float(TARGET_HOURS_SETTING_KEY, DEFAULT_TARGET_HOURS)
        return value if value > 0 else DEFAULT_TARGET_HOURS

    @target_hours.setter
    def target_hours(self, value: float) -> None:
        if float(value) <= 0:
            raise ValueError("Target hours must be positive.")
        self._db.set_setting(TARGET_HOURS_SETTING_KEY, str(float(value)))

    @property
    def reminders_enabled(self) -> bool:
        return self._get_bool(REMINDERS_ENABLED_SETTING_KEY, True)

    @reminders_enabled.setter
    def reminders_enabled(self, value: bool) -> None:
        self._set_bool(REMINDERS_ENABLED_SETTING_KEY, value)

    @property
    def reminder_interval_minutes(self) -> int:
        return self._get_int(REMINDER_INTERVAL_SETTING_KEY, DEFAULT_REMINDER_INTERVAL_MINUTES)

    @reminder_interval_minutes.setter
    def reminder_interval_minutes(self, value: int) -> None:
        self._db.set_setting(REMINDER_INTERVAL_SETTING_KEY, str(int(value)))

    @property
    def auto_stop_enabled(self) -> bool:
        return self._get_bool(AUTO_STOP_ENABLED_SETTING_KEY, False)

    @auto_stop_enabled.setter
    def auto_stop_enabled(self, value: bool) -> None:
        self._set_bool(AUTO_STOP_ENABLED_SETTING_KEY, value)

    @property
    def auto_stop_hour(self) -> int:
        return min(max(self._get_int(AUTO_STOP_HOUR_SETTING_KEY, DEFAULT_AUTO_STOP_HOUR), 0), 23)

    @auto_stop_hour.setter
    def auto_stop_hour(self, value: int) -> None:
        hour = int(value)
        if not 0 <= hour <= 23:
            raise ValueError("Auto-stop hour must be between 0 and 23.")
        self._db.set_setting(AUTO_STOP_HOUR_SETTING_KEY, str(hour))

    @property
    def register_externally(self) -> bool:
        return self._get_bool(REGISTER_EXTERNALLY_SETTING_KEY, True)

    @register_externally.setter
    def register_externally(self, value: bool) -> None:
        self._set_bool(REGISTER_EXTERNALLY_SETTING_KEY, value)

    @property
    def launch_at_login(self) -> bool:
        return self._get_bool(LAUNCH_AT_LOGIN_SETTING_KEY, False)

    @launch_at_login.setter
    def launch_at_login(self, value: bool) -> None:
        self._set_bool(LAUNCH_AT_LOGIN_SETTING_KEY, value)
        if self._on_launch_at_login is None:
            return
        try:
            self._on_launch_at_login(bool(value))
        except OSError:
            logger.exception("Failed to %s login item", "register" if value else "unregister")

    @property
    def ai_provider(self) -> str:
        return (self._db.get_setting(AI_PROVIDER_SETTING_KEY) or "").strip().lower()

    @property
    def ai_model(self) -> str:
        return (self._db.get_setting(AI_MODEL_SETTING_KEY) or "").strip()

    @property
    def ai_api_key(self) -> str:
        return (self._db.get_setting(AI_API_KEY_SETTING_KEY) or "").strip()

    @property
    def ai_endpoint(self) -> str:
        return (self._db.get_setting(AI_ENDPOINT_SETTING_KEY) or "").strip()

    def configure_ai(self, provider: str, model: str, api_key: str = "", endpoint: str = "") -> None:
        self._db.set_setting(AI_PROVIDER_SETTING_KEY, provider.strip().lower())
        self._db.set_setting(AI_MODEL_SETTING_KEY, model.strip())
        self._db.set_setting(AI_API_KEY_SETTING_KEY, api_key.strip())
        self._db.set_setting(AI_ENDPOINT_SETTING_KEY, endpoint.strip())

    def _get_float(self, key: str, default: float) -> float:
        value = self._db.get_setting(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            return default

    def _get_int(self, key: str, default: int) -> int:
        value = self._db.get_setting(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    def _get_bool(self, key: str, default: bool) -> bool:
        value = (self._db.get_setting(key) or "").strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        return default

    def _set_bool(self, key: str, value: bool) -> None:
        self._db.set_setting(key, "1" if value else "0")
