"""System settings store."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select

from weberis.auth.actor_context import ActorContext
from weberis.core.exceptions import ValidationError
from weberis.core.logging import LogContext, build_log_event
from weberis.models import Setting
from weberis.services.base_service import BaseService, workflow
from weberis.services.formatting import FORMAT_DEFAULTS, format_currency, format_date, format_datetime, format_time
from weberis.utils.validators import is_valid_email, sanitize_text

logger = logging.getLogger(__name__)

EDITABLE_SETTINGS: frozenset[str] = frozenset(
    {
        "currency_symbol",
        "currency_position",
        "decimal_separator",
        "thousands_separator",
        "app_name",
        "company_name",
        "company_email",
        "date_format",
        "time_format",
    }
)
CURRENCY_POSITIONS = ("before", "after")
_UNSTRIPPED_KEYS = {"decimal_separator", "thousands_separator"}
MAX_SETTING_LENGTH = 255


def default_settings(app_name: str) -> list[tuple[str, str, str]]:
    """Seed rows as ``(key, value, description)``; all are public."""
    return [
        ("currency_symbol", FORMAT_DEFAULTS["currency_symbol"], "Currency symbol used throughout the application"),
        ("currency_position", FORMAT_DEFAULTS["currency_position"], "Position of currency symbol: before or after"),
        ("decimal_separator", FORMAT_DEFAULTS["decimal_separator"], "Decimal separator for numbers"),
        ("thousands_separator", FORMAT_DEFAULTS["thousands_separator"], "Thousands separator for numbers"),
        ("app_name", app_name, "Application name shown in the UI"),
        ("date_format", FORMAT_DEFAULTS["date_format"], "Date format string"),
        ("time_format", FORMAT_DEFAULTS["time_format"], "Time format string"),
    ]


class SettingsService(BaseService):
    """Key/value settings with an editable whitelist."""

    def get(self, key: str, default: Any = None) -> Any:
        setting = self.db.scalars(select(Setting).where(Setting.key == key)).first()
        if setting is None or setting.value is None:
            return default
        return setting.value

    def all_settings(self, public_only: bool = False) -> dict[str, str | None]:
        stmt = select(Setting).order_by(Setting.key)
        if public_only:
            stmt = stmt.where(Setting.is_public.is_(True))
        return {setting.key: setting.value for setting in self.db.scalars(stmt).all()}

    def format_settings(self) -> dict[str, str]:
        stored = self.all_settings()
        return {key: default if stored.get(key) is None else stored[key] for key, default in FORMAT_DEFAULTS.items()}

    def format_currency(self, amount: Any) -> str:
        return format_currency(amount, self.format_settings())

    def format_date(self, value: Any) -> str:
        return format_date(value, self.format_settings())

    def format_time(self, value: Any) -> str:
        return format_time(value, self.format_settings())

    def format_datetime(self, value: Any) -> str:
        return format_datetime(value, self.format_settings())

    def _clean_values(self, values: Mapping[str, Any]) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        for key, raw in values.items():
            if key not in EDITABLE_SETTINGS:
                raise ValidationError(f"Unknown setting: {key}.")
            if raw is not None and not isinstance(raw, str):
                raise ValidationError(f"Invalid value for {key}.")
            if key in _UNSTRIPPED_KEYS:
                value = (raw or "").replace("\x00", "")
            else:
                value = sanitize_text(raw)
            if len(value) > MAX_SETTING_LENGTH:
                raise ValidationError(f"Value for {key} is too long.")
            if key == "currency_position" and value not in CURRENCY_POSITIONS:
                raise ValidationError("Currency position must be 'before' or 'after'.")
            if key == "decimal_separator" and not value:
                raise ValidationError("Decimal separator is required.")
            if key == "company_email" and value and not is_valid_email(value):
                raise ValidationError("Invalid email format.")
            if key in {"currency_symbol", "app_name", "date_format", "time_format"} and not value:
                raise ValidationError(f"{key.replace('_', ' ').capitalize()} is required.")
            cleaned[key] = value
        return cleaned

    @workflow("settings.set_all")
    def set_all(self, actor: ActorContext, data: Mapping[str, Any], csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "edit_setting", csrf_token)
        cleaned = self._clean_values(data or {})

        with self.transaction():
            for key, value in cleaned.items():
                setting = self.db.scalars(select(Setting).where(Setting.key == key)).first()
                if setting is None:
                    self.db.add(Setting(key=key, value=value, is_public=True))
                else:
                    setting.value = value

        logger.info(
            "settings.updated",
            extra=build_log_event(
                "settings.updated",
                LogContext(user_id=actor.user_id, session_id=actor.session_id, workflow="settings.set_all"),
                keys=sorted(cleaned),
            ),
        )
        return len(cleaned)
