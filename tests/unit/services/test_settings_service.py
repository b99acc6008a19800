from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from weberis.services.formatting import format_currency, format_date, format_datetime, format_number, render_format
from weberis.services.settings_service import SettingsService


def test_get_falls_back_for_missing_keys(db):
    assert SettingsService(db).get("nonexistent_key", "fallback") == "fallback"


def test_set_all_updates_values(db, admin, csrf):
    service = SettingsService(db)
    result = service.set_all(admin, {"currency_symbol": "USD"}, csrf_token=csrf(admin))
    assert result.ok
    assert result.value == 1
    assert service.get("currency_symbol", "NOK") == "USD"


def test_set_all_rejects_unknown_keys_and_changes_nothing(db, admin, csrf):
    service = SettingsService(db)
    result = service.set_all(
        admin, {"currency_symbol": "EUR", "secret_flag": "on"}, csrf_token=csrf(admin)
    )
    assert result.error_code == "validation_error"
    assert result.message == "Unknown setting: secret_flag."
    assert service.get("currency_symbol") == "NOK"


def test_set_all_validates_currency_position(db, admin, csrf):
    result = SettingsService(db).set_all(admin, {"currency_position": "middle"}, csrf_token=csrf(admin))
    assert result.error_code == "validation_error"


def test_thousands_separator_keeps_whitespace(db, admin, csrf):
    service = SettingsService(db)
    assert service.set_all(admin, {"thousands_separator": " "}, csrf_token=csrf(admin)).ok
    assert service.get("thousands_separator") == " "


def test_settings_require_edit_permission(db, manager, csrf):
    result = SettingsService(db).set_all(manager, {"currency_symbol": "SEK"}, csrf_token=csrf(manager))
    assert result.error_code == "forbidden"


def test_service_formats_with_stored_settings(db, admin, csrf):
    service = SettingsService(db)
    assert service.format_currency(Decimal("1234567.5")) == "1 234 567,50 NOK"

    service.set_all(
        admin,
        {"currency_symbol": "$", "currency_position": "before", "decimal_separator": ".", "thousands_separator": ","},
        csrf_token=csrf(admin),
    )
    assert service.format_currency(1234.5) == "$ 1,234.50"
    assert service.format_date(date(2025, 3, 7)) == "07.03.2025"


def test_format_number_rounds_half_up():
    assert format_number("2.345") == "2,35"
    assert format_number(-1000) == "-1 000,00"
    assert format_number(None) == "0,00"


def test_format_number_treats_non_finite_input_as_zero():
    assert format_number("NaN") == "0,00"
    assert format_number("Infinity") == "0,00"
    assert format_currency("-inf") == "0,00 NOK"


def test_format_currency_defaults():
    assert format_currency(99) == "99,00 NOK"


def test_render_format_tokens_and_escapes():
    moment = datetime(2025, 12, 1, 15, 4, 9)
    assert render_format(moment, "Y-m-d H:i:s") == "2025-12-01 15:04:09"
    assert render_format(moment, "j/n/y g:i A") == "1/12/25 3:04 PM"
    assert render_format(moment, "\\d\\a\\y d") == "day 01"


def test_missing_dates_render_as_not_available():
    assert format_date(None) == "N/A"
    assert format_datetime("") == "N/A"
    assert format_datetime(datetime(2025, 1, 2, 8, 30)) == "02.01.2025 08:30"
