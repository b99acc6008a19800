"""Currency and date rendering driven by stored settings.

Date and time formats are stored with PHP-style tokens (``d.m.Y``, ``H:i``)
and rendered here token by token. A backslash escapes the next character.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

NOT_AVAILABLE = "N/A"

FORMAT_DEFAULTS: dict[str, str] = {
    "currency_symbol": "NOK",
    "currency_position": "after",
    "decimal_separator": ",",
    "thousands_separator": " ",
    "date_format": "d.m.Y",
    "time_format": "H:i",
}


def _twelve_hour(value: datetime) -> int:
    return value.hour % 12 or 12


_TOKENS: dict[str, Callable[[datetime], str]] = {
    "d": lambda v: f"{v.day:02d}",
    "j": lambda v: str(v.day),
    "m": lambda v: f"{v.month:02d}",
    "n": lambda v: str(v.month),
    "Y": lambda v: f"{v.year:04d}",
    "y": lambda v: f"{v.year % 100:02d}",
    "H": lambda v: f"{v.hour:02d}",
    "G": lambda v: str(v.hour),
    "h": lambda v: f"{_twelve_hour(v):02d}",
    "g": lambda v: str(_twelve_hour(v)),
    "i": lambda v: f"{v.minute:02d}",
    "s": lambda v: f"{v.second:02d}",
    "A": lambda v: "AM" if v.hour < 12 else "PM",
    "a": lambda v: "am" if v.hour < 12 else "pm",
    "D": lambda v: v.strftime("%a"),
    "l": lambda v: v.strftime("%A"),
    "M": lambda v: v.strftime("%b"),
    "F": lambda v: v.strftime("%B"),
}


def _setting(settings: Mapping[str, Any] | None, key: str) -> str:
    value = (settings or {}).get(key)
    return FORMAT_DEFAULTS[key] if value is None else str(value)


def render_format(value: datetime, pattern: str) -> str:
    """Render ``value`` using PHP-style format tokens."""
    parts: list[str] = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char in _TOKENS:
            parts.append(_TOKENS[char](value))
        else:
            parts.append(char)
    return "".join(parts)


def _coerce_datetime(value: date | datetime | time | str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, time):
        return datetime.combine(date.today(), value)
    return datetime.fromisoformat(str(value))


def format_number(amount: Any, decimal_separator: str = ",", thousands_separator: str = " ", decimals: int = 2) -> str:
    try:
        number = Decimal(str(amount if amount not in (None, "") else 0))
    except InvalidOperation:
        number = Decimal(0)
    if not number.is_finite():
        number = Decimal(0)
    quantum = Decimal(1).scaleb(-decimals)
    rounded = number.quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    integer_part, _, fraction = f"{abs(rounded):,.{decimals}f}".partition(".")
    integer_part = integer_part.replace(",", thousands_separator)
    if not decimals:
        return f"{sign}{integer_part}"
    return f"{sign}{integer_part}{decimal_separator}{fraction}"


def format_currency(amount: Any, settings: Mapping[str, Any] | None = None) -> str:
    formatted = format_number(
        amount,
        decimal_separator=_setting(settings, "decimal_separator"),
        thousands_separator=_setting(settings, "thousands_separator"),
    )
    symbol = _setting(settings, "currency_symbol")
    if _setting(settings, "currency_position") == "before":
        return f"{symbol} {formatted}"
    return f"{formatted} {symbol}"


def format_date(value: Any, settings: Mapping[str, Any] | None = None) -> str:
    if not value:
        return NOT_AVAILABLE
    return render_format(_coerce_datetime(value), _setting(settings, "date_format"))


def format_time(value: Any, settings: Mapping[str, Any] | None = None) -> str:
    if not value:
        return NOT_AVAILABLE
    return render_format(_coerce_datetime(value), _setting(settings, "time_format"))


def format_datetime(value: Any, settings: Mapping[str, Any] | None = None) -> str:
    if not value:
        return NOT_AVAILABLE
    pattern = f"{_setting(settings, 'date_format')} {_setting(settings, 'time_format')}"
    return render_format(_coerce_datetime(value), pattern)


def format_duration(seconds: int | None) -> str:
    """Whole hours and minutes, e.g. ``2 h 5 min``; a running timer has none."""
    if seconds is None:
        return NOT_AVAILABLE
    hours, remainder = divmod(max(int(seconds), 0), 3600)
    return f"{hours} h {remainder // 60} min"
