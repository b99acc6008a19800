"""Input sanitizers and format checks shared by forms."""

from __future__ import annotations

import re

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
AGREEMENT_TYPE_NAME_PATTERN = re.compile(r"[^a-z0-9_]")


def sanitize_text(value: str | None, max_len: int = 20000) -> str:
    """Sanitize free-form content before persistence/display."""
    if value is None:
        return ""
    cleaned = str(value).replace("\x00", "").strip()
    return cleaned[:max_len]


def is_valid_email(value: str | None) -> bool:
    if not value:
        return False
    return EMAIL_PATTERN.match(value) is not None


def sanitize_identifier(value: str | None) -> str:
    """Lowercase and drop everything outside ``[a-z0-9_]``."""
    return AGREEMENT_TYPE_NAME_PATTERN.sub("", sanitize_text(value).lower())
