"""Field extraction helpers for raw listing records.

A field is treated as null when it is absent, JSON null, blank, or the
case-insensitive sentinel ``"Unavailable"``. Non-null values are trimmed and
then parsed with fixed patterns.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Final

from listing_loader.errors import ValidationError

NULL_SENTINEL: Final = "unavailable"
AVAILABLE_NOW: Final = "available now"

SHORT_DATE_FORMAT: Final = "%Y-%m-%d"
SHORT_DATE_TIME_FORMAT: Final = "%Y-%m-%d %H:%M:%S"
MEDIUM_DATE_FORMAT: Final = "%d %b %Y"
MEDIUM_YEAR_MONTH_FORMAT: Final = "%b %Y"

_INTEGER_PATTERN: Final = re.compile(r"[+-]?\d+")


def _as_text(value: Any) -> str | None:
    """Render a JSON scalar as text; containers have no text value."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, int | float):
        return str(value)
    return ""


def is_null_text(text: str | None) -> bool:
    """Check whether a raw text value should be treated as null."""
    return text is None or not text.strip() or text.strip().lower() == NULL_SENTINEL


def parse_text(node: Mapping[str, Any], field: str) -> str | None:
    """Read a trimmed text field, or None if it is null."""
    text = _as_text(node.get(field))
    if is_null_text(text):
        return None
    assert text is not None
    return text.strip()


def parse_integer(node: Mapping[str, Any], field: str) -> int | None:
    """Read an integer field.

    Raises:
        ValidationError: If the value is present but not a whole number.
    """
    text = parse_text(node, field)
    if text is None:
        return None
    if not _INTEGER_PATTERN.fullmatch(text):
        raise ValidationError(f"Field '{field}' is not an integer: {text!r}", field=field)
    return int(text)


def _parse_datetime(node: Mapping[str, Any], field: str, fmt: str) -> datetime | None:
    text = parse_text(node, field)
    if text is None:
        return None
    try:
        return datetime.strptime(text, fmt)
    except ValueError as e:
        raise ValidationError(
            f"Field '{field}' does not match format {fmt!r}: {text!r}", field=field
        ) from e


def parse_date(node: Mapping[str, Any], field: str, fmt: str = SHORT_DATE_FORMAT) -> date | None:
    """Read a calendar date field using ``fmt``."""
    parsed = _parse_datetime(node, field, fmt)
    return parsed.date() if parsed else None


def parse_datetime(
    node: Mapping[str, Any], field: str, fmt: str = SHORT_DATE_TIME_FORMAT
) -> datetime | None:
    """Read a timestamp field using ``fmt``."""
    return _parse_datetime(node, field, fmt)


def parse_year_month(
    node: Mapping[str, Any], field: str, fmt: str = MEDIUM_YEAR_MONTH_FORMAT
) -> tuple[int, int] | None:
    """Read a year-month field (e.g. "Mar 2015") as ``(year, month)``."""
    parsed = _parse_datetime(node, field, fmt)
    return (parsed.year, parsed.month) if parsed else None


def parse_lease_availability(
    node: Mapping[str, Any], field: str
) -> tuple[date | None, bool]:
    """Read a lease availability field as ``(available_date, available_now)``.

    "Available now" (any case) sets the flag and leaves the date unset; any
    other non-null value is parsed as a ``dd MMM yyyy`` date.
    """
    text = parse_text(node, field)
    if text is None:
        return None, False
    if text.lower() == AVAILABLE_NOW:
        return None, True
    return parse_date(node, field, MEDIUM_DATE_FORMAT), False


def get_section(node: Mapping[str, Any], field: str) -> Mapping[str, Any] | None:
    """Return an optional nested object, or None if missing or null.

    Raises:
        ValidationError: If the section is present but not an object.
    """
    section = node.get(field)
    if section is None:
        return None
    if not isinstance(section, Mapping):
        raise ValidationError(f"Section '{field}' must be an object", field=field)
    return section


def get_object_list(node: Mapping[str, Any], field: str) -> list[Mapping[str, Any]]:
    """Return an optional array of objects; missing or null yields an empty list.

    Raises:
        ValidationError: If the section is not an array or holds non-objects.
    """
    section = node.get(field)
    if section is None:
        return []
    if not isinstance(section, list):
        raise ValidationError(f"Section '{field}' must be an array", field=field)
    for element in section:
        if not isinstance(element, Mapping):
            raise ValidationError(f"Section '{field}' must contain only objects", field=field)
    return section
