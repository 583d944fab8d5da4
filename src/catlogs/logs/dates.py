"""Parsing and validation of ISO-8601 instants supplied by callers."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone

from catlogs.models.schemas import InvalidParametersError


def parse_instant(value: str | datetime, *, field: str = "date") -> datetime:
    """Parse *value* into an aware UTC datetime.

    Accepts ``datetime`` objects and ISO-8601 strings, including a trailing
    ``Z``.  Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidParametersError(f"Invalid {field}: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_range(
    start_date: str | datetime,
    end_date: str | datetime,
    *,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Validate an inclusive ``[start, end]`` range for a live-log query.

    Both bounds must parse, neither may lie in the future, and the start
    may not come after the end.
    """
    start = parse_instant(start_date, field="start_date")
    end = parse_instant(end_date, field="end_date")
    current = now or datetime.now(timezone.utc)
    if start > current or end > current:
        raise InvalidParametersError("Dates cannot be in the future")
    if start > end:
        raise InvalidParametersError("start_date must not be after end_date")
    return start, end


def optional_range(
    start_date: str | None,
    end_date: str | None,
) -> tuple[datetime, datetime] | None:
    """Return the validated range when both bounds are given, else ``None``."""
    if start_date and end_date:
        return validate_range(start_date, end_date)
    return None
