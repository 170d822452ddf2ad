"""Helpers for reading values out of FHIR JSON documents.

Extraction helpers are lenient: anything missing or malformed yields None.
The ``parse_*`` functions are strict and raise ValueError, for callers that
must reject bad input (search parameters, required document fields).
"""

import re
from datetime import UTC, date, datetime, timedelta, timezone
from typing import Any

# YYYY, YYYY-MM, YYYY-MM-DD, or a date-time with optional seconds, fraction and zone
_PARTIAL_DATETIME = re.compile(
    r"^(?P<year>\d{4})"
    r"(?:-(?P<month>\d{2})"
    r"(?:-(?P<day>\d{2})"
    r"(?:T(?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,9}))?)?"
    r"(?P<zone>Z|[+-]\d{2}:\d{2})?"
    r")?)?)?$"
)

# Type/id at the end of a relative or absolute reference, with optional history suffix
_REFERENCE = re.compile(
    r"(?:^|/)(?P<type>[A-Z][A-Za-z]+)/(?P<id>[A-Za-z0-9\-\.]{1,64})(?:/_history/[^/]+)?$"
)

ID_PATTERN = re.compile(r"^[A-Za-z0-9\-\.]{1,64}$")


class Precision:
    """Granularity of a partial FHIR date or date-time."""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"
    MINUTE = "minute"
    SECOND = "second"
    INSTANT = "instant"


def parse_partial_datetime(value: str) -> tuple[datetime, str]:
    """Parse a FHIR date or dateTime string.

    Returns the start of the period the value denotes as an aware UTC
    datetime, together with its precision. Values without a zone are taken
    as UTC.

    Raises:
        ValueError: If the value is not a valid date or date-time.
    """
    match = _PARTIAL_DATETIME.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid date value: {value!r}")

    parts = match.groupdict()
    year = int(parts["year"])
    month = int(parts["month"] or 1)
    day = int(parts["day"] or 1)
    hour = int(parts["hour"] or 0)
    minute = int(parts["minute"] or 0)
    second = int(parts["second"] or 0)
    fraction = parts["fraction"]
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0

    zone = parts["zone"]
    if zone is None or zone == "Z":
        tz: timezone = UTC
    else:
        sign = 1 if zone[0] == "+" else -1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * offset)

    # datetime() rejects out-of-range months, days and times
    start = datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)

    if fraction:
        precision = Precision.INSTANT
    elif parts["second"]:
        precision = Precision.SECOND
    elif parts["hour"]:
        precision = Precision.MINUTE
    elif parts["day"]:
        precision = Precision.DAY
    elif parts["month"]:
        precision = Precision.MONTH
    else:
        precision = Precision.YEAR

    try:
        return start.astimezone(UTC), precision
    except OverflowError:
        # Offsets can push 9999-12-31 or 0001-01-01 past the datetime range
        raise ValueError(f"Date value out of range: {value!r}") from None


def period_end(start: datetime, precision: str) -> datetime:
    """Exclusive end of the period starting at ``start`` with ``precision``.

    Raises:
        ValueError: If the end falls past the last representable datetime.
    """
    try:
        return _period_end(start, precision)
    except OverflowError:
        raise ValueError(f"Date period starting {start.isoformat()} is out of range") from None


def _period_end(start: datetime, precision: str) -> datetime:
    if precision == Precision.YEAR:
        return start.replace(year=start.year + 1)
    if precision == Precision.MONTH:
        if start.month == 12:
            return start.replace(year=start.year + 1, month=1)
        return start.replace(month=start.month + 1)
    if precision == Precision.DAY:
        return start + timedelta(days=1)
    if precision == Precision.MINUTE:
        return start + timedelta(minutes=1)
    if precision == Precision.SECOND:
        return start + timedelta(seconds=1)
    return start + timedelta(microseconds=1)


def parse_date(value: str) -> date:
    """Parse a FHIR ``date`` (YYYY, YYYY-MM or YYYY-MM-DD).

    Raises:
        ValueError: If the value is not a date or carries a time part.
    """
    if "T" in value:
        raise ValueError(f"Invalid date value: {value!r}")
    start, _ = parse_partial_datetime(value)
    return start.date()


def to_datetime(value: Any) -> datetime | None:
    """Lenient dateTime extraction."""
    if not isinstance(value, str) or not value:
        return None
    try:
        start, _ = parse_partial_datetime(value)
    except ValueError:
        return None
    return start


def to_date(value: Any) -> date | None:
    """Lenient date extraction."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return parse_date(value)
    except ValueError:
        return None


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the zone on round trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_instant(value: datetime) -> str:
    """Render a timestamp as a FHIR instant in UTC."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def as_list(value: Any) -> list:
    """Wrap a single element in a list; None becomes an empty list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def first_coding(codeable_concept: Any) -> tuple[str | None, str | None]:
    """Extract (code, display) from the first coding of a CodeableConcept."""
    if not isinstance(codeable_concept, dict):
        return None, None
    codings = [c for c in as_list(codeable_concept.get("coding")) if isinstance(c, dict)]
    if codings:
        coding = codings[0]
        return coding.get("code"), coding.get("display") or codeable_concept.get("text")
    return None, codeable_concept.get("text")


def first_code(concepts: Any) -> str | None:
    """First coding code across a list of CodeableConcepts (e.g. ``category``)."""
    for concept in as_list(concepts):
        code, _ = first_coding(concept)
        if code:
            return code
    return None


def reference_string(element: Any) -> str | None:
    """The ``reference`` string of a Reference element, if any."""
    if isinstance(element, dict):
        reference = element.get("reference")
        if isinstance(reference, str) and reference:
            return reference
    return None


def split_reference(reference: str) -> tuple[str | None, str]:
    """Split a reference into (type, id).

    ``Patient/123`` and ``http://host/fhir/Patient/123`` give
    ``("Patient", "123")``; a bare ``123`` gives ``(None, "123")``.
    Unrecognised shapes are returned whole as the id.
    """
    reference = reference.strip()
    if "/" not in reference:
        return None, reference
    match = _REFERENCE.search(reference)
    if match is None:
        return None, reference
    return match.group("type"), match.group("id")


def reference_id(element: Any) -> str | None:
    """Id part of a Reference element ("Patient/123" -> "123")."""
    reference = reference_string(element)
    if reference is None:
        return None
    _, resource_id = split_reference(reference)
    return resource_id


def lower(value: Any) -> str | None:
    return value.lower() if isinstance(value, str) and value else None


def upper(value: Any) -> str | None:
    return value.upper() if isinstance(value, str) and value else None


def text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    return None
