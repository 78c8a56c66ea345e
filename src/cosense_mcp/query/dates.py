"""Created/updated date range filtering over page listings."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from ..errors import ErrorCode, ValidationError
from ..models import PageSummary

DateField = Literal["created", "updated"]
DATE_FIELDS: tuple[DateField, ...] = ("created", "updated")


def parse_date_bound(value: str | None, name: str) -> datetime | None:
    """Parse an ISO date or datetime into an aware UTC instant.

    Naive values are taken as UTC, so "2024-01-01" is midnight UTC.

    Args:
        value: ISO string, or None/empty for an open bound.
        name: Bound name used in the error message ("from" or "to").

    Raises:
        ValidationError: If the value is not a valid calendar date.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(
            f'Invalid "{name}" date format. Please use ISO date format (YYYY-MM-DD)',
            code=ErrorCode.INVALID_DATE,
            details={"bound": name, "value": value},
        ) from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def timestamp_to_datetime(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=UTC)


@dataclass(frozen=True)
class DateRange:
    """Inclusive bounds; either side may be open."""

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def parse(cls, start: str | None, end: str | None) -> "DateRange":
        return cls(parse_date_bound(start, "from"), parse_date_bound(end, "to"))

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True

    def describe(self) -> str:
        """Human phrase for the range, e.g. "between 2024-01-01 and 2024-02-01"."""
        if self.start and self.end:
            return f"between {_ymd(self.start)} and {_ymd(self.end)}"
        if self.start:
            return f"after {_ymd(self.start)}"
        if self.end:
            return f"before {_ymd(self.end)}"
        return ""


def _ymd(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def filter_by_date(
    pages: Iterable[PageSummary],
    date_range: DateRange,
    field: DateField = "updated",
) -> list[PageSummary]:
    """Keep pages whose created/updated instant falls inside the range.

    Pages without the timestamp are always dropped, even for an open range.
    Input order is preserved.
    """
    kept = []
    for page in pages:
        timestamp = getattr(page, field)
        if not timestamp:
            continue
        if date_range.contains(timestamp_to_datetime(timestamp)):
            kept.append(page)
    return kept
