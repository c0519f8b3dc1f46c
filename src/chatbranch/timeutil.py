"""Timestamp helpers for branch metadata.

Normalises caller timestamps: ISO strings ("2025-01-15T14:30:00Z"), loose
dates ("2025-01-15 14:30"), naive or aware datetimes.
"""

from datetime import datetime, timezone

from dateutil import parser as dateparser


def parse_timestamp(value: str | datetime) -> datetime:
    """Normalise a caller-supplied timestamp to a timezone-aware datetime.

    Naive values are assumed to be UTC, matching how the engine stamps
    its own metadata.

    Args:
        value: datetime object or date/time string

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the string cannot be parsed

    Examples:
        >>> parse_timestamp("2025-01-15")
        datetime(2025, 1, 15, 0, 0, tzinfo=timezone.utc)

        >>> parse_timestamp("2023-01-01T10:00:00.000Z")
        datetime(2023, 1, 1, 10, 0, tzinfo=tzutc())
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = dateparser.parse(value.strip())
        except (ValueError, OverflowError, dateparser.ParserError) as e:
            raise ValueError(f"Cannot parse timestamp: {value}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed
