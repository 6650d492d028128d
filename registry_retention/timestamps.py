"""Timestamp helpers.

Registries report creation times as RFC3339 strings, frequently with
nanosecond precision which ``datetime`` cannot hold. Everything returned
from here is a timezone-aware UTC ``datetime`` so that values coming from
different manifests always compare.
"""

import re
from datetime import datetime, timezone

from .errors import InvalidTimestampError

_FRACTION = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(rfc3339: str) -> datetime:
    """Parse an RFC3339 timestamp string."""
    if not isinstance(rfc3339, str) or not rfc3339.strip():
        raise InvalidTimestampError(repr(rfc3339))

    text = rfc3339.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # Keep at most microseconds, pad shorter fractions.
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        # Offsets near year 1 or 9999 fall outside the datetime range in UTC.
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError) as e:
        raise InvalidTimestampError(f"{rfc3339!r}: {e}") from e


def format_timestamp(value: datetime) -> str:
    """Format a timestamp for log output."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
