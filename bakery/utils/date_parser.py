"""Timestamp parsing for Azure DevOps payloads."""

from datetime import datetime, timezone
from typing import Any


def parse_devops_datetime(value: Any) -> datetime | None:
    """Parse an Azure DevOps ISO 8601 timestamp.

    Azure DevOps returns timestamps such as ``2024-01-01T10:00:00.123Z`` with
    up to seven fractional digits, which ``datetime.fromisoformat`` only
    accepts from Python 3.11 on when trimmed to six.

    Args:
        value: Raw field value (anything that is not a string yields None)

    Returns:
        Timezone-aware datetime in UTC, or None if the value cannot be parsed
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    # Trim fractional seconds to microsecond precision
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        for char in rest:
            if not char.isdigit():
                break
            digits += char
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest[len(digits):]}"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_devops_datetime_or_now(value: Any) -> datetime:
    """Parse a timestamp, falling back to the current UTC time."""
    return parse_devops_datetime(value) or datetime.now(timezone.utc)
