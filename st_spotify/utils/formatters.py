"""Text formatting helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def format_long_datetime(value: datetime) -> str:
    """Render ``value`` in UTC as e.g. ``October 19, 2026 3:04 PM UTC``."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    hour = value.hour % 12 or 12
    return f"{value:%B} {value.day}, {value.year} {hour}:{value:%M} {value:%p} UTC"


def truncate_secret(value: str, keep: int = 12) -> str:
    """Show only the first ``keep`` characters of a token."""

    text = value or ""
    if len(text) <= keep:
        return text
    return f"{text[:keep]}... (truncated)"
