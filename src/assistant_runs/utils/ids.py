"""Identifier and timestamp helpers for OpenAI-style resources"""

from datetime import UTC, datetime
from uuid import uuid4


def generate_id(prefix: str) -> str:
    """Return an opaque id such as ``run_3f2c...`` (prefix + 32 hex chars)."""
    return f"{prefix}_{uuid4().hex}"


def to_unix(value: datetime | None) -> int | None:
    """Convert a stored timestamp to unix seconds.

    SQLite hands back naive datetimes; they were written as UTC so they are
    interpreted as UTC rather than local time.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())
