"""Naive-UTC time helpers (DB columns store naive UTC datetimes)."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo, comparable with stored columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
