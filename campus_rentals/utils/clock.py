"""UTC time helpers shared by services and the repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to already be in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: datetime) -> str:
    # Fixed-width ISO text keeps lexical and chronological order identical.
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_storage(value: str) -> datetime:
    return ensure_utc(datetime.fromisoformat(value))
