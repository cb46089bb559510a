import secrets
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC; every stored timestamp is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_timestamp(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)


def generate_tracking_number() -> str:
    # Date prefix keeps numbers roughly sortable; 10 hex chars of entropy avoid collisions
    return f"{utcnow():%Y%m%d}{secrets.token_hex(5).upper()}"
