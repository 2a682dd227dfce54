"""Wall-clock source shared by the services; tests inject their own."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
