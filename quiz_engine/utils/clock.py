"""
Wall-clock helper

Timestamps are stored as naive UTC (TIMESTAMP WITHOUT TIME ZONE).
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
