"""Time helpers."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Naive UTC now, matching what MongoDB hands back on reads."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
