from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how SQLite stores DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
