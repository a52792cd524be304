from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every ledger column is stored in"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
