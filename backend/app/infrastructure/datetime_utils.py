from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time in UTC; used for every persisted timestamp."""
    return datetime.now(timezone.utc)
