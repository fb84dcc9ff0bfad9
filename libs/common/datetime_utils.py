"""UTC timestamps and delivery date arithmetic."""

from datetime import datetime, timedelta, timezone

# Same-day services promise delivery within this window of the order
SAME_DAY_WINDOW = timedelta(hours=12)


def utc_now() -> datetime:
    """Timezone-aware now; every stored timestamp uses it."""
    return datetime.now(timezone.utc)


def delivery_window(
    start: datetime, min_days: int, max_days: int
) -> tuple[datetime, datetime]:
    """Earliest and latest arrival for a transit time of ``min_days``-``max_days``.

    A zero-day minimum is a same-day service.
    """
    if min_days == 0:
        return start, start + SAME_DAY_WINDOW
    return start + timedelta(days=min_days), start + timedelta(days=max_days)
