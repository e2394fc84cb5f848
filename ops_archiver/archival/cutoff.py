import calendar
from datetime import datetime, timezone
from typing import Optional


def subtract_months(moment: datetime, months: int) -> datetime:
    """Step ``moment`` back by calendar months, clamping to the month end."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def compute_cutoff(months_to_keep: int = 1, now: Optional[datetime] = None) -> datetime:
    """Return the instant before which raw records are eligible for archival.

    ``0`` keeps nothing: everything up to ``now`` is eligible.
    """
    if isinstance(months_to_keep, bool) or not isinstance(months_to_keep, int):
        raise ValueError(f"months must be an integer, got {months_to_keep!r}")
    if months_to_keep < 0:
        raise ValueError(f"months must be >= 0, got {months_to_keep}")
    now = now or datetime.now(timezone.utc)
    return subtract_months(now, months_to_keep)
