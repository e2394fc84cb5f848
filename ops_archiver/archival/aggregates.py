from datetime import datetime, timedelta, timezone, tzinfo
from typing import List, Tuple

from ..db.hot_store import HotStore
from .models import AggregatedRecord, PartitionKey


def month_window(
    year: int, month: int, tz: tzinfo = timezone.utc
) -> Tuple[datetime, datetime]:
    """First and last instant (inclusive, microsecond precision) of a month."""
    start = datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        next_start = datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        next_start = datetime(year, month + 1, 1, tzinfo=tz)
    return start, next_start - timedelta(microseconds=1)


async def fetch_aggregate_window(
    store: HotStore, key: PartitionKey, tz: tzinfo = timezone.utc
) -> List[AggregatedRecord]:
    """Aggregates for the partition's location and month. Read-only."""
    start, end = month_window(key.year, key.month, tz)
    return await store.find_aggregates(key.provider, key.location_id, start, end)
