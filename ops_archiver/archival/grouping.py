from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List

from .models import PartitionKey, RawRecord
from .providers import PROVIDER_TABLES


def local_date(moment: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Express ``moment`` in ``tz``; naive timestamps are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def partition_key_for(record: RawRecord, tz: tzinfo = timezone.utc) -> PartitionKey:
    when = local_date(record.date, tz)
    endpoint = None
    if PROVIDER_TABLES[record.provider].partition_by_endpoint:
        endpoint = record.endpoint or None
    return PartitionKey(
        provider=record.provider,
        location_id=record.location_id or None,
        year=when.year,
        month=when.month,
        endpoint=endpoint,
    )


def group_by_partition(
    records: Iterable[RawRecord], tz: tzinfo = timezone.utc
) -> Dict[PartitionKey, List[RawRecord]]:
    """Bucket records by partition, preserving first-seen and input order."""
    groups: Dict[PartitionKey, List[RawRecord]] = {}
    for record in records:
        groups.setdefault(partition_key_for(record, tz), []).append(record)
    return groups
