"""Access to the live operational store that the archiver drains."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..archival.models import AggregatedRecord, RawRecord, RecordID
from ..archival.providers import PROVIDER_TABLES, Provider
from .base import BaseDatabase


class HotStore:
    """Operations the archival pipeline needs from the hot store."""

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def health_check(self) -> bool:
        raise NotImplementedError

    async def find_stale(self, provider: Provider, cutoff: datetime) -> List[RawRecord]:
        raise NotImplementedError

    async def find_aggregates(
        self,
        provider: Provider,
        location_id: Optional[str],
        start: datetime,
        end: datetime,
    ) -> List[AggregatedRecord]:
        raise NotImplementedError

    async def delete_raw(self, provider: Provider, ids: Sequence[RecordID]) -> int:
        raise NotImplementedError


def _raw_from_row(provider: Provider, row: Dict[str, Any]) -> RawRecord:
    return RawRecord(
        id=RecordID(str(row["id"])),
        provider=provider,
        date=row["date"],
        location_id=None if row.get("location_id") is None else str(row["location_id"]),
        endpoint=row.get("endpoint"),
        payload=row.get("payload") or {},
    )


def _aggregate_from_row(row: Dict[str, Any]) -> AggregatedRecord:
    return AggregatedRecord(
        id=RecordID(str(row["id"])),
        date=row["date"],
        location_id=None if row.get("location_id") is None else str(row["location_id"]),
        payload=row.get("payload") or {},
    )


class PostgresHotStore(HotStore):
    """Hot store backed by the ``*_raw_data`` / ``*_aggregated`` tables."""

    def __init__(self, db: BaseDatabase) -> None:
        self.db = db

    async def connect(self) -> None:
        await self.db.connect()

    async def close(self) -> None:
        await self.db.close()

    async def health_check(self) -> bool:
        return await self.db.health_check()

    async def find_stale(self, provider: Provider, cutoff: datetime) -> List[RawRecord]:
        table = PROVIDER_TABLES[provider].raw_table
        rows = await self.db.fetch(
            f"SELECT id, location_id, endpoint, date, payload FROM {table} "
            "WHERE date < $1 ORDER BY date, id",
            cutoff,
        )
        return [_raw_from_row(provider, row) for row in rows]

    async def find_aggregates(
        self,
        provider: Provider,
        location_id: Optional[str],
        start: datetime,
        end: datetime,
    ) -> List[AggregatedRecord]:
        table = PROVIDER_TABLES[provider].aggregate_table
        if location_id is None:
            rows = await self.db.fetch(
                f"SELECT id, location_id, date, payload FROM {table} "
                "WHERE location_id IS NULL AND date >= $1 AND date <= $2 "
                "ORDER BY date, id",
                start,
                end,
            )
        else:
            rows = await self.db.fetch(
                f"SELECT id, location_id, date, payload FROM {table} "
                "WHERE location_id = $1 AND date >= $2 AND date <= $3 "
                "ORDER BY date, id",
                location_id,
                start,
                end,
            )
        return [_aggregate_from_row(row) for row in rows]

    async def delete_raw(self, provider: Provider, ids: Sequence[RecordID]) -> int:
        table = PROVIDER_TABLES[provider].raw_table
        return await self.db.execute(
            f"DELETE FROM {table} WHERE id = ANY($1::text[])", list(ids)
        )
