import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from ops_archiver.archival.models import AggregatedRecord, RawRecord, RecordID
from ops_archiver.archival.providers import Provider
from ops_archiver.db.hot_store import HotStore
from ops_archiver.utils.errors import QueryError
from ops_archiver.utils.logging import LOGGER_NAME

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_raw(
    record_id: str,
    date: datetime,
    provider: Provider = Provider.BORK,
    location_id: Optional[str] = "loc-a",
    endpoint: Optional[str] = None,
    payload: Optional[dict] = None,
) -> RawRecord:
    return RawRecord(
        id=RecordID(record_id),
        provider=provider,
        date=date,
        location_id=location_id,
        endpoint=endpoint,
        payload=payload if payload is not None else {"amount": 1},
    )


def make_aggregate(
    record_id: str, date: datetime, location_id: Optional[str] = "loc-a"
) -> AggregatedRecord:
    return AggregatedRecord(
        id=RecordID(record_id),
        date=date,
        location_id=location_id,
        payload={"revenue": 100},
    )


class DummyHotStore(HotStore):
    """In-memory stand-in for the PostgreSQL hot store."""

    def __init__(self) -> None:
        self.raw: Dict[Provider, Dict[str, RawRecord]] = {p: {} for p in Provider}
        self.aggregates: Dict[Provider, List[AggregatedRecord]] = {
            p: [] for p in Provider
        }
        self.connected = False
        self.closed = False
        self.stale_queries: List[Provider] = []
        self.delete_calls: List[tuple] = []
        self.fail_stale_for: set = set()
        self.fail_aggregates_for: set = set()
        self.fail_delete_for: set = set()
        self.delete_limit: Optional[int] = None
        self.stale_delay: float = 0.0

    def add_raw(self, *records: RawRecord) -> None:
        for record in records:
            self.raw[record.provider][record.id] = record

    def add_aggregate(self, provider: Provider, *records: AggregatedRecord) -> None:
        self.aggregates[provider].extend(records)

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def health_check(self) -> bool:
        return True

    async def find_stale(self, provider, cutoff):
        self.stale_queries.append(provider)
        if self.stale_delay:
            await asyncio.sleep(self.stale_delay)
        if provider in self.fail_stale_for:
            raise QueryError("hot store unreachable")
        return [r for r in self.raw[provider].values() if r.date < cutoff]

    async def find_aggregates(self, provider, location_id, start, end):
        if location_id in self.fail_aggregates_for:
            raise QueryError(f"aggregate query failed for {location_id}")
        return [
            a
            for a in self.aggregates[provider]
            if a.location_id == location_id and start <= a.date <= end
        ]

    async def delete_raw(self, provider, ids: Sequence[RecordID]) -> int:
        self.delete_calls.append((provider, list(ids)))
        if set(ids) & self.fail_delete_for:
            raise QueryError("delete failed")
        deleted = 0
        for record_id in ids:
            if self.delete_limit is not None and deleted >= self.delete_limit:
                break
            if self.raw[provider].pop(record_id, None) is not None:
                deleted += 1
        return deleted


@pytest.fixture
def store():
    return DummyHotStore()


@pytest.fixture
def fresh_logger():
    """Run with an unconfigured service logger, restoring it afterwards."""
    logger = logging.getLogger(LOGGER_NAME)
    saved_handlers, saved_filters = logger.handlers[:], logger.filters[:]
    logger.handlers.clear()
    logger.filters.clear()
    yield logger
    for handler in logger.handlers:
        handler.handler.close()
    logger.handlers[:] = saved_handlers
    logger.filters[:] = saved_filters
