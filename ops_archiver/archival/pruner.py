import logging
from dataclasses import dataclass
from typing import Sequence

from ..db.hot_store import HotStore
from ..monitoring.metrics import metrics
from .models import RecordID
from .providers import Provider

logger = logging.getLogger("ops_archiver")


@dataclass
class PruneResult:
    requested: int
    deleted: int

    @property
    def short(self) -> bool:
        return self.deleted < self.requested


async def prune_partition(
    store: HotStore, provider: Provider, ids: Sequence[RecordID]
) -> PruneResult:
    """Delete exactly ``ids`` from the provider's raw table.

    Callers must only pass ids whose archive file has been written.
    """
    if not ids:
        return PruneResult(requested=0, deleted=0)
    deleted = await store.delete_raw(provider, ids)
    metrics.inc("archive_records_deleted", deleted)
    result = PruneResult(requested=len(ids), deleted=deleted)
    if result.short:
        metrics.inc("archive_short_deletes")
        logger.warning(
            f"Deleted {deleted} of {len(ids)} {provider.value} records; "
            "the remainder stays in the hot store"
        )
    return result
