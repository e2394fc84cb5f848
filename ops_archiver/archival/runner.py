"""
Archival run orchestration.

Per provider the run is linear::

    LOCATE -> GROUP -> (dry run: count only |
                        per partition: FETCH_AGGREGATES -> WRITE -> PRUNE)
           -> re-measure -> FINALIZE

Partitions are processed one at a time. Each partition has its own error
boundary, and so does each provider: a failure is recorded in the provider's
``errors`` and the run moves on. Raw records are only deleted after their
archive file has been written.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..config.config import ArchiveConfig
from ..db.hot_store import HotStore
from ..monitoring.metrics import metrics
from ..utils.errors import categorize_exception
from .aggregates import fetch_aggregate_window
from .cutoff import compute_cutoff
from .grouping import group_by_partition
from .locator import find_stale_records
from .models import ArchiveRunResult, ArchiveStats, PartitionKey, RawRecord
from .providers import Provider, resolve_providers
from .pruner import prune_partition
from .writer import ArchiveWriter, encoded_size

logger = logging.getLogger("ops_archiver")


class ArchiveRunner:
    def __init__(
        self,
        store: HotStore,
        cfg: Optional[ArchiveConfig] = None,
        writer: Optional[ArchiveWriter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.cfg = cfg or ArchiveConfig()
        self.tz = self.cfg.tzinfo
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.writer = writer or ArchiveWriter(
            self.cfg.archive_dir, self.cfg.compression_level, clock=self._clock
        )

    async def run(
        self,
        months_to_keep: Optional[int] = None,
        dry_run: bool = False,
        provider: str = "all",
        stats: Optional[List[ArchiveStats]] = None,
    ) -> ArchiveRunResult:
        """Archive every selected provider.

        ``stats`` receives each provider's statistics as soon as its sub-run
        starts, so a caller that cancels the run keeps what was accumulated.
        Invalid input raises ``ValueError`` before any work is done.
        """
        if months_to_keep is None:
            months_to_keep = self.cfg.default_months
        providers = resolve_providers(provider)
        cutoff = compute_cutoff(months_to_keep, now=self._clock())
        stats = stats if stats is not None else []

        logger.info("Starting archival process")
        logger.info(
            f"Cutoff date: {cutoff.isoformat()} (keeping data newer than "
            f"{months_to_keep} month(s) / {months_to_keep * 4} weeks)"
        )
        logger.info(f"Dry run: {dry_run}")

        if not dry_run:
            self.writer.ensure_directory()

        for p in providers:
            provider_stats = ArchiveStats(provider=p)
            stats.append(provider_stats)
            await self.archive_provider(p, cutoff, dry_run, provider_stats)

        return ArchiveRunResult(
            dry_run=dry_run,
            months_to_keep=months_to_keep,
            cutoff=cutoff,
            stats=stats,
        )

    async def archive_provider(
        self,
        provider: Provider,
        cutoff: datetime,
        dry_run: bool = False,
        stats: Optional[ArchiveStats] = None,
    ) -> ArchiveStats:
        if stats is None:
            stats = ArchiveStats(provider=provider)
        try:
            records = await find_stale_records(self.store, provider, cutoff)
            stats.records_found = len(records)
            metrics.inc("archive_records_found", len(records))
            if not records:
                return stats

            groups = group_by_partition(records, self.tz)
            stats.partitions_found = len(groups)
            stats.total_size_before = encoded_size(records)

            if not dry_run:
                for key, partition_records in groups.items():
                    await self._archive_partition(key, partition_records, stats)

            remaining = await find_stale_records(self.store, provider, cutoff)
            stats.total_size_after = encoded_size(remaining)
        except Exception as e:
            stats.add_error(
                None,
                f"Error processing {provider.value} data: {e}",
                categorize_exception(e).value,
            )
            logger.exception(f"Error archiving {provider.value} data")
        return stats

    async def _archive_partition(
        self, key: PartitionKey, records: List[RawRecord], stats: ArchiveStats
    ) -> None:
        try:
            aggregates = await fetch_aggregate_window(self.store, key, self.tz)
            result = await self.writer.write(key, records, aggregates)
            stats.archive_files.append(result.file_name)
            stats.records_archived += len(records)
            metrics.inc("archive_records_archived", len(records))

            pruned = await prune_partition(
                self.store, key.provider, [r.id for r in records]
            )
            stats.records_deleted += pruned.deleted
            if pruned.short:
                stats.warnings.append(
                    f"{key}: deleted {pruned.deleted} of {pruned.requested} records"
                )
            logger.info(
                f"Archived {len(records)} raw records + {len(aggregates)} "
                f"aggregated records for {key}"
            )
        except Exception as e:
            metrics.inc("archive_partition_errors")
            stats.add_error(
                key, f"Error archiving {key}: {e}", categorize_exception(e).value
            )
            logger.exception(f"Error archiving {key}")
