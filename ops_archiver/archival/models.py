"""
Data model of the archival pipeline.

Raw and aggregated records are carried through the pipeline as opaque
documents; only their id, location, endpoint and date are ever inspected.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, NewType, Optional

from .providers import PROVIDER_TABLES, Provider

RecordID = NewType("RecordID", str)
Document = Dict[str, Any]

UNKNOWN = "unknown"


@dataclass
class RawRecord:
    id: RecordID
    provider: Provider
    date: datetime
    location_id: Optional[str] = None
    endpoint: Optional[str] = None
    payload: Document = field(default_factory=dict)

    def to_document(self) -> Document:
        doc: Document = {
            "id": self.id,
            "locationId": self.location_id,
            "date": self.date,
            "payload": self.payload,
        }
        if self.endpoint is not None:
            doc["endpoint"] = self.endpoint
        return doc


@dataclass
class AggregatedRecord:
    id: RecordID
    date: datetime
    location_id: Optional[str] = None
    payload: Document = field(default_factory=dict)

    def to_document(self) -> Document:
        return {
            "id": self.id,
            "locationId": self.location_id,
            "date": self.date,
            "payload": self.payload,
        }


def _name_part(value: Optional[str], reserved: str) -> str:
    """File-name form of an id. Distinct ids never share a form."""
    if value is None:
        return UNKNOWN
    if value == UNKNOWN:
        return "%75" + UNKNOWN[1:]
    return "".join(f"%{ord(c):02X}" if c in reserved else c for c in value)


@dataclass(frozen=True)
class PartitionKey:
    """One archive file's worth of raw records.

    ``location_id`` and ``endpoint`` are ``None`` when the records carry no
    value; the file name renders them as ``unknown``.
    """

    provider: Provider
    location_id: Optional[str]
    year: int
    month: int
    endpoint: Optional[str] = None

    @property
    def has_endpoint(self) -> bool:
        return PROVIDER_TABLES[self.provider].partition_by_endpoint

    @property
    def stem(self) -> str:
        parts = [self.provider.value]
        if self.has_endpoint:
            # the first unescaped dash after the provider ends the endpoint
            parts.append(_name_part(self.endpoint, "%/-"))
        parts.extend(
            [
                _name_part(self.location_id, "%/"),
                f"{self.year:04d}",
                f"{self.month:02d}",
            ]
        )
        return "-".join(parts)

    def __str__(self) -> str:
        return self.stem


@dataclass
class ArchiveStats:
    """Per-provider counters accumulated over one run."""

    provider: Provider
    records_found: int = 0
    records_archived: int = 0
    records_deleted: int = 0
    partitions_found: int = 0
    total_size_before: int = 0
    total_size_after: int = 0
    archive_files: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def space_freed(self) -> int:
        return self.total_size_before - self.total_size_after

    def add_error(
        self, partition: Optional[PartitionKey], message: str, category: str
    ) -> None:
        self.errors.append(
            {
                "partition": str(partition) if partition is not None else None,
                "message": message,
                "category": category,
            }
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "recordsFound": self.records_found,
            "recordsArchived": self.records_archived,
            "recordsDeleted": self.records_deleted,
            "partitionsFound": self.partitions_found,
            "totalSizeBefore": self.total_size_before,
            "totalSizeAfter": self.total_size_after,
            "archiveFiles": list(self.archive_files),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def bytes_to_mb(value: int) -> float:
    return round(value / 1024 / 1024, 2)


@dataclass
class ArchiveRunResult:
    """Outcome of one invocation across the selected providers."""

    dry_run: bool
    months_to_keep: int
    cutoff: datetime
    stats: List[ArchiveStats]

    @property
    def space_freed(self) -> int:
        return sum(s.space_freed for s in self.stats)

    @property
    def message(self) -> str:
        if self.dry_run:
            found = sum(s.records_found for s in self.stats)
            return f"Dry run completed. Would archive {found} records."
        archived = sum(s.records_archived for s in self.stats)
        return (
            f"Archival completed. Archived {archived} records, "
            f"freed {bytes_to_mb(self.space_freed)} MB."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "dryRun": self.dry_run,
            "monthsToKeep": self.months_to_keep,
            "cutoffDate": self.cutoff.isoformat(),
            "stats": [s.to_dict() for s in self.stats],
            "totalSpaceFreedMB": bytes_to_mb(self.space_freed),
            "message": self.message,
        }


def failure_response(error: str, stats: List[ArchiveStats]) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error,
        "stats": [s.to_dict() for s in stats],
    }
