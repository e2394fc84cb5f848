"""
Archive file writer.

Each partition becomes one ``.json.gz`` file holding compact JSON::

    {"metadata": {...}, "rawData": [...], "aggregatedData": [...]}

Files are written to a temporary sibling, fsynced and then renamed into place
so a reader never observes a half-written archive. When a file for the same
partition already exists (a record arrived late for a month that was archived
before), its raw records are merged with the new ones instead of being
overwritten.
"""

import asyncio
import gzip
import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..monitoring.metrics import metrics
from ..utils.errors import ArchiveWriteError
from .models import AggregatedRecord, Document, PartitionKey, RawRecord

logger = logging.getLogger("ops_archiver")

ARCHIVE_SUFFIX = ".json.gz"
MAX_COMPRESSION_LEVEL = 9


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_compact_json(value: Any) -> bytes:
    """Serialize without indentation or spaces."""
    return json.dumps(
        value, separators=(",", ":"), default=_json_default, ensure_ascii=False
    ).encode("utf-8")


def encoded_size(records: Sequence[RawRecord]) -> int:
    """Byte size of the compact JSON encoding of ``records``."""
    if not records:
        return 0
    return len(to_compact_json([r.to_document() for r in records]))


def archive_file_name(key: PartitionKey) -> str:
    return f"{key.stem}{ARCHIVE_SUFFIX}"


@dataclass
class ArchiveResult:
    file_name: str
    path: Path
    raw_count: int
    aggregate_count: int
    bytes_written: int


class ArchiveWriter:
    """Serialize, compress and durably persist partition archives."""

    def __init__(
        self,
        archive_dir: str | Path,
        compression_level: int = MAX_COMPRESSION_LEVEL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.archive_dir = Path(archive_dir)
        self.compression_level = compression_level
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def ensure_directory(self) -> None:
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def build_document(
        self,
        key: PartitionKey,
        raw_data: List[Document],
        aggregated_data: List[Document],
        archived_at: datetime,
    ) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"provider": key.provider.value}
        if key.has_endpoint:
            metadata["endpoint"] = key.endpoint
        metadata.update(
            {
                "locationId": key.location_id,
                "year": key.year,
                "month": key.month,
                "archivedAt": archived_at.isoformat(),
                "rawRecordsCount": len(raw_data),
                "aggregatedRecordsCount": len(aggregated_data),
            }
        )
        return {
            "metadata": metadata,
            "rawData": raw_data,
            "aggregatedData": aggregated_data,
        }

    def encode(self, document: Dict[str, Any]) -> bytes:
        return gzip.compress(to_compact_json(document), compresslevel=self.compression_level)

    def _read_existing_raw(self, path: Path) -> List[Document]:
        try:
            with gzip.open(path, "rb") as f:
                existing = json.loads(f.read().decode("utf-8"))
            return list(existing["rawData"])
        except (OSError, EOFError, ValueError, KeyError, TypeError) as e:
            raise ArchiveWriteError(
                f"Existing archive {path.name} is unreadable, refusing to replace it: {e}"
            ) from e

    def _merge_raw(
        self, existing: List[Document], new: List[Document]
    ) -> List[Document]:
        merged: Dict[str, Document] = {}
        for doc in existing:
            merged[str(doc.get("id"))] = doc
        for doc in new:
            merged[str(doc["id"])] = doc
        return list(merged.values())

    def _persist(
        self,
        key: PartitionKey,
        raw: Sequence[RawRecord],
        aggregates: Sequence[AggregatedRecord],
    ) -> ArchiveResult:
        file_name = archive_file_name(key)
        path = self.archive_dir / file_name
        tmp_path = self.archive_dir / f".{file_name}.{uuid.uuid4().hex}.tmp"

        raw_docs = [r.to_document() for r in raw]
        # json round trip so merged and fresh documents compare on equal terms
        raw_docs = json.loads(to_compact_json(raw_docs))
        if path.exists():
            raw_docs = self._merge_raw(self._read_existing_raw(path), raw_docs)
            logger.info(f"Merging into existing archive {file_name}")

        document = self.build_document(
            key,
            raw_docs,
            [a.to_document() for a in aggregates],
            self._clock(),
        )
        try:
            payload = self.encode(document)
            with open(tmp_path, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise ArchiveWriteError(f"Failed to write {file_name}: {e}") from e

        return ArchiveResult(
            file_name=file_name,
            path=path,
            raw_count=len(raw_docs),
            aggregate_count=len(aggregates),
            bytes_written=len(payload),
        )

    async def write(
        self,
        key: PartitionKey,
        raw: Sequence[RawRecord],
        aggregates: Sequence[AggregatedRecord],
    ) -> ArchiveResult:
        """Persist one partition; raises ``ArchiveWriteError`` on any failure."""
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None, self._persist, key, list(raw), list(aggregates)
            )
        except ArchiveWriteError:
            raise
        except (OSError, TypeError, ValueError) as e:
            raise ArchiveWriteError(f"Failed to write {archive_file_name(key)}: {e}") from e
        metrics.inc("archive_bytes_written", result.bytes_written)
        return result
