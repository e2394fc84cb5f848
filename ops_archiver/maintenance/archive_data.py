"""Scheduled/CLI trigger for the archival run.

Intended to be run weekly by cron with the defaults (keep one month, archive
both providers).
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from ..archival.models import ArchiveStats, failure_response
from ..archival.providers import ALL_PROVIDERS, Provider
from ..archival.runner import ArchiveRunner
from ..config.config import AppConfig, load_config
from ..db.hot_store import HotStore, PostgresHotStore
from ..db.postgres import PostgresDatabase
from ..utils.logging import setup_logging
from ..utils.tracing import start_trace

logger = logging.getLogger("ops_archiver")


async def archive_data(
    cfg: AppConfig,
    months: Optional[int] = None,
    dry_run: bool = False,
    provider: str = ALL_PROVIDERS,
    store: Optional[HotStore] = None,
) -> dict:
    """Run one archival pass and return the response body."""
    store = store or PostgresHotStore(PostgresDatabase(cfg.postgres))
    stats: List[ArchiveStats] = []
    trace_id = start_trace()
    logger.info(f"Archival run {trace_id} started")
    try:
        await store.connect()
        runner = ArchiveRunner(store, cfg.archive)
        result = await asyncio.wait_for(
            runner.run(
                months_to_keep=months,
                dry_run=dry_run,
                provider=provider,
                stats=stats,
            ),
            timeout=cfg.archive.max_duration_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Archival exceeded {cfg.archive.max_duration_seconds}s and was cancelled"
        )
        return failure_response("Archival run timed out", stats)
    except Exception as e:
        logger.exception("Archival run failed")
        return failure_response(str(e) or "Failed to archive data", stats)
    finally:
        await store.close()
    logger.info(result.message)
    return result.to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Archive raw provider data older than the retention window"
    )
    parser.add_argument(
        "--months", type=int, default=None,
        help="Keep data newer than this many months (default: from config, 1)",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Only report what would be archived",
    )
    parser.add_argument(
        "--provider", default=ALL_PROVIDERS,
        choices=[p.value for p in Provider] + [ALL_PROVIDERS],
    )
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(cfg.logging)
    response = asyncio.run(
        archive_data(cfg, args.months, args.dry_run, args.provider)
    )
    print(json.dumps(response, indent=2))
    return 0 if response["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
