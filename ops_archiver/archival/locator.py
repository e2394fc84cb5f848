import logging
from datetime import datetime
from typing import List

from ..db.hot_store import HotStore
from .models import RawRecord
from .providers import Provider

logger = logging.getLogger("ops_archiver")


async def find_stale_records(
    store: HotStore, provider: Provider, cutoff: datetime
) -> List[RawRecord]:
    """Load every raw record of ``provider`` dated before ``cutoff``.

    The whole set is held in memory; store errors propagate to the caller.
    """
    records = await store.find_stale(provider, cutoff)
    logger.info(
        f"Found {len(records)} {provider.value} records older than {cutoff.isoformat()}"
    )
    return records
