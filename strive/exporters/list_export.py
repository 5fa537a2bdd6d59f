"""Export a user's list to CSV with merged ratings."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from strive.concurrency import gather_limited
from strive.enrichment.enricher import ItemEnricher
from strive.exporters.csv_codec import encode_csv
from strive.models import utc_now
from strive.web.lists import ResolvedList, resolve_list
from strive.web.repository import ListRepository

logger = logging.getLogger(__name__)

EXPORT_CONCURRENCY = 8


@dataclass
class CsvExport:
    """A ready-to-download CSV file."""

    filename: str
    body: str
    row_count: int


def export_filename(label: str, now: Optional[datetime] = None) -> str:
    """``{label}-{UTCYYYYMMDD}.csv`` with line breaks removed from the label."""
    now = now or utc_now()
    safe_label = label.replace("\r", " ").replace("\n", " ").strip()
    return f"{safe_label}-{now.strftime('%Y%m%d')}.csv"


async def export_items(
    resolved: ResolvedList,
    repository: ListRepository,
    enricher: ItemEnricher,
    concurrency: int = EXPORT_CONCURRENCY,
    now: Optional[datetime] = None,
) -> Optional[CsvExport]:
    """Enrich and encode the items of an already resolved list.

    Returns None when the list has no items; no header-only CSV is produced.
    """
    items = repository.get_items(resolved.user_id, resolved.list_id)
    if not items:
        logger.info(f"List {resolved.list_id} is empty, nothing to export")
        return None

    logger.info(f"Enriching {len(items)} items for export of list {resolved.list_id}")
    records = await gather_limited(
        [lambda item=item: enricher.enrich_item(item) for item in items],
        concurrency,
    )

    return CsvExport(
        filename=export_filename(resolved.display_name, now),
        body=encode_csv(records),
        row_count=len(records),
    )


async def export_list(
    repository: ListRepository,
    enricher: ItemEnricher,
    user_id: str,
    list_id: str,
    concurrency: int = EXPORT_CONCURRENCY,
    now: Optional[datetime] = None,
) -> Optional[CsvExport]:
    """Resolve ``list_id`` for ``user_id`` and export it.

    Raises NotFoundError / AuthorizationError / ClientError from list
    resolution; returns None for an empty list.
    """
    resolved = resolve_list(repository, user_id, list_id)
    return await export_items(resolved, repository, enricher, concurrency, now)
