"""Abstract base class for sync providers and list ingestion."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List

from strive.models import ListItem
from strive.web.lists import ResolvedList
from strive.web.repository import ListRepository

logger = logging.getLogger(__name__)


class BaseSource(ABC):
    """Abstract base class for watch-history sync providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the source name."""
        pass

    @abstractmethod
    def get_watchlist(self) -> List[ListItem]:
        """
        Get the plan-to-watch titles.

        Returns:
            List of pending ListItem objects ready to be stored.
        """
        pass

    def test_connection(self) -> bool:
        """
        Test if the source is accessible.

        Returns:
            True if connection is successful, False otherwise.
        """
        return True


async def ingest(source: BaseSource, repository: ListRepository, resolved: ResolvedList) -> int:
    """Add the source's titles that are not yet in the list. Returns the count added."""
    items = await asyncio.to_thread(source.get_watchlist)
    existing = repository.get_item_ids(resolved.user_id, resolved.list_id)

    new_items = []
    for item in items:
        if item.id in existing:
            continue
        existing.add(item.id)
        new_items.append(item)

    if new_items:
        repository.add_items(resolved.user_id, resolved.list_id, new_items)
    logger.info(f"Ingested {len(new_items)} of {len(items)} {source.name} items into list {resolved.list_id}")
    return len(new_items)
