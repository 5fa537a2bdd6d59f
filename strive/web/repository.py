"""Abstract storage interface for lists and their items."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from strive.models import ListItem, UserList


class ListRepository(ABC):
    """Path-addressed list storage.

    Items live under ``(user_id, list_id)``; the watchlist is addressed by
    the ``"watchlist"`` list id and has no list record of its own.
    """

    @abstractmethod
    def get_list(self, list_id: str) -> Optional[UserList]:
        """Get a custom list by id, or None."""
        pass

    @abstractmethod
    def get_user_lists(self, user_id: str) -> List[UserList]:
        """Get all custom lists of a user, pinned first."""
        pass

    @abstractmethod
    def create_list(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        is_pinned: bool = False,
    ) -> UserList:
        pass

    @abstractmethod
    def delete_list(self, user_id: str, list_id: str) -> bool:
        """Delete a custom list and all of its items."""
        pass

    @abstractmethod
    def set_pinned(self, list_id: str, pinned: bool) -> Optional[UserList]:
        pass

    @abstractmethod
    def get_items(self, user_id: str, list_id: str) -> List[ListItem]:
        """Get all items of a list in insertion order."""
        pass

    @abstractmethod
    def get_item_ids(self, user_id: str, list_id: str) -> set[str]:
        pass

    @abstractmethod
    def get_pending_items(self, user_id: str, list_id: str, limit: int = 5) -> List[ListItem]:
        pass

    @abstractmethod
    def add_items(self, user_id: str, list_id: str, items: Iterable[ListItem]) -> int:
        """Write items in one atomic batch, replacing any with the same id.

        ``date_added`` of an existing item is kept. Returns the number written.
        """
        pass

    @abstractmethod
    def update_item_fields(self, user_id: str, list_id: str, item_id: str, fields: dict) -> bool:
        """Merge ``fields`` into one item. Returns False if it does not exist."""
        pass

    @abstractmethod
    def remove_item(self, user_id: str, list_id: str, item_id: str) -> bool:
        pass

    @abstractmethod
    def users_with_pending_items(self) -> List[str]:
        pass
