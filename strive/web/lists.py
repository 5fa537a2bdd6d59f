"""List resolution shared by the export and import pipelines."""

import re
from dataclasses import dataclass

from strive.errors import AuthorizationError, ClientError, NotFoundError
from strive.models import WATCHLIST_ID
from strive.web.repository import ListRepository

LIST_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass(frozen=True)
class ResolvedList:
    """Where a list's items live and how to label it."""

    user_id: str
    list_id: str
    display_name: str
    is_watchlist: bool
    is_owner_verified: bool = True


def validate_list_id(list_id: str) -> str:
    if not list_id or not LIST_ID_PATTERN.match(list_id):
        raise ClientError("Invalid list ID")
    return list_id


def resolve_list(repository: ListRepository, user_id: str, list_id: str) -> ResolvedList:
    """Resolve ``list_id`` for the caller ``user_id``.

    The watchlist is implicitly owned and needs no lookup. A custom list
    must exist (404) and belong to the caller (403).
    """
    validate_list_id(list_id)

    if list_id == WATCHLIST_ID:
        return ResolvedList(
            user_id=user_id,
            list_id=WATCHLIST_ID,
            display_name="Watchlist",
            is_watchlist=True,
        )

    user_list = repository.get_list(list_id)
    if user_list is None:
        raise NotFoundError("List not found")
    if user_list.owner_id != user_id:
        raise AuthorizationError()

    return ResolvedList(
        user_id=user_id,
        list_id=user_list.id,
        display_name=user_list.display_name,
        is_watchlist=False,
    )
