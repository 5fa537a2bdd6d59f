import pytest

from strive.errors import AuthError, AuthorizationError, ClientError, NotFoundError
from strive.auth.tokens import TokenVerifier
from strive.models import ENRICHED, PENDING, ListItem
from strive.web.lists import resolve_list


def test_items_are_scoped_per_list(db, user_id):
    user_list = db.create_list(user_id, "Other")
    db.add_items(user_id, "watchlist", [ListItem(id="603", title="The Matrix")])
    db.add_items(user_id, user_list.id, [ListItem(id="603", title="The Matrix")])

    db.remove_item(user_id, "watchlist", "603")

    assert db.get_item_ids(user_id, "watchlist") == set()
    assert db.get_item_ids(user_id, user_list.id) == {"603"}


def test_add_items_replaces_existing_id_and_keeps_date_added(db, user_id):
    db.add_items(user_id, "watchlist", [ListItem(id="603", title="Old Title")])
    added_at = db.get_items(user_id, "watchlist")[0].date_added

    count = db.add_items(user_id, "watchlist", [ListItem(id="603", title="New Title"), ListItem(id="604", title="B")])

    items = db.get_items(user_id, "watchlist")
    assert count == 2
    assert [item.title for item in items] == ["New Title", "B"]
    assert items[0].date_added == added_at


def test_update_item_fields_ignores_unknown_keys(db, user_id):
    db.add_items(user_id, "watchlist", [ListItem(id="1", title="A")])

    assert db.update_item_fields(user_id, "watchlist", "1", {"enrichment_status": ENRICHED, "item_id": "x"})
    assert not db.update_item_fields(user_id, "watchlist", "missing", {"enrichment_status": ENRICHED})
    assert db.get_items(user_id, "watchlist")[0].enrichment_status == ENRICHED
    assert db.get_item_ids(user_id, "watchlist") == {"1"}


def test_pending_items_are_limited(db, user_id):
    db.add_items(user_id, "watchlist", [ListItem(id=str(i), title=str(i)) for i in range(8)])
    db.update_item_fields(user_id, "watchlist", "0", {"enrichment_status": ENRICHED})

    pending = db.get_pending_items(user_id, "watchlist", limit=5)

    assert [item.id for item in pending] == ["1", "2", "3", "4", "5"]
    assert all(item.enrichment_status == PENDING for item in pending)


def test_delete_list_only_by_owner(db, user_id, other_user_id):
    user_list = db.create_list(user_id, "Mine")
    db.add_items(user_id, user_list.id, [ListItem(id="1", title="A")])

    assert not db.delete_list(other_user_id, user_list.id)
    assert db.delete_list(user_id, user_list.id)
    assert db.get_items(user_id, user_list.id) == []


def test_tokens_resolve_until_revoked(db, user_id):
    token = db.issue_token(user_id)
    verifier = TokenVerifier(db)

    assert verifier.authenticate(f"Bearer {token}") == user_id
    assert db.revoke_token(token)
    with pytest.raises(AuthError):
        verifier.verify(token)


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer"])
def test_malformed_authorization_header(db, header):
    with pytest.raises(AuthError) as exc:
        TokenVerifier(db).authenticate(header)
    assert exc.value.message == "Unauthorized: Missing or invalid authorization header"


def test_resolve_list(db, user_id, other_user_id):
    watchlist = resolve_list(db, user_id, "watchlist")
    assert watchlist.is_watchlist
    assert watchlist.display_name == "Watchlist"

    mine = db.create_list(user_id, "Mine")
    assert resolve_list(db, user_id, mine.id).display_name == "Mine"

    with pytest.raises(AuthorizationError):
        resolve_list(db, other_user_id, mine.id)
    with pytest.raises(NotFoundError):
        resolve_list(db, user_id, "missing")
    with pytest.raises(ClientError):
        resolve_list(db, user_id, "../etc")
