import asyncio
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import requests
from fastapi.testclient import TestClient

from strive.enrichment.enricher import ItemEnricher
from strive.enrichment.imdb import IMDbClient
from strive.enrichment.tmdb import TMDBClient
from strive.exporters.list_export import export_filename, export_items
from strive.models import ListItem
from strive.web.app import create_app
from strive.web.lists import resolve_list

HEADER_LINE = "tmdbId,imdbId,name,year,mediaType,tmdbRating,imdbRating,tmdbVotes,imdbVotes"


def _seed_watchlist(db, user_id):
    db.add_items(
        user_id,
        "watchlist",
        [
            ListItem(
                id="123",
                title="Test Movie",
                media_type="movie",
                release_date="2022-06-01",
                vote_average=7.3,
                vote_count=111,
            ),
            ListItem(
                id="456",
                title="",
                name="Test Show",
                media_type="tv",
                first_air_date="2019-09-01",
                vote_average=8.1,
                vote_count=222,
            ),
        ],
    )


def test_export_watchlist_with_providers_disabled(client, db, tmdb, imdb, user_id, auth_headers):
    tmdb.enabled = False
    imdb.enabled = False
    _seed_watchlist(db, user_id)

    response = client.get("/lists/watchlist/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["cache-control"] == "no-cache"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="Watchlist-')
    assert disposition.endswith('.csv"')
    assert response.text.split("\n") == [
        HEADER_LINE,
        "123,,Test Movie,2022,movie,7.3,,111,",
        "456,,Test Show,2019,tv,8.1,,222,",
    ]


def test_export_leaves_ratings_empty_for_unknown_titles(client, db, user_id, auth_headers):
    db.add_items(user_id, "watchlist", [ListItem(id="9", title="Quiet Film", media_type="movie")])

    response = client.get("/lists/watchlist/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.text.split("\n")[1] == "9,,Quiet Film,,movie,,,,"


def test_export_degrades_when_providers_time_out_or_fail(db, user_id, auth_headers):
    def hang(*args, **kwargs):
        time.sleep(0.3)

    tmdb = TMDBClient("key", timeout=0.05)
    tmdb.session = MagicMock()
    tmdb.session.get.side_effect = hang
    imdb = IMDbClient("https://api.imdbapi.dev", timeout=0.05)
    imdb.session = MagicMock()
    imdb.session.get.side_effect = requests.ConnectionError("down")
    db.add_items(
        user_id,
        "watchlist",
        [ListItem(id="603", title="The Matrix", media_type="movie", release_date="1999-03-31", imdb_id="tt0133093")],
    )

    app = create_app(database=db, tmdb=tmdb, imdb=imdb, start_scheduler=False)
    with TestClient(app) as client:
        response = client.get("/lists/watchlist/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.text.split("\n") == [HEADER_LINE, "603,tt0133093,The Matrix,1999,movie,,,,"]
    assert tmdb.session.get.called
    assert imdb.session.get.called


def test_export_custom_list_uses_list_name(client, db, tmdb, user_id, auth_headers):
    user_list = db.create_list(user_id, "Sci-Fi Picks")
    tmdb.titles[("movie", "603")] = {"id": 603, "vote_average": 8.2, "vote_count": 26000}
    db.add_items(user_id, user_list.id, [ListItem(id="603", title="The Matrix", release_date="1999-03-31")])

    response = client.get(f"/lists/{user_list.id}/export", headers=auth_headers)

    assert response.status_code == 200
    assert 'filename="Sci-Fi Picks-' in response.headers["content-disposition"]
    assert response.text.split("\n")[1] == "603,,The Matrix,1999,movie,8.2,,26000,"


def test_export_missing_list(client, auth_headers):
    response = client.get("/lists/doesnotexist/export", headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "List not found"}


def test_export_list_owned_by_someone_else(client, db, other_user_id, auth_headers):
    user_list = db.create_list(other_user_id, "Private")
    db.add_items(other_user_id, user_list.id, [ListItem(id="1", title="Secret")])

    response = client.get(f"/lists/{user_list.id}/export", headers=auth_headers)

    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden: You do not have permission to access this list"}


def test_export_empty_list_is_no_content(client, db, user_id, auth_headers):
    user_list = db.create_list(user_id, "Empty")

    response = client.get(f"/lists/{user_list.id}/export", headers=auth_headers)

    assert response.status_code == 204
    assert response.content == b""


def test_export_requires_bearer_token(client):
    response = client.get("/lists/watchlist/export")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized: Missing or invalid authorization header"}


def test_export_rejects_unknown_token(client):
    response = client.get("/lists/watchlist/export", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized: Invalid token"}


def test_export_rejects_malformed_list_id(client, auth_headers):
    response = client.get("/lists/bad$id/export", headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid list ID"}


def test_export_rejects_other_methods(client, auth_headers):
    response = client.post("/lists/watchlist/export", headers=auth_headers)
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_export_keeps_item_order_when_enrichment_finishes_out_of_order(db, tmdb, imdb, user_id):
    items = []
    for i in range(6):
        item_id = str(100 + i)
        tmdb.titles[("movie", item_id)] = {"id": 100 + i, "vote_average": 5.0 + i, "vote_count": i}
        # Earlier items answer last
        tmdb.delays[item_id] = 0.01 * (6 - i)
        items.append(ListItem(id=item_id, title=f"Film {i}", media_type="movie"))
    db.add_items(user_id, "watchlist", items)

    resolved = resolve_list(db, user_id, "watchlist")
    export = asyncio.run(export_items(resolved, db, ItemEnricher(tmdb, imdb), concurrency=3))

    ids = [line.split(",")[0] for line in export.body.split("\n")[1:]]
    assert ids == [str(100 + i) for i in range(6)]
    assert export.row_count == 6


def test_export_filename_uses_utc_date_and_strips_line_breaks():
    now = datetime(2024, 2, 29, 23, 0, tzinfo=timezone.utc)
    assert export_filename("My\nList", now) == "My List-20240229.csv"
