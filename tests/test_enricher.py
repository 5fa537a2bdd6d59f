import asyncio

from strive.enrichment.enricher import ItemEnricher, derive_media_type, utc_year
from strive.models import ListItem


def test_media_type_derivation():
    assert derive_media_type(ListItem(id="1", media_type="tv")) == "tv"
    assert derive_media_type(ListItem(id="1", first_air_date="2019-01-01")) == "tv"
    assert derive_media_type(ListItem(id="1", release_date="2019-01-01")) == "movie"
    assert derive_media_type(ListItem(id="1", media_type="person")) == "movie"


def test_utc_year():
    assert utc_year("2022-05-01") == "2022"
    assert utc_year("1999") == "1999"
    assert utc_year("2020-01-01T02:00:00+05:00") == "2019"
    assert utc_year("not a date") == ""
    assert utc_year(None) == ""


def test_merges_both_providers(tmdb, imdb):
    tmdb.titles[("movie", "603")] = {"id": 603, "vote_average": 8.219, "vote_count": 26000, "poster_path": "/m.jpg"}
    tmdb.external[("movie", "603")] = "tt0133093"
    imdb.ratings_by_id["tt0133093"] = (8.7, 2100000)
    item = ListItem(id="603", title="The Matrix", media_type="movie", release_date="1999-03-31")

    record = asyncio.run(ItemEnricher(tmdb, imdb).enrich_item(item))

    assert record.tmdbId == "603"
    assert record.imdbId == "tt0133093"
    assert record.name == "The Matrix"
    assert record.year == "1999"
    assert record.mediaType == "movie"
    assert record.tmdbRating == "8.2"
    assert record.tmdbVotes == "26000"
    assert record.imdbRating == "8.7"
    assert record.imdbVotes == "2100000"


def test_tv_item_uses_name_and_first_air_date(tmdb, imdb):
    tmdb.titles[("tv", "1399")] = {"id": 1399, "vote_average": 8.4, "vote_count": 22000}
    item = ListItem(id="1399", title="", name="Game of Thrones", first_air_date="2011-04-17")

    record = asyncio.run(ItemEnricher(tmdb, imdb).enrich_item(item))

    assert record.mediaType == "tv"
    assert record.name == "Game of Thrones"
    assert record.year == "2011"
    assert ("details", "tv", "1399") in tmdb.calls
    assert record.imdbRating == ""


def test_falls_back_to_stored_fields_when_providers_fail(tmdb, imdb):
    tmdb.enabled = False
    imdb.enabled = False
    item = ListItem(
        id="123",
        title="Test Movie",
        media_type="movie",
        release_date="2022-01-01",
        imdb_id="tt0000123",
        vote_average=7.3,
        vote_count=111,
    )

    record = asyncio.run(ItemEnricher(tmdb, imdb).enrich_item(item))

    assert record.tmdbRating == "7.3"
    assert record.tmdbVotes == "111"
    assert record.imdbId == "tt0000123"
    assert record.imdbRating == ""
    assert record.imdbVotes == ""


def test_stored_imdb_id_used_when_tmdb_has_none(tmdb, imdb):
    imdb.ratings_by_id["tt7"] = (6.5, 900)
    item = ListItem(id="simkl-77", title="Obscure", imdb_id="tt7")

    record = asyncio.run(ItemEnricher(tmdb, imdb).enrich_item(item))

    assert record.tmdbId == ""
    assert record.imdbRating == "6.5"
    assert record.imdbVotes == "900"
    assert not any(call[0] == "details" for call in tmdb.calls)


def test_collect_swallows_unexpected_errors(imdb):
    class ExplodingTMDB:
        async def external_ids(self, media_type, tmdb_id):
            raise RuntimeError("boom")

        async def details(self, media_type, tmdb_id):
            raise RuntimeError("boom")

    snapshot = asyncio.run(ItemEnricher(ExplodingTMDB(), imdb).collect(ListItem(id="5", title="X")))
    assert not snapshot.has_data
