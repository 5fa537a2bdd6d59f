import asyncio

import pytest
from fastapi.testclient import TestClient

from strive.enrichment.fetch import FetchError, FetchResult
from strive.web.app import create_app
from strive.web.database import Database

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeTMDB:
    """In-memory TMDB client with the same coroutine surface."""

    def __init__(self):
        self.enabled = True
        self.titles = {}  # (media_type, id) -> details dict
        self.external = {}  # (media_type, id) -> imdb id
        self.find_results = {}  # imdb id -> search-style result
        self.search_results = {}  # (lowercase title, media_type) -> search-style result
        self.delays = {}  # id -> seconds to wait before answering
        self.calls = []

    async def _answer(self, key, value):
        await asyncio.sleep(self.delays.get(str(key), 0))
        if not self.enabled:
            return FetchResult.failure(FetchError.DISABLED)
        if value is None:
            return FetchResult.failure(FetchError.NOT_FOUND)
        return FetchResult.success(value)

    async def external_ids(self, media_type, tmdb_id):
        self.calls.append(("external_ids", media_type, str(tmdb_id)))
        imdb_id = self.external.get((media_type, str(tmdb_id)))
        return await self._answer(tmdb_id, {"imdb_id": imdb_id} if imdb_id else None)

    async def details(self, media_type, tmdb_id):
        self.calls.append(("details", media_type, str(tmdb_id)))
        return await self._answer(tmdb_id, self.titles.get((media_type, str(tmdb_id))))

    async def details_any(self, tmdb_id):
        for media_type in ("movie", "tv"):
            result = await self.details(media_type, tmdb_id)
            if result.ok:
                return FetchResult.success({**result.value, "media_type": media_type})
            if result.error == FetchError.DISABLED:
                return result
        return result

    async def find_by_imdb_id(self, imdb_id, media_type="movie"):
        self.calls.append(("find", media_type, imdb_id))
        return await self._answer(imdb_id, self.find_results.get(imdb_id))

    async def search(self, title, year=None, media_type="movie"):
        self.calls.append(("search", media_type, title))
        return await self._answer(title, self.search_results.get((title.lower(), media_type)))


class FakeIMDb:
    """In-memory IMDb ratings client."""

    def __init__(self):
        self.enabled = True
        self.ratings_by_id = {}  # imdb id -> (rating, votes)
        self.delays = {}
        self.calls = []

    async def ratings(self, imdb_id):
        self.calls.append(imdb_id)
        await asyncio.sleep(self.delays.get(imdb_id, 0))
        if not imdb_id:
            return FetchResult.failure(FetchError.NOT_FOUND)
        if not self.enabled:
            return FetchResult.failure(FetchError.DISABLED)
        if imdb_id not in self.ratings_by_id:
            return FetchResult.failure(FetchError.NOT_FOUND)
        return FetchResult.success(self.ratings_by_id[imdb_id])


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "strive.db")


@pytest.fixture
def tmdb():
    return FakeTMDB()


@pytest.fixture
def imdb():
    return FakeIMDb()


@pytest.fixture
def app(db, tmdb, imdb):
    return create_app(database=db, tmdb=tmdb, imdb=imdb, start_scheduler=False)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def other_user_id():
    return OTHER_USER_ID


@pytest.fixture
def auth_headers(db):
    return {"Authorization": f"Bearer {db.issue_token(USER_ID)}"}


@pytest.fixture
def other_auth_headers(db):
    return {"Authorization": f"Bearer {db.issue_token(OTHER_USER_ID)}"}
