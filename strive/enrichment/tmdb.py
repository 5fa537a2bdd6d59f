"""TMDB API client for enrichment and import matching."""

import logging
from typing import Optional

import requests

from strive.enrichment.fetch import DEFAULT_TIMEOUT, FetchError, FetchResult, call_with_timeout

logger = logging.getLogger(__name__)


def _result_year(result: dict, media_type: str) -> Optional[int]:
    date_str = result.get("release_date") if media_type == "movie" else result.get("first_air_date")
    if not date_str:
        return None
    try:
        return int(date_str[:4])
    except (ValueError, TypeError):
        return None


class TMDBClient:
    """Client for The Movie Database API.

    Every public method is a coroutine returning a FetchResult and never
    raises. Without an API key all lookups fail fast with ``disabled``.
    """

    BASE_URL = "https://api.themoviedb.org/3"

    def __init__(self, api_key: str, timeout: float = DEFAULT_TIMEOUT):
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get(self, endpoint: str, params: Optional[dict] = None) -> FetchResult[dict]:
        """Make a GET request to TMDB API."""
        url = f"{self.BASE_URL}{endpoint}"
        request_params = {"api_key": self.api_key}
        if params:
            request_params.update(params)

        try:
            response = self.session.get(url, params=request_params, timeout=self.timeout)
            if response.status_code == 404:
                return FetchResult.failure(FetchError.NOT_FOUND)
            response.raise_for_status()
            return FetchResult.success(response.json())
        except requests.HTTPError as e:
            logger.warning(f"TMDB API error for {endpoint}: {e}")
            return FetchResult.failure(FetchError.HTTP)
        except ValueError as e:
            logger.warning(f"TMDB API returned invalid JSON for {endpoint}: {e}")
            return FetchResult.failure(FetchError.PARSE)
        except requests.RequestException as e:
            logger.warning(f"TMDB API error for {endpoint}: {e}")
            return FetchResult.failure(FetchError.NETWORK)

    async def _fetch(self, endpoint: str, params: Optional[dict] = None) -> FetchResult[dict]:
        if not self.enabled:
            return FetchResult.failure(FetchError.DISABLED)
        return await call_with_timeout(self._get, endpoint, params, timeout=self.timeout)

    async def external_ids(self, media_type: str, tmdb_id) -> FetchResult[dict]:
        """Get external IDs (IMDB, etc.) for a title."""
        if not tmdb_id:
            return FetchResult.failure(FetchError.NOT_FOUND)
        return await self._fetch(f"/{media_type}/{tmdb_id}/external_ids")

    async def details(self, media_type: str, tmdb_id) -> FetchResult[dict]:
        """Get title details (vote average/count, dates, poster)."""
        if not tmdb_id:
            return FetchResult.failure(FetchError.NOT_FOUND)
        result = await self._fetch(f"/{media_type}/{tmdb_id}")
        if result.ok and not result.value.get("id"):
            return FetchResult.failure(FetchError.PARSE)
        return result

    async def details_any(self, tmdb_id) -> FetchResult[dict]:
        """Get details trying the movie endpoint first, then tv.

        The returned dict carries the endpoint that answered as ``media_type``.
        """
        last = FetchResult.failure(FetchError.NOT_FOUND)
        for media_type in ("movie", "tv"):
            last = await self.details(media_type, tmdb_id)
            if last.ok:
                return FetchResult.success({**last.value, "media_type": media_type})
            if last.error == FetchError.DISABLED:
                break
        return last

    async def find_by_imdb_id(self, imdb_id: str, media_type: str = "movie") -> FetchResult[dict]:
        """Find a title by IMDB ID."""
        if not imdb_id:
            return FetchResult.failure(FetchError.NOT_FOUND)
        result = await self._fetch(f"/find/{imdb_id}", {"external_source": "imdb_id"})
        if not result.ok:
            return result
        key = "movie_results" if media_type == "movie" else "tv_results"
        matches = result.value.get(key) or []
        if matches and matches[0].get("id"):
            return FetchResult.success(matches[0])
        return FetchResult.failure(FetchError.NOT_FOUND)

    async def search(self, title: str, year: Optional[str] = None, media_type: str = "movie") -> FetchResult[dict]:
        """Search for a title by name and optionally year, returning the best match."""
        if not title:
            return FetchResult.failure(FetchError.NOT_FOUND)
        params = {"query": title}
        if year:
            params["year" if media_type == "movie" else "first_air_date_year"] = str(year)

        result = await self._fetch(f"/search/{media_type}", params)
        if not result.ok:
            return result

        year_int = None
        if year:
            try:
                year_int = int(year)
            except (ValueError, TypeError):
                pass

        best_match = self._find_best_match(result.value.get("results", []), title, year_int, media_type)
        if best_match and best_match.get("id"):
            logger.debug(f"Found '{title}' via search: TMDB {best_match['id']}")
            return FetchResult.success(best_match)

        logger.info(f"Could not find '{title}' ({year}) on TMDB")
        return FetchResult.failure(FetchError.NOT_FOUND)

    def _find_best_match(
        self, results: list[dict], title: str, year: Optional[int], media_type: str = "movie"
    ) -> Optional[dict]:
        """Find the best matching result from search results."""
        if not results:
            return None

        title_lower = title.lower()
        title_key, original_key = ("title", "original_title") if media_type == "movie" else ("name", "original_name")

        for result in results:
            result_title = (result.get(title_key) or "").lower()
            result_original_title = (result.get(original_key) or "").lower()
            result_year = _result_year(result, media_type)
            same_title = result_title == title_lower or result_original_title == title_lower

            # Exact title match with year
            if year and result_year and same_title and result_year == year:
                return result

            # Exact title match without year constraint
            if same_title and not (year and result_year):
                return result

        # If no exact match, return the first result if year matches
        if year:
            for result in results:
                if _result_year(result, media_type) == year:
                    return result

        # Return first result as fallback
        return results[0]
