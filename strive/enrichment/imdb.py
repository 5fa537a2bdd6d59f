"""IMDb ratings client (secondary ratings provider)."""

import logging
from typing import Any, Optional

import requests

from strive.enrichment.fetch import DEFAULT_TIMEOUT, FetchError, FetchResult, call_with_timeout

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.replace(",", "").strip())
        except ValueError:
            return None
    return None


def parse_ratings(data: dict) -> tuple[Optional[float], Optional[int]]:
    """Pull (rating, votes) out of the shapes the title endpoint has used."""
    rating = data.get("rating")
    votes = data.get("votes")

    if isinstance(rating, dict):
        votes = rating.get("voteCount", votes)
        rating = rating.get("aggregateRating")

    if rating is None:
        ratings = data.get("ratings")
        if isinstance(ratings, dict):
            rating = ratings.get("imdb")
    if rating is None:
        rating = data.get("ratingAverage")

    if votes is None:
        votes = data.get("ratingsCount", data.get("imdbVotes"))

    return _to_float(rating), _to_int(votes)


class IMDbClient:
    """Client for an imdbapi.dev-compatible title API. No credential needed."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _get_title(self, imdb_id: str) -> FetchResult[dict]:
        url = f"{self.base_url}/titles/{imdb_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            if response.status_code == 404:
                return FetchResult.failure(FetchError.NOT_FOUND)
            response.raise_for_status()
            return FetchResult.success(response.json())
        except requests.HTTPError as e:
            logger.warning(f"IMDb API error for {imdb_id}: {e}")
            return FetchResult.failure(FetchError.HTTP)
        except ValueError as e:
            logger.warning(f"IMDb API returned invalid JSON for {imdb_id}: {e}")
            return FetchResult.failure(FetchError.PARSE)
        except requests.RequestException as e:
            logger.warning(f"IMDb API error for {imdb_id}: {e}")
            return FetchResult.failure(FetchError.NETWORK)

    async def ratings(self, imdb_id: Optional[str]) -> FetchResult[tuple[Optional[float], Optional[int]]]:
        """Get (rating, votes) for an IMDb title id."""
        if not imdb_id:
            return FetchResult.failure(FetchError.NOT_FOUND)
        if not self.enabled:
            return FetchResult.failure(FetchError.DISABLED)

        result = await call_with_timeout(self._get_title, imdb_id, timeout=self.timeout)
        if not result.ok:
            return FetchResult.failure(result.error)
        if not isinstance(result.value, dict):
            return FetchResult.failure(FetchError.PARSE)
        return FetchResult.success(parse_ratings(result.value))
