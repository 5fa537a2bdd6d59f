"""Simkl API client for retrieving plan-to-watch titles."""

import logging
from datetime import datetime
from typing import List, Optional

import requests

from strive.models import PENDING, ListItem
from strive.sources.base import BaseSource

logger = logging.getLogger(__name__)

POSTER_URL = "https://simkl.in/posters/{}_m.jpg"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _to_int(value) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def map_simkl_item(entry: dict, media_type: str) -> Optional[ListItem]:
    """Map one Simkl ``all-items`` entry to a pending ListItem.

    The list id is the TMDB id when Simkl knows it, else ``simkl-<id>``.
    Ratings are left empty for the enrichment worker.
    """
    data = entry.get("movie" if media_type == "movie" else "show") or {}
    ids = data.get("ids", {})
    tmdb_id = _to_int(ids.get("tmdb"))
    simkl_id = ids.get("simkl")

    if tmdb_id:
        item_id = str(tmdb_id)
    elif simkl_id:
        item_id = f"simkl-{simkl_id}"
    else:
        return None

    year = data.get("year")
    date_str = f"{year}-01-01" if year else None

    return ListItem(
        id=item_id,
        tmdb_id=tmdb_id,
        imdb_id=ids.get("imdb") or None,
        title=data.get("title") or "",
        name=data.get("title") if media_type == "tv" else None,
        media_type=media_type,
        release_date=date_str if media_type == "movie" else None,
        first_air_date=date_str if media_type == "tv" else None,
        poster_path=POSTER_URL.format(data["poster"]) if data.get("poster") else None,
        enrichment_status=PENDING,
        date_added=_parse_timestamp(entry.get("added_to_watchlist_at")),
        source="simkl",
    )


class SimklSource(BaseSource):
    """Simkl API client.

    Takes an access token obtained elsewhere; the OAuth flow is not handled
    here.
    """

    BASE_URL = "https://api.simkl.com"

    def __init__(self, client_id: str, access_token: str, timeout: float = 30):
        self.client_id = client_id
        self.access_token = access_token
        self.timeout = timeout
        self.session = requests.Session()

    @property
    def name(self) -> str:
        return "Simkl"

    def _get(self, endpoint: str, params: Optional[dict] = None) -> Optional[dict | list]:
        """Make authenticated GET request to Simkl API."""
        url = f"{self.BASE_URL}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "simkl-api-key": self.client_id,
            "Content-Type": "application/json",
        }

        try:
            response = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except ValueError as e:
            logger.error(f"Simkl API returned invalid JSON for {endpoint}: {e}")
            return None
        except requests.RequestException as e:
            logger.error(f"Simkl API error for {endpoint}: {e}")
            return None

    def test_connection(self) -> bool:
        """Test Simkl API connection."""
        result = self._get("/users/settings")
        return result is not None

    def get_watchlist(self) -> List[ListItem]:
        """Get plan-to-watch movies and shows from Simkl."""
        logger.info("Fetching watchlist from Simkl...")

        entries = []
        for kind, media_type in (("movies", "movie"), ("shows", "tv")):
            data = self._get(f"/sync/all-items/{kind}/plantowatch")
            if not data or not isinstance(data, dict):
                continue

            for entry in data.get(kind) or []:
                item = map_simkl_item(entry, media_type)
                if item:
                    entries.append(item)

        logger.info(f"Found {len(entries)} titles in Simkl watchlist")
        return entries
