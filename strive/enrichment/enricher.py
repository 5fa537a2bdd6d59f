"""Merge TMDB and IMDb data into one normalized record per list item."""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from strive.enrichment.imdb import IMDbClient
from strive.enrichment.tmdb import TMDBClient
from strive.models import MEDIA_TYPES, ExportRecord, ListItem

logger = logging.getLogger(__name__)


def derive_media_type(item: ListItem) -> str:
    """Explicit media type, else ``tv`` when a first-air date exists, else ``movie``."""
    if item.media_type in MEDIA_TYPES:
        return item.media_type
    if item.first_air_date:
        return "tv"
    return "movie"


def derive_name(item: ListItem, media_type: str) -> str:
    if media_type == "movie":
        return item.title or item.name or ""
    return item.name or item.title or ""


def utc_year(date_str: Optional[str]) -> str:
    """4-digit UTC year of an ISO date/timestamp, or "" when unparseable."""
    if not date_str:
        return ""
    value = str(date_str).strip()
    if re.fullmatch(r"\d{4}", value):
        return value
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return ""
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return f"{parsed.year:04d}"


def derive_year(item: ListItem, media_type: str) -> str:
    if media_type == "movie":
        return utc_year(item.release_date or item.first_air_date)
    return utc_year(item.first_air_date or item.release_date)


def primary_tmdb_id(item: ListItem) -> Optional[int]:
    """TMDB id of the item; list ids are TMDB ids unless they are not numeric."""
    if item.tmdb_id:
        return item.tmdb_id
    if item.id and str(item.id).isdigit():
        return int(item.id)
    return None


def format_rating(value: Optional[float]) -> str:
    return f"{value:.1f}" if value is not None else ""


def format_votes(value: Optional[int]) -> str:
    return str(int(value)) if value is not None else ""


def _number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


@dataclass
class RatingSnapshot:
    """Raw merged numbers from both providers for one item."""

    imdb_id: Optional[str] = None
    tmdb_rating: Optional[float] = None
    tmdb_votes: Optional[int] = None
    imdb_rating: Optional[float] = None
    imdb_votes: Optional[int] = None
    poster_path: Optional[str] = None
    has_tmdb_data: bool = False
    has_imdb_data: bool = False

    @property
    def has_data(self) -> bool:
        return self.has_tmdb_data or self.has_imdb_data


class ItemEnricher:
    """Combine both fetchers' outputs for a single item.

    Enrichment is best-effort: any failure leaves the affected fields empty
    and never raises to the caller.
    """

    def __init__(self, tmdb: TMDBClient, imdb: IMDbClient):
        self.tmdb = tmdb
        self.imdb = imdb

    async def collect(self, item: ListItem) -> RatingSnapshot:
        """Fetch ratings for ``item`` from TMDB and IMDb."""
        try:
            return await self._collect(item)
        except Exception as e:
            logger.warning(f"Enrichment failed for item {item.id}: {e}")
            return RatingSnapshot()

    async def _collect(self, item: ListItem) -> RatingSnapshot:
        snapshot = RatingSnapshot()
        media_type = derive_media_type(item)
        tmdb_id = primary_tmdb_id(item)

        if tmdb_id:
            ext, details = await asyncio.gather(
                self.tmdb.external_ids(media_type, tmdb_id),
                self.tmdb.details(media_type, tmdb_id),
            )
            if ext.ok and ext.value.get("imdb_id"):
                snapshot.imdb_id = ext.value["imdb_id"]
            if details.ok:
                snapshot.has_tmdb_data = True
                snapshot.tmdb_rating = _number(details.value.get("vote_average"))
                votes = _number(details.value.get("vote_count"))
                snapshot.tmdb_votes = int(votes) if votes is not None else None
                snapshot.poster_path = details.value.get("poster_path")

        if not snapshot.imdb_id and item.imdb_id:
            snapshot.imdb_id = item.imdb_id

        # Single attempt per export, no retry
        if snapshot.imdb_id:
            imdb = await self.imdb.ratings(snapshot.imdb_id)
            if imdb.ok:
                rating, votes = imdb.value
                if rating is not None:
                    snapshot.has_imdb_data = True
                    snapshot.imdb_rating = rating
                    snapshot.imdb_votes = votes

        return snapshot

    async def enrich_item(self, item: ListItem) -> ExportRecord:
        """Build the export record for ``item``; every field is a string."""
        media_type = derive_media_type(item)
        tmdb_id = primary_tmdb_id(item)
        snapshot = await self.collect(item)

        # vote_average/vote_count hold the IMDb numbers once IMDb data is stored
        display_is_tmdb = item.imdb_rating is None and item.imdb_vote_count is None

        tmdb_rating = snapshot.tmdb_rating
        if tmdb_rating is None:
            tmdb_rating = _number(item.tmdb_rating)
        if tmdb_rating is None and display_is_tmdb:
            tmdb_rating = _number(item.vote_average)

        tmdb_votes = snapshot.tmdb_votes
        if tmdb_votes is None:
            stored = _number(item.tmdb_vote_count)
            if stored is None and display_is_tmdb:
                stored = _number(item.vote_count)
            tmdb_votes = int(stored) if stored is not None else None

        return ExportRecord(
            tmdbId=str(tmdb_id) if tmdb_id else "",
            imdbId=snapshot.imdb_id or "",
            name=derive_name(item, media_type),
            year=derive_year(item, media_type),
            mediaType=media_type,
            tmdbRating=format_rating(tmdb_rating),
            imdbRating=format_rating(snapshot.imdb_rating),
            tmdbVotes=format_votes(tmdb_votes),
            imdbVotes=format_votes(snapshot.imdb_votes),
        )
