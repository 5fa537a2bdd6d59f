"""CSV import: analyze an upload against a list, then confirm approved ids."""

import logging
from typing import Any, Optional

from strive.concurrency import gather_limited
from strive.enrichment.fetch import FetchError, FetchResult
from strive.enrichment.tmdb import TMDBClient
from strive.errors import ClientError
from strive.exporters.csv_codec import parse_csv
from strive.models import (
    MEDIA_TYPES,
    PENDING,
    AnalysisResult,
    DuplicateRow,
    ListItem,
    MatchedRow,
    UnmatchedRow,
    utc_now,
)
from strive.web.lists import ResolvedList, resolve_list
from strive.web.repository import ListRepository

logger = logging.getLogger(__name__)

ANALYZE_CONCURRENCY = 6

BAD_IMPORT_BODY = "Request body must contain an array of moviesToImport"


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def item_from_tmdb(data: dict, media_type: Optional[str] = None, source: Optional[str] = None) -> ListItem:
    """Build a pending ListItem from a TMDB-shaped title dict."""
    media_type = media_type or data.get("media_type")
    if media_type not in MEDIA_TYPES:
        media_type = "tv" if data.get("first_air_date") else "movie"

    vote_count = _number(data.get("vote_count"))
    return ListItem(
        id=str(data["id"]),
        tmdb_id=int(data["id"]) if str(data["id"]).isdigit() else None,
        title=data.get("title") or data.get("name") or "",
        name=data.get("name"),
        media_type=media_type,
        release_date=data.get("release_date") or data.get("first_air_date"),
        first_air_date=data.get("first_air_date"),
        poster_path=data.get("poster_path"),
        vote_average=_number(data.get("vote_average")),
        vote_count=int(vote_count) if vote_count is not None else None,
        enrichment_status=PENDING,
        date_added=utc_now(),
        source=source,
    )


def _movie_summary(data: dict, media_type: str) -> dict:
    return {
        "id": data.get("id"),
        "title": data.get("title") or data.get("name"),
        "release_date": data.get("release_date"),
        "first_air_date": data.get("first_air_date"),
        "media_type": media_type,
        "poster_path": data.get("poster_path"),
    }


# ============== Analysis ==============


class _ExistingIndex:
    """Existing items by id, and by (title, year) for rows without an id."""

    def __init__(self, items: list[ListItem]):
        self.by_id = {item.id: item for item in items}
        self.by_name_year: dict[tuple[str, str], ListItem] = {}
        for item in items:
            title = item.display_title.strip()
            year = (item.display_date or "")[:4]
            if title and year:
                self.by_name_year.setdefault((title, year), item)

    def find_duplicate(self, tmdb_id: str, name: str, year: str) -> Optional[ListItem]:
        if tmdb_id and tmdb_id in self.by_id:
            return self.by_id[tmdb_id]
        if not tmdb_id.isdigit() and name and year:
            return self.by_name_year.get((name, year))
        return None


async def _lookup_row(tmdb: TMDBClient, tmdb_id: str, imdb_id: str, name: str, year: str, media_type: str) -> FetchResult[dict]:
    """Resolve a row by TMDB id, then IMDb id, then name and year."""
    last: FetchResult[dict] = FetchResult.failure(FetchError.NOT_FOUND)

    if tmdb_id.isdigit():
        last = await tmdb.details(media_type, tmdb_id)
        if last.ok or last.error == FetchError.DISABLED:
            return last

    if imdb_id:
        found = await tmdb.find_by_imdb_id(imdb_id, media_type)
        last = await tmdb.details(media_type, found.value["id"]) if found.ok else found
        if last.ok or last.error == FetchError.DISABLED:
            return last

    if name:
        found = await tmdb.search(name, year, media_type)
        last = await tmdb.details(media_type, found.value["id"]) if found.ok else found

    return last


def _unmatched_reason(row: dict, result: FetchResult) -> str:
    if not (row["tmdbId"].strip() or row["imdbId"].strip() or row["name"].strip()):
        return "Missing tmdbId, imdbId and name"
    if result.error == FetchError.DISABLED:
        return "TMDB lookup unavailable"
    return "Not found in TMDB"


async def analyze_rows(
    resolved: ResolvedList,
    repository: ListRepository,
    tmdb: TMDBClient,
    rows: list[dict],
    concurrency: int = ANALYZE_CONCURRENCY,
) -> AnalysisResult:
    """Classify parsed rows as duplicate, matched or unmatched, in row order."""
    index = _ExistingIndex(repository.get_items(resolved.user_id, resolved.list_id))

    duplicates: dict[int, ListItem] = {}
    lookups = []
    for position, row in enumerate(rows):
        tmdb_id = row["tmdbId"].strip()
        existing = index.find_duplicate(tmdb_id, row["name"].strip(), row["year"].strip())
        if existing is not None:
            duplicates[position] = existing
            continue

        media_type = "tv" if row["mediaType"].strip() == "tv" else "movie"
        lookups.append((position, media_type))

    results = await gather_limited(
        [
            lambda row=rows[position], media_type=media_type: _lookup_row(
                tmdb,
                row["tmdbId"].strip(),
                row["imdbId"].strip(),
                row["name"].strip(),
                row["year"].strip(),
                media_type,
            )
            for position, media_type in lookups
        ],
        concurrency,
    )
    resolved_rows = {position: (media_type, result) for (position, media_type), result in zip(lookups, results)}

    analysis = AnalysisResult()
    for position, row in enumerate(rows):
        if position in duplicates:
            analysis.duplicates.append(DuplicateRow(movie=duplicates[position].to_summary(), original_row=row))
            continue

        media_type, result = resolved_rows[position]
        if result.ok:
            analysis.matched.append(MatchedRow(movie=_movie_summary(result.value, media_type), original_row=row))
        else:
            analysis.unmatched.append(UnmatchedRow(row=row, reason=_unmatched_reason(row, result)))

    logger.info(
        f"Import analysis for list {resolved.list_id}: {len(analysis.matched)} matched, "
        f"{len(analysis.duplicates)} duplicates, {len(analysis.unmatched)} unmatched"
    )
    return analysis


async def analyze_csv(
    resolved: ResolvedList,
    repository: ListRepository,
    tmdb: TMDBClient,
    csv_text: str,
    concurrency: int = ANALYZE_CONCURRENCY,
) -> AnalysisResult:
    """Parse ``csv_text`` and classify its rows. Performs no writes."""
    rows = parse_csv(csv_text)
    if not rows:
        raise ClientError("CSV file contains no rows")
    return await analyze_rows(resolved, repository, tmdb, rows, concurrency)


async def analyze_import(
    repository: ListRepository,
    tmdb: TMDBClient,
    user_id: str,
    list_id: str,
    csv_text: str,
    concurrency: int = ANALYZE_CONCURRENCY,
) -> AnalysisResult:
    resolved = resolve_list(repository, user_id, list_id)
    return await analyze_csv(resolved, repository, tmdb, csv_text, concurrency)


# ============== Confirmation ==============


def parse_import_ids(body: Any) -> list[str]:
    """Validate a ``{moviesToImport: [...]}`` body and return the ids as strings."""
    if not isinstance(body, dict) or not isinstance(body.get("moviesToImport"), list):
        raise ClientError(BAD_IMPORT_BODY)

    ids = []
    for raw in body["moviesToImport"]:
        if isinstance(raw, bool) or not isinstance(raw, (str, int)) or not str(raw).strip():
            raise ClientError(BAD_IMPORT_BODY)
        ids.append(str(raw).strip())
    return ids


async def confirm_ids(
    resolved: ResolvedList,
    repository: ListRepository,
    tmdb: TMDBClient,
    ids: list[str],
    concurrency: int = ANALYZE_CONCURRENCY,
) -> int:
    """Add approved ids not already in the list. Returns the number added.

    Ids that TMDB cannot resolve are left out of the batch and the count.
    The batch is written atomically, and only when it is non-empty.
    """
    if not ids:
        return 0

    existing = repository.get_item_ids(resolved.user_id, resolved.list_id)
    to_fetch = []
    for item_id in ids:
        if item_id not in existing and item_id not in to_fetch:
            to_fetch.append(item_id)

    results = await gather_limited([lambda i=item_id: tmdb.details_any(i) for item_id in to_fetch], concurrency)

    items = []
    batch_ids = set()
    for item_id, result in zip(to_fetch, results):
        if not result.ok:
            logger.warning(f"Skipping import of {item_id}: TMDB lookup failed ({result.error.value})")
            continue
        item = item_from_tmdb(result.value, result.value.get("media_type"), source="import")
        if item.id in existing or item.id in batch_ids:
            continue
        batch_ids.add(item.id)
        items.append(item)

    if items:
        repository.add_items(resolved.user_id, resolved.list_id, items)
    logger.info(f"Imported {len(items)} of {len(ids)} approved items into list {resolved.list_id}")
    return len(items)


async def confirm_import(
    repository: ListRepository,
    tmdb: TMDBClient,
    user_id: str,
    list_id: str,
    ids: list[str],
    concurrency: int = ANALYZE_CONCURRENCY,
) -> int:
    resolved = resolve_list(repository, user_id, list_id)
    return await confirm_ids(resolved, repository, tmdb, ids, concurrency)
