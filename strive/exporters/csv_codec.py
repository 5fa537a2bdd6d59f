"""CSV encoding for list exports and parsing for list imports."""

import csv
import io
from dataclasses import astuple
from typing import Iterable

from strive.errors import ClientError, InvalidHeadersError, LegacyHeadersError
from strive.models import ExportRecord

HEADERS = [
    "tmdbId",
    "imdbId",
    "name",
    "year",
    "mediaType",
    "tmdbRating",
    "imdbRating",
    "tmdbVotes",
    "imdbVotes",
]

LEGACY_MARKERS = ("Letterboxd URI", "Name")

TEMPLATE_ROW = ExportRecord(
    tmdbId="603",
    imdbId="tt0133093",
    name="The Matrix",
    year="1999",
    mediaType="movie",
    tmdbRating="8.2",
    imdbRating="8.7",
    tmdbVotes="2000000",
    imdbVotes="1900000",
)


def encode_csv(records: Iterable[ExportRecord]) -> str:
    """Serialize export records under the fixed header.

    Fields holding a comma, quote or line break are quoted with embedded
    quotes doubled. Rows are joined by ``\\n`` without a trailing newline;
    the header is written even when there are no records.
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(HEADERS)
    for record in records:
        writer.writerow(["" if value is None else str(value) for value in astuple(record)])
    return output.getvalue()[: -len("\n")]


def template_csv() -> str:
    """Import template: the header plus one example row."""
    return encode_csv([TEMPLATE_ROW])


def _is_legacy(fields: list[str]) -> bool:
    if any(marker in fields for marker in LEGACY_MARKERS):
        return True
    return "Year" in fields and "year" not in fields


def validate_headers(fields: list[str]) -> None:
    """Raise unless ``fields`` is exactly the import contract."""
    if fields == HEADERS:
        return
    if _is_legacy(fields):
        raise LegacyHeadersError("Legacy CSV headers detected. Expected: " + ",".join(HEADERS))
    raise InvalidHeadersError("Invalid CSV headers. Expected exact columns: " + ",".join(HEADERS))


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse an uploaded CSV into row dicts keyed by the contract header.

    Blank lines are skipped. Unreadable CSV and a bad header are rejected;
    short rows are padded with empty strings and extra cells are dropped.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(io.StringIO(text, newline=""))
    try:
        rows = [row for row in reader if row and not (len(row) == 1 and not row[0].strip())]
    except csv.Error as e:
        raise ClientError("Invalid CSV format") from e
    if not rows:
        raise InvalidHeadersError("Invalid CSV headers. Expected exact columns: " + ",".join(HEADERS))

    validate_headers([cell.strip() for cell in rows[0]])

    parsed = []
    for row in rows[1:]:
        cells = list(row[: len(HEADERS)]) + [""] * (len(HEADERS) - len(row))
        parsed.append(dict(zip(HEADERS, cells)))
    return parsed
