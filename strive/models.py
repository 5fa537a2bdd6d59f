"""Data models for the Strive list service."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

WATCHLIST_ID = "watchlist"

MEDIA_TYPES = ("movie", "tv")

# Enrichment status values
PENDING = "pending"
ENRICHED = "enriched"
FAILED = "failed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ListItem:
    """One title inside a user's list.

    ``id`` is unique within a single list only; two lists may hold the same
    title under the same id.
    """

    id: str
    title: str = ""
    name: Optional[str] = None
    media_type: Optional[str] = None
    release_date: Optional[str] = None
    first_air_date: Optional[str] = None
    poster_path: Optional[str] = None

    # Cross-references
    tmdb_id: Optional[int] = None
    imdb_id: Optional[str] = None

    # Ratings (each source independently nullable)
    vote_average: Optional[float] = None
    vote_count: Optional[int] = None
    tmdb_rating: Optional[float] = None
    tmdb_vote_count: Optional[int] = None
    imdb_rating: Optional[float] = None
    imdb_vote_count: Optional[int] = None

    # Tracking
    enrichment_status: str = PENDING
    last_enriched: Optional[datetime] = None
    date_added: Optional[datetime] = None
    source: Optional[str] = None

    @property
    def display_title(self) -> str:
        return self.title or self.name or ""

    @property
    def display_date(self) -> Optional[str]:
        return self.release_date or self.first_air_date

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["last_enriched"] = self.last_enriched.isoformat() if self.last_enriched else None
        data["date_added"] = self.date_added.isoformat() if self.date_added else None
        return data

    def to_summary(self) -> dict:
        """Short form used in import analysis reports."""
        return {
            "id": int(self.id) if self.id.isdigit() else self.id,
            "title": self.display_title,
            "release_date": self.release_date,
            "first_air_date": self.first_air_date,
            "media_type": self.media_type,
            "poster_path": self.poster_path,
        }


@dataclass
class UserList:
    """A named collection of ListItems owned by exactly one user."""

    id: str
    owner_id: str
    name: str = ""
    description: Optional[str] = None
    is_pinned: bool = False
    pinned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        """List name, falling back to its id when blank."""
        return self.name.strip() if self.name and self.name.strip() else self.id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "name": self.display_name,
            "description": self.description,
            "isPinned": self.is_pinned,
            "pinnedAt": self.pinned_at.isoformat() if self.pinned_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class ExportRecord:
    """Flattened, enrichment-complete view of one ListItem, shaped for CSV.

    All fields are strings so that serialization never meets a None.
    """

    tmdbId: str = ""
    imdbId: str = ""
    name: str = ""
    year: str = ""
    mediaType: str = ""
    tmdbRating: str = ""
    imdbRating: str = ""
    tmdbVotes: str = ""
    imdbVotes: str = ""


@dataclass
class MatchedRow:
    movie: dict
    original_row: dict

    def to_dict(self) -> dict:
        return {"movie": self.movie, "originalRow": self.original_row}


@dataclass
class DuplicateRow:
    movie: dict
    original_row: dict

    def to_dict(self) -> dict:
        return {"movie": self.movie, "originalRow": self.original_row}


@dataclass
class UnmatchedRow:
    row: dict
    reason: str

    def to_dict(self) -> dict:
        return {"row": self.row, "reason": self.reason}


@dataclass
class AnalysisResult:
    """Report produced by import analysis. Never persisted."""

    matched: list[MatchedRow] = field(default_factory=list)
    duplicates: list[DuplicateRow] = field(default_factory=list)
    unmatched: list[UnmatchedRow] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "matched": [m.to_dict() for m in self.matched],
            "unmatched": [u.to_dict() for u in self.unmatched],
            "duplicates": [d.to_dict() for d in self.duplicates],
        }
