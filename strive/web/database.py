"""Database models and operations using SQLAlchemy."""

import hashlib
import secrets
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from strive.models import PENDING, ListItem, UserList, utc_now
from strive.web.repository import ListRepository


class Base(DeclarativeBase):
    pass


class CustomListDB(Base):
    """SQLAlchemy model for custom lists."""

    __tablename__ = "custom_lists"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    owner_id = Column(String(128), nullable=False)
    name = Column(String(500), nullable=False, default="")
    description = Column(String(1000), nullable=True)
    is_pinned = Column(Boolean, default=False)
    pinned_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    def to_model(self) -> UserList:
        return UserList(
            id=self.id,
            owner_id=self.owner_id,
            name=self.name or "",
            description=self.description,
            is_pinned=bool(self.is_pinned),
            pinned_at=self.pinned_at,
            created_at=self.created_at,
        )


class ListItemDB(Base):
    """SQLAlchemy model for list items (watchlist and custom lists)."""

    __tablename__ = "list_items"
    __table_args__ = (UniqueConstraint("user_id", "list_id", "item_id", name="uq_list_item"),)

    pk = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    list_id = Column(String(64), nullable=False, index=True)
    item_id = Column(String(64), nullable=False)

    title = Column(String(500), nullable=False, default="")
    name = Column(String(500), nullable=True)
    media_type = Column(String(10), nullable=True)
    release_date = Column(String(32), nullable=True)
    first_air_date = Column(String(32), nullable=True)
    poster_path = Column(String(500), nullable=True)

    tmdb_id = Column(Integer, nullable=True)
    imdb_id = Column(String(20), nullable=True)

    vote_average = Column(Float, nullable=True)
    vote_count = Column(Integer, nullable=True)
    tmdb_rating = Column(Float, nullable=True)
    tmdb_vote_count = Column(Integer, nullable=True)
    imdb_rating = Column(Float, nullable=True)
    imdb_vote_count = Column(Integer, nullable=True)

    enrichment_status = Column(String(20), default=PENDING, index=True)
    last_enriched = Column(DateTime, nullable=True)
    date_added = Column(DateTime, default=utc_now)
    source = Column(String(50), nullable=True)

    # Columns a caller may write; identity and date_added are not among them
    DATA_FIELDS = (
        "title",
        "name",
        "media_type",
        "release_date",
        "first_air_date",
        "poster_path",
        "tmdb_id",
        "imdb_id",
        "vote_average",
        "vote_count",
        "tmdb_rating",
        "tmdb_vote_count",
        "imdb_rating",
        "imdb_vote_count",
        "enrichment_status",
        "last_enriched",
        "source",
    )

    def to_model(self) -> ListItem:
        values = {key: getattr(self, key) for key in self.DATA_FIELDS}
        values["title"] = values["title"] or ""
        values["enrichment_status"] = values["enrichment_status"] or PENDING
        return ListItem(id=self.item_id, date_added=self.date_added, **values)


class ApiTokenDB(Base):
    """Bearer tokens, stored as SHA-256 digests."""

    __tablename__ = "api_tokens"

    token_hash = Column(String(64), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    created_at = Column(DateTime, default=utc_now)
    revoked = Column(Boolean, default=False)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class Database(ListRepository):
    """Database operations."""

    def __init__(self, db_path: Path = Path("data/strive.db")):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{db_path}", echo=False)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def get_session(self) -> Session:
        return self.SessionLocal()

    # ============== Lists ==============

    def get_list(self, list_id: str) -> Optional[UserList]:
        with self.get_session() as session:
            row = session.get(CustomListDB, list_id)
            return row.to_model() if row else None

    def get_user_lists(self, user_id: str) -> List[UserList]:
        with self.get_session() as session:
            rows = (
                session.query(CustomListDB)
                .filter(CustomListDB.user_id == user_id)
                .order_by(
                    CustomListDB.is_pinned.desc(),
                    CustomListDB.pinned_at.desc().nullslast(),
                    CustomListDB.created_at.asc(),
                )
                .all()
            )
            return [row.to_model() for row in rows]

    def create_list(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        is_pinned: bool = False,
    ) -> UserList:
        now = utc_now()
        row = CustomListDB(
            id=uuid.uuid4().hex,
            user_id=user_id,
            owner_id=user_id,
            name=(name or "").strip(),
            description=description,
            is_pinned=is_pinned,
            pinned_at=now if is_pinned else None,
            created_at=now,
        )
        with self.get_session() as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row.to_model()

    def delete_list(self, user_id: str, list_id: str) -> bool:
        """Delete a custom list, enumerating and deleting its items first."""
        with self.get_session() as session, session.begin():
            row = session.get(CustomListDB, list_id)
            if not row or row.user_id != user_id:
                return False

            items = (
                session.query(ListItemDB)
                .filter(ListItemDB.user_id == user_id, ListItemDB.list_id == list_id)
                .all()
            )
            for item in items:
                session.delete(item)
            session.delete(row)
            return True

    def set_pinned(self, list_id: str, pinned: bool) -> Optional[UserList]:
        with self.get_session() as session:
            row = session.get(CustomListDB, list_id)
            if not row:
                return None
            row.is_pinned = pinned
            row.pinned_at = utc_now() if pinned else None
            session.commit()
            session.refresh(row)
            return row.to_model()

    # ============== Items ==============

    def _items_query(self, session: Session, user_id: str, list_id: str):
        return session.query(ListItemDB).filter(
            ListItemDB.user_id == user_id,
            ListItemDB.list_id == list_id,
        )

    def get_items(self, user_id: str, list_id: str) -> List[ListItem]:
        with self.get_session() as session:
            rows = self._items_query(session, user_id, list_id).order_by(ListItemDB.pk.asc()).all()
            return [row.to_model() for row in rows]

    def get_item_ids(self, user_id: str, list_id: str) -> set[str]:
        with self.get_session() as session:
            rows = self._items_query(session, user_id, list_id).with_entities(ListItemDB.item_id).all()
            return {r[0] for r in rows}

    def get_pending_items(self, user_id: str, list_id: str, limit: int = 5) -> List[ListItem]:
        with self.get_session() as session:
            rows = (
                self._items_query(session, user_id, list_id)
                .filter(ListItemDB.enrichment_status == PENDING)
                .order_by(ListItemDB.pk.asc())
                .limit(limit)
                .all()
            )
            return [row.to_model() for row in rows]

    def add_items(self, user_id: str, list_id: str, items: Iterable[ListItem]) -> int:
        """Insert or replace items in a single transaction."""
        count = 0
        with self.get_session() as session, session.begin():
            for item in items:
                item_id = str(item.id)
                existing = self._items_query(session, user_id, list_id).filter(
                    ListItemDB.item_id == item_id
                ).first()

                values = {key: getattr(item, key) for key in ListItemDB.DATA_FIELDS}
                if existing:
                    for key, value in values.items():
                        setattr(existing, key, value)
                else:
                    session.add(
                        ListItemDB(
                            user_id=user_id,
                            list_id=list_id,
                            item_id=item_id,
                            date_added=item.date_added or utc_now(),
                            **values,
                        )
                    )
                    # Repeated ids within one batch must resolve to the same row
                    session.flush()
                count += 1
        return count

    def update_item_fields(self, user_id: str, list_id: str, item_id: str, fields: dict) -> bool:
        with self.get_session() as session:
            row = self._items_query(session, user_id, list_id).filter(
                ListItemDB.item_id == str(item_id)
            ).first()
            if not row:
                return False
            for key, value in fields.items():
                if key in ListItemDB.DATA_FIELDS:
                    setattr(row, key, value)
            session.commit()
            return True

    def remove_item(self, user_id: str, list_id: str, item_id: str) -> bool:
        with self.get_session() as session:
            row = self._items_query(session, user_id, list_id).filter(
                ListItemDB.item_id == str(item_id)
            ).first()
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def users_with_pending_items(self) -> List[str]:
        with self.get_session() as session:
            rows = (
                session.query(ListItemDB.user_id)
                .filter(ListItemDB.enrichment_status == PENDING)
                .distinct()
                .order_by(ListItemDB.user_id)
                .all()
            )
            return [r[0] for r in rows]

    # ============== Tokens ==============

    def issue_token(self, user_id: str) -> str:
        """Create a bearer token for a user. Only the digest is stored."""
        token = secrets.token_urlsafe(32)
        with self.get_session() as session:
            session.add(ApiTokenDB(token_hash=_hash_token(token), user_id=user_id))
            session.commit()
        return token

    def resolve_token(self, token: str) -> Optional[str]:
        """Return the user id owning ``token``, or None if unknown or revoked."""
        with self.get_session() as session:
            row = session.get(ApiTokenDB, _hash_token(token))
            if not row or row.revoked:
                return None
            return row.user_id

    def revoke_token(self, token: str) -> bool:
        with self.get_session() as session:
            row = session.get(ApiTokenDB, _hash_token(token))
            if not row:
                return False
            row.revoked = True
            session.commit()
            return True
