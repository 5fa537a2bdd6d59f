"""FastAPI web application."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional, Union
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from strive.auth.tokens import TokenVerifier
from strive.config import Config
from strive.enrichment.enricher import ItemEnricher
from strive.enrichment.imdb import IMDbClient
from strive.enrichment.tmdb import TMDBClient
from strive.errors import ClientError, MethodNotAllowedError, NotFoundError, StriveError
from strive.exporters.list_export import export_items
from strive.importers.list_import import (
    BAD_IMPORT_BODY,
    analyze_csv,
    confirm_ids,
    item_from_tmdb,
    parse_import_ids,
)
from strive.models import WATCHLIST_ID
from strive.sources.base import BaseSource, ingest
from strive.sources.simkl import SimklSource
from strive.web.database import Database
from strive.web.enrichment_service import EnrichmentService, EnrichmentWorker, WorkerState
from strive.web.lists import ResolvedList, resolve_list, validate_list_id

logger = logging.getLogger(__name__)

NO_CACHE = {"Cache-Control": "no-cache"}


# Pydantic models for API
class CreateListRequest(BaseModel):
    name: str = ""
    description: Optional[str] = None
    isPinned: bool = False


class AddItemRequest(BaseModel):
    id: Union[int, str]
    media_type: Optional[str] = None
    title: Optional[str] = None
    name: Optional[str] = None
    release_date: Optional[str] = None
    first_air_date: Optional[str] = None
    poster_path: Optional[str] = None
    vote_average: Optional[float] = None
    vote_count: Optional[int] = None


class SimklSyncRequest(BaseModel):
    accessToken: str


def content_disposition(filename: str) -> str:
    """Attachment header; non-ASCII names get an RFC 5987 ``filename*``."""
    safe = filename.replace("\\", "_").replace('"', "'")
    try:
        safe.encode("ascii")
        return f'attachment; filename="{safe}"'
    except UnicodeEncodeError:
        fallback = safe.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def _is_csv_upload(upload: UploadFile) -> bool:
    filename = (upload.filename or "").lower()
    content_type = (upload.content_type or "").lower()
    return filename.endswith(".csv") or "csv" in content_type


def create_app(
    database: Optional[Database] = None,
    tmdb: Optional[TMDBClient] = None,
    imdb: Optional[IMDbClient] = None,
    source_factory: Optional[Callable[[str], BaseSource]] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """Build the application with its services.

    Every collaborator can be injected; by default they are built from
    ``Config``.
    """
    database = database or Database(Config.DATABASE_PATH)
    tmdb = tmdb or TMDBClient(Config.TMDB_API_KEY, Config.FETCH_TIMEOUT)
    imdb = imdb or IMDbClient(Config.IMDB_API_BASE_URL, Config.FETCH_TIMEOUT)
    source_factory = source_factory or (lambda token: SimklSource(Config.SIMKL_CLIENT_ID, token))

    enricher = ItemEnricher(tmdb, imdb)
    worker = EnrichmentWorker(
        database,
        enricher,
        WorkerState(),
        batch_size=Config.ENRICH_BATCH_SIZE,
        delay=Config.ENRICH_DELAY,
    )
    enrichment = EnrichmentService(worker)
    verifier = TokenVerifier(database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        logger.info("Starting web application...")
        if start_scheduler and Config.ENRICH_INTERVAL > 0:
            enrichment.start(interval_minutes=Config.ENRICH_INTERVAL)

        yield

        await enrichment.stop()

    app = FastAPI(
        title="Strive",
        description="Movie and TV lists with CSV import/export and rating enrichment",
        lifespan=lifespan,
    )
    app.state.db = database
    app.state.tmdb = tmdb
    app.state.enricher = enricher
    app.state.enrichment = enrichment
    app.state.verifier = verifier

    # ============== Error handlers ==============

    @app.exception_handler(StriveError)
    async def strive_error_handler(request: Request, exc: StriveError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = MethodNotAllowedError().message if exc.status_code == 405 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": f"Invalid request body: {detail}"})

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # ============== Helpers ==============

    def authenticate(request: Request) -> str:
        return verifier.authenticate(request.headers.get("Authorization"))

    def resolve(request: Request, list_id: str) -> ResolvedList:
        """Path shape, then caller identity, then ownership."""
        validate_list_id(list_id)
        user_id = authenticate(request)
        return resolve_list(database, user_id, list_id)

    def require_custom(list_id: str, action: str) -> None:
        if list_id == WATCHLIST_ID:
            raise ClientError(f"The watchlist cannot be {action}")

    # ============== Export / import ==============

    @app.get("/lists/{list_id}/export")
    async def export_list_csv(list_id: str, request: Request):
        """Download a list as CSV with merged ratings."""
        resolved = resolve(request, list_id)
        export = await export_items(resolved, database, enricher, Config.EXPORT_CONCURRENCY)
        if export is None:
            return Response(status_code=204, headers=NO_CACHE)

        logger.info(f"Exported {export.row_count} items from list {resolved.list_id}")
        return Response(
            content=export.body,
            media_type="text/csv",
            headers={"Content-Disposition": content_disposition(export.filename), **NO_CACHE},
        )

    @app.post("/lists/{list_id}/import/analyze")
    async def import_analyze(list_id: str, request: Request):
        """Classify an uploaded CSV against the list without writing anything."""
        resolved = resolve(request, list_id)

        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith("multipart/form-data"):
            raise ClientError("Content-Type must be multipart/form-data")

        form = await request.form()
        try:
            uploads = [value for _, value in form.multi_items() if isinstance(value, UploadFile)]
            if len(uploads) != 1 or not _is_csv_upload(uploads[0]):
                raise ClientError("Exactly one CSV file is required")
            raw = await uploads[0].read()
        finally:
            await form.close()

        try:
            csv_text = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ClientError("CSV file must be UTF-8 encoded")

        analysis = await analyze_csv(resolved, database, tmdb, csv_text, Config.ANALYZE_CONCURRENCY)
        return analysis.to_dict()

    @app.post("/lists/{list_id}/import/confirm", status_code=201)
    async def import_confirm(list_id: str, request: Request):
        """Add caller-approved ids to the list in one batch."""
        resolved = resolve(request, list_id)

        try:
            body = await request.json()
        except ValueError:
            raise ClientError(BAD_IMPORT_BODY)
        ids = parse_import_ids(body)

        added = await confirm_ids(resolved, database, tmdb, ids, Config.ANALYZE_CONCURRENCY)
        message = f"{added} items successfully added to the list" if ids else "No movies to import"
        return {"success": True, "moviesAdded": added, "message": message}

    # ============== Lists ==============

    @app.get("/lists")
    async def get_lists(request: Request):
        user_id = authenticate(request)
        return {"lists": [lst.to_dict() for lst in database.get_user_lists(user_id)]}

    @app.post("/lists", status_code=201)
    async def create_list(payload: CreateListRequest, request: Request):
        user_id = authenticate(request)
        user_list = database.create_list(user_id, payload.name, payload.description, payload.isPinned)
        logger.info(f"Created list {user_list.id} for user {user_id}")
        return user_list.to_dict()

    @app.delete("/lists/{list_id}")
    async def delete_list(list_id: str, request: Request):
        """Delete a custom list together with its items."""
        resolved = resolve(request, list_id)
        require_custom(list_id, "deleted")
        if not database.delete_list(resolved.user_id, resolved.list_id):
            raise NotFoundError("List not found")
        return {"success": True}

    @app.post("/lists/{list_id}/pin")
    async def pin_list(list_id: str, request: Request):
        resolve(request, list_id)
        require_custom(list_id, "pinned")
        return database.set_pinned(list_id, True).to_dict()

    @app.delete("/lists/{list_id}/pin")
    async def unpin_list(list_id: str, request: Request):
        resolve(request, list_id)
        require_custom(list_id, "pinned")
        return database.set_pinned(list_id, False).to_dict()

    @app.get("/lists/{list_id}/items")
    async def get_items(list_id: str, request: Request):
        resolved = resolve(request, list_id)
        items = database.get_items(resolved.user_id, resolved.list_id)
        return {
            "listId": resolved.list_id,
            "name": resolved.display_name,
            "items": [item.to_dict() for item in items],
        }

    @app.post("/lists/{list_id}/items", status_code=201)
    async def add_item(list_id: str, payload: AddItemRequest, request: Request):
        """Add one title; it is stored pending and enriched later."""
        resolved = resolve(request, list_id)
        if not str(payload.id).strip():
            raise ClientError("Item id is required")

        item = item_from_tmdb(payload.model_dump(exclude_none=True), payload.media_type, source="manual")
        database.add_items(resolved.user_id, resolved.list_id, [item])
        return {"success": True, "item": item.to_dict()}

    @app.delete("/lists/{list_id}/items/{item_id}")
    async def remove_item(list_id: str, item_id: str, request: Request):
        resolved = resolve(request, list_id)
        if not database.remove_item(resolved.user_id, resolved.list_id, item_id):
            raise NotFoundError("Item not found")
        return {"success": True}

    # ============== Sync provider ==============

    @app.post("/lists/{list_id}/sync/simkl")
    async def sync_simkl(list_id: str, payload: SimklSyncRequest, request: Request):
        """Pull the caller's Simkl plan-to-watch titles into a list."""
        resolved = resolve(request, list_id)
        if not payload.accessToken.strip():
            raise ClientError("accessToken is required")

        source = source_factory(payload.accessToken.strip())
        if not await asyncio.to_thread(source.test_connection):
            raise HTTPException(status_code=502, detail=f"Failed to connect to {source.name}")

        added = await ingest(source, database, resolved)
        return {"success": True, "itemsAdded": added}

    # ============== Enrichment ==============

    @app.post("/enrichment/start")
    async def start_enrichment(request: Request):
        """Start a background pass over the caller's lists."""
        user_id = authenticate(request)
        if not enrichment.trigger(user_id):
            return {"status": "already_running", "message": "Enrichment already in progress"}
        return {"status": "started", "message": "Enrichment started"}

    @app.post("/enrichment/stop")
    async def stop_enrichment(request: Request):
        user_id = authenticate(request)
        state = enrichment.state
        if state.current_user != user_id or not state.request_stop():
            return {"status": "idle", "message": "No enrichment running"}
        return {"status": "stopping", "message": "Enrichment will stop after the current item"}

    @app.get("/enrichment/status")
    async def enrichment_status(request: Request):
        user_id = authenticate(request)
        state = enrichment.state
        return {
            "status": state.status.value,
            "running": state.is_running,
            "runningForCaller": state.is_running and state.current_user == user_id,
        }

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
