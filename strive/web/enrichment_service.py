"""Background service that enriches pending list items."""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from strive.enrichment.enricher import ItemEnricher, RatingSnapshot
from strive.models import ENRICHED, FAILED, WATCHLIST_ID, ListItem, utc_now
from strive.web.repository import ListRepository

logger = logging.getLogger(__name__)


class WorkerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class WorkerState:
    """Run state of the enrichment worker, owned by the application.

    Only one run may be active at a time. A stop request is honoured at
    the next checkpoint between lists or items.
    """

    def __init__(self):
        self.status = WorkerStatus.IDLE
        self.current_user: Optional[str] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def is_running(self) -> bool:
        return self.status == WorkerStatus.RUNNING

    @property
    def stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def try_begin(self, user_id: str) -> bool:
        """Mark a run as started. Returns False if one is already running."""
        if self.is_running:
            return False
        self.status = WorkerStatus.RUNNING
        self.current_user = user_id
        # Created per run so it binds to the loop executing that run
        self._stop_event = asyncio.Event()
        return True

    def finish(self) -> None:
        self.status = WorkerStatus.STOPPED if self.stop_requested else WorkerStatus.IDLE
        self.current_user = None

    def request_stop(self) -> bool:
        """Ask a running worker to stop. Returns False when nothing is running."""
        if not self.is_running or self._stop_event is None:
            return False
        self._stop_event.set()
        return True

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if a stop was requested meanwhile."""
        if self._stop_event is None:
            await asyncio.sleep(seconds)
            return False
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return self.stop_requested


def snapshot_updates(snapshot: RatingSnapshot) -> dict:
    """Item fields to persist for an enrichment outcome."""
    updates = {"last_enriched": utc_now()}
    if not snapshot.has_data:
        updates["enrichment_status"] = FAILED
        return updates

    updates["enrichment_status"] = ENRICHED
    if snapshot.has_tmdb_data:
        updates["tmdb_rating"] = snapshot.tmdb_rating
        updates["tmdb_vote_count"] = snapshot.tmdb_votes
        updates["vote_average"] = snapshot.tmdb_rating
        updates["vote_count"] = snapshot.tmdb_votes
        if snapshot.poster_path:
            updates["poster_path"] = snapshot.poster_path
    if snapshot.imdb_id:
        updates["imdb_id"] = snapshot.imdb_id
    if snapshot.has_imdb_data:
        updates["imdb_rating"] = snapshot.imdb_rating
        updates["imdb_vote_count"] = snapshot.imdb_votes
        # IMDb takes precedence for the displayed rating
        updates["vote_average"] = snapshot.imdb_rating
        updates["vote_count"] = snapshot.imdb_votes
    return updates


class EnrichmentWorker:
    """Walks a user's lists and enriches pending items one at a time."""

    def __init__(
        self,
        repository: ListRepository,
        enricher: ItemEnricher,
        state: WorkerState,
        batch_size: int = 5,
        delay: float = 2.0,
        on_item_done: Optional[Callable[[str, ListItem, str], None]] = None,
    ):
        self.repository = repository
        self.enricher = enricher
        self.state = state
        self.batch_size = batch_size
        self.delay = delay
        self.on_item_done = on_item_done

    def _list_ids(self, user_id: str) -> list[str]:
        return [WATCHLIST_ID] + [lst.id for lst in self.repository.get_user_lists(user_id)]

    async def run(self, user_id: str) -> dict:
        """Run one enrichment pass over all of ``user_id``'s lists."""
        if not self.state.try_begin(user_id):
            logger.warning("Enrichment already in progress, skipping")
            return {"status": "skipped", "reason": "already running"}
        return await self.run_claimed(user_id)

    async def run_claimed(self, user_id: str) -> dict:
        """Run a pass for which ``state.try_begin`` already succeeded."""
        enriched = failed = 0
        try:
            logger.info(f"Starting background enrichment for user {user_id}")
            first = True
            for list_id in self._list_ids(user_id):
                if self.state.stop_requested:
                    break

                pending = self.repository.get_pending_items(user_id, list_id, self.batch_size)
                if not pending:
                    continue
                logger.info(f"Found {len(pending)} pending items in list {list_id}")

                for item in pending:
                    if self.state.stop_requested:
                        break
                    # Throttle between items to stay inside third-party rate limits
                    if not first and self.delay > 0 and await self.state.sleep(self.delay):
                        break
                    first = False

                    status = await self.enrich_item(user_id, list_id, item)
                    if status == ENRICHED:
                        enriched += 1
                    else:
                        failed += 1

            stopped = self.state.stop_requested
            logger.info(
                f"Enrichment {'stopped' if stopped else 'finished'} for user {user_id}: "
                f"{enriched} enriched, {failed} failed"
            )
            return {
                "status": "stopped" if stopped else "success",
                "enriched": enriched,
                "failed": failed,
            }

        finally:
            self.state.finish()

    async def enrich_item(self, user_id: str, list_id: str, item: ListItem) -> str:
        """Enrich and persist one item. Returns the resulting status."""
        try:
            snapshot = await self.enricher.collect(item)
            updates = snapshot_updates(snapshot)
            self.repository.update_item_fields(user_id, list_id, item.id, updates)
            status = updates["enrichment_status"]
            if status == ENRICHED:
                logger.info(f"Enriched {item.display_title} ({item.id})")
            else:
                logger.info(f"No data found for {item.display_title} ({item.id}), marked as failed")
        except Exception as e:
            logger.error(f"Error enriching item {item.id}: {e}")
            status = FAILED
            try:
                self.repository.update_item_fields(
                    user_id, list_id, item.id, {"enrichment_status": FAILED, "last_enriched": utc_now()}
                )
            except Exception as update_error:
                logger.error(f"Failed to mark item {item.id} as failed: {update_error}")

        if self.on_item_done:
            self.on_item_done(list_id, item, status)
        return status


class EnrichmentService:
    """Schedules periodic enrichment sweeps and on-demand runs."""

    def __init__(self, worker: EnrichmentWorker):
        self.worker = worker
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> WorkerState:
        return self.worker.state

    def start(self, interval_minutes: int = 15) -> None:
        """Start the periodic sweep scheduler."""
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.sweep,
            "interval",
            minutes=interval_minutes,
            id="enrichment_sweep",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()
        logger.info(f"Enrichment service started (interval: {interval_minutes} min)")

    async def stop(self) -> None:
        """Stop the scheduler and wait for any on-demand pass to wind down."""
        self.state.request_stop()
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        logger.info("Enrichment service stopped")

    async def sweep(self) -> list[dict]:
        """Enrich pending items of every user that has some."""
        results = []
        for user_id in self.worker.repository.users_with_pending_items():
            if self.state.is_running:
                break
            result = await self.worker.run(user_id)
            results.append(result)
            if result.get("status") == "stopped":
                break
        return results

    def trigger(self, user_id: str) -> bool:
        """Start a pass for ``user_id`` in the background. False if busy."""
        # Claim synchronously; the task only runs an already-claimed pass
        if not self.state.try_begin(user_id):
            return False
        task = asyncio.get_running_loop().create_task(self.worker.run_claimed(user_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True
