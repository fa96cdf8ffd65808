# display_update_service/app/services/update_orchestrator.py
import datetime
import logging
import time
import traceback
from typing import Callable, List

from ..models import CollectionEntry, DisplayPayload, ReminderEvent, RunMetrics, UpdateRunResult
from .collection_fetcher import CollectionFetcher
from .device_pusher import DevicePusher
from .display_formatter import LAYOUT_SPLIT, render
from .record_store import CollectionStore, ReminderEventStore

logger = logging.getLogger(__name__)

TRIGGER_SCHEDULED = "scheduled"
TRIGGER_ON_DEMAND = "on_demand"


class UpdateOrchestrator:
    """
    fetch -> store -> query -> render -> push, one step at a time.

    Only storage failures end a run as failed. The fetcher and the pusher absorb
    their own failures, and a run never retries itself: the next trigger does.
    Runs are not mutually excluded; a scheduled and an on-demand run may overlap.
    """

    def __init__(
        self,
        fetcher: CollectionFetcher,
        event_store: ReminderEventStore,
        collection_store: CollectionStore,
        pusher: DevicePusher,
        today: Callable[[], datetime.date],
        layout: str = LAYOUT_SPLIT,
    ):
        self.fetcher = fetcher
        self.event_store = event_store
        self.collection_store = collection_store
        self.pusher = pusher
        self._today = today
        self.layout = layout

    async def run_scheduled(self) -> UpdateRunResult:
        return await self._run(TRIGGER_SCHEDULED)

    async def run_on_demand(self) -> UpdateRunResult:
        return await self._run(TRIGGER_ON_DEMAND)

    async def build_display(self, metrics: RunMetrics | None = None) -> DisplayPayload:
        """Queries stored data and renders it; storage errors propagate."""
        metrics = metrics or RunMetrics()
        today = self._today()
        tomorrow = today + datetime.timedelta(days=1)

        collections: List[CollectionEntry] = await self.collection_store.query_by_date(
            tomorrow.isoformat()
        )
        metrics.tomorrow_collections_found = len(collections)
        logger.info(f"Orchestrator: Found {len(collections)} bin collections for {tomorrow}")

        events: List[ReminderEvent] = await self.event_store.query_by_date(today.isoformat())
        metrics.events_found = len(events)
        logger.info(f"Orchestrator: Found {len(events)} events for {today}")

        return render(events, collections, today, layout=self.layout)

    async def _run(self, trigger: str) -> UpdateRunResult:
        started = time.monotonic()
        metrics = RunMetrics()
        logger.info(f"Orchestrator: {trigger} update started")

        try:
            if trigger == TRIGGER_SCHEDULED:
                raw_collections = await self.fetcher.fetch()
                metrics.collections_fetched = len(raw_collections)
                logger.info(f"Orchestrator: Fetched {len(raw_collections)} scheduled collections")

                metrics.collections_stored = await self.collection_store.store_many(
                    raw_collections
                )
                logger.info(f"Orchestrator: Stored {metrics.collections_stored} collections")

            payload = await self.build_display(metrics)
            metrics.display = payload

            metrics.device_updated = await self.pusher.push(payload)
            if not metrics.device_updated:
                logger.warning("Orchestrator: Device was not updated this run")
        except Exception as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.error(
                f"Orchestrator: {trigger} update failed after {duration_ms}ms: {e}",
                exc_info=True,
            )
            return UpdateRunResult(
                success=False,
                trigger=trigger,
                duration_ms=duration_ms,
                error=str(e),
                stack=traceback.format_exc(),
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Orchestrator: {trigger} update completed in {duration_ms}ms")
        return UpdateRunResult(
            success=True, trigger=trigger, duration_ms=duration_ms, metrics=metrics
        )
