# display_update_service/app/main.py
import logging
from fastapi import FastAPI, HTTPException, Depends
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import List

from .utils.logging_config import setup_logging

setup_logging()

from .config import MAX_EVENT_TEXT_LENGTH, settings
from .firestore_client import get_firestore_client
from .data_sources.interface import ICollectionScheduleSource
from .data_sources.mock_data_source import ConstantCollectionSource
from .data_sources.reading_council_source import ReadingCouncilSource
from .models import (
    BatchUpsertSummary,
    DisplayPayload,
    EventBatchRequest,
    EventCreateRequest,
    EventCreateResponse,
    ReminderEvent,
)
from .services.collection_fetcher import CollectionFetcher, ScheduleCache
from .services.device_pusher import DevicePusher
from .services.record_store import CollectionStore, ReminderEventStore
from .services.update_orchestrator import UpdateOrchestrator
from .services.write_throttle import WriteThrottle
from .utils.dates import local_today, normalize_event_date

logger = logging.getLogger(__name__)

# Global instances, initialized in lifespan
_schedule_source_instance: ICollectionScheduleSource | None = None
_pusher_instance: DevicePusher | None = None
_orchestrator_instance: UpdateOrchestrator | None = None


def build_schedule_source() -> ICollectionScheduleSource:
    if settings.SCHEDULE_SOURCE_TYPE == "READING_COUNCIL":
        logger.info("Using ReadingCouncilSource.")
        return ReadingCouncilSource(
            base_url=settings.SCHEDULE_API_BASE_URL,
            property_id=settings.SCHEDULE_PROPERTY_ID,
            timeout=settings.SCHEDULE_API_TIMEOUT_SECONDS,
        )
    if settings.SCHEDULE_SOURCE_TYPE == "MOCK":
        logger.info("Using ConstantCollectionSource (Mock).")
        return ConstantCollectionSource()
    logger.critical(
        f"Unsupported SCHEDULE_SOURCE_TYPE: {settings.SCHEDULE_SOURCE_TYPE}. Defaulting to MOCK."
    )
    return ConstantCollectionSource()


def build_device_pusher() -> DevicePusher:
    return DevicePusher(
        endpoint=settings.DEVICE_ENDPOINT,
        token=settings.DEVICE_TOKEN,
        field_names={
            "title": settings.DEVICE_TITLE_FIELD,
            "message": settings.DEVICE_MESSAGE_FIELD,
            "signature": settings.DEVICE_SIGNATURE_FIELD,
        },
        timeout=settings.DEVICE_TIMEOUT_SECONDS,
        max_attempts=settings.DEVICE_MAX_ATTEMPTS,
        initial_retry_delay=settings.DEVICE_INITIAL_RETRY_DELAY_SECONDS,
    )


def build_orchestrator(
    db, source: ICollectionScheduleSource, pusher: DevicePusher
) -> UpdateOrchestrator:
    # Both stores share one throttle: the write ceiling is per database
    throttle = WriteThrottle(settings.STORE_WRITES_PER_SECOND)
    return UpdateOrchestrator(
        fetcher=CollectionFetcher(
            source, ScheduleCache(ttl_seconds=settings.SCHEDULE_CACHE_TTL_HOURS * 3600)
        ),
        event_store=ReminderEventStore(db, throttle=throttle),
        collection_store=CollectionStore(db, throttle=throttle),
        pusher=pusher,
        today=lambda: local_today(settings.DISPLAY_TIMEZONE),
        layout=settings.DISPLAY_LAYOUT,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _schedule_source_instance, _pusher_instance, _orchestrator_instance
    logger.info("Display Update Service starting up...")
    try:
        db = get_firestore_client()
        _schedule_source_instance = build_schedule_source()
        _pusher_instance = build_device_pusher()
        if not _pusher_instance.is_configured():
            logger.warning("DEVICE_ENDPOINT or DEVICE_TOKEN not set. Device pushes will be skipped.")
        _orchestrator_instance = build_orchestrator(db, _schedule_source_instance, _pusher_instance)
        logger.info("Display Update Service initialized successfully.")
    except Exception as e:
        logger.critical(
            f"DisplayUpdater: Failed to initialize clients on startup: {e}",
            exc_info=True,
        )

    yield  # Application runs

    for closable in (_schedule_source_instance, _pusher_instance):
        if hasattr(closable, "close") and callable(getattr(closable, "close")):
            try:
                await closable.close()  # type: ignore
            except Exception as e:
                logger.error(f"Error closing {type(closable).__name__}: {e}", exc_info=True)
    logger.info("Display Update Service shutting down...")


app = FastAPI(
    title="Display Update Service",
    description="Aggregates bin collections and reminders and pushes them to the display device.",
    version="1.0.0",
    lifespan=lifespan,
)


# --- Dependency Injection ---
def get_orchestrator_dependency() -> UpdateOrchestrator:
    if _orchestrator_instance is None:
        logger.error("Orchestrator accessed before initialization!")
        raise HTTPException(
            status_code=503, detail="Service not ready: update orchestrator not initialized."
        )
    return _orchestrator_instance


def _validate_event_request(request: EventCreateRequest) -> str:
    """Returns the normalized date; raises HTTPException for invalid input."""
    if not request.date:
        raise HTTPException(status_code=400, detail="Missing required field: date")
    if not request.text:
        raise HTTPException(status_code=400, detail="Missing required field: text")
    try:
        date = normalize_event_date(request.date)
    except ValueError:
        raise HTTPException(
            status_code=400, detail="Invalid date format. Use YYYY/MM/DD or YYYY-MM-DD"
        )
    if len(request.text) > MAX_EVENT_TEXT_LENGTH:
        raise HTTPException(
            status_code=422,
            detail=f"Event text exceeds maximum length of {MAX_EVENT_TEXT_LENGTH} characters",
        )
    return date


# --- Event Endpoints ---
@app.post("/api/events", status_code=201, response_model=EventCreateResponse)
async def api_create_event(
    request: EventCreateRequest,
    orchestrator: UpdateOrchestrator = Depends(get_orchestrator_dependency),
):
    date = _validate_event_request(request)
    try:
        event = await orchestrator.event_store.upsert(date, request.text)
    except Exception as e:
        logger.error(f"API: Error storing event for {date}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to store event: {str(e)}")

    # The event is stored; a failed refresh only shows up in the flags
    run = await orchestrator.run_on_demand()
    return EventCreateResponse(
        **event.model_dump(),
        device_updated=bool(run.metrics and run.metrics.device_updated),
        display_refreshed=run.success,
    )


@app.post("/api/events/batch", response_model=BatchUpsertSummary)
async def api_create_events_batch(
    request: EventBatchRequest,
    orchestrator: UpdateOrchestrator = Depends(get_orchestrator_dependency),
):
    valid_items: List[EventCreateRequest] = []
    for item in request.events:
        date = _validate_event_request(item)
        valid_items.append(EventCreateRequest(date=date, text=item.text))

    summary = await orchestrator.event_store.upsert_many(valid_items)
    if summary.succeeded:
        run = await orchestrator.run_on_demand()
        if not run.success:
            logger.warning(f"API: Display refresh after batch failed: {run.error}")
    return summary


@app.get("/api/events/{date:path}", response_model=List[ReminderEvent])
async def api_list_events(
    date: str,
    orchestrator: UpdateOrchestrator = Depends(get_orchestrator_dependency),
):
    try:
        normalized = normalize_event_date(date)
    except ValueError:
        raise HTTPException(
            status_code=400, detail="Invalid date format. Use YYYY/MM/DD or YYYY-MM-DD"
        )
    try:
        return await orchestrator.event_store.query_by_date(normalized)
    except Exception as e:
        logger.error(f"API: Error listing events for {normalized}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# --- Display Endpoints ---
@app.get("/api/display", response_model=DisplayPayload)
async def api_get_display(
    orchestrator: UpdateOrchestrator = Depends(get_orchestrator_dependency),
):
    """Current rendering from stored data, for devices that pull."""
    try:
        return await orchestrator.build_display()
    except Exception as e:
        logger.error(f"API: Error building display: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/scheduler/run-scheduled-update")
async def api_run_scheduled_update(
    orchestrator: UpdateOrchestrator = Depends(get_orchestrator_dependency),
):
    result = await orchestrator.run_scheduled()
    return JSONResponse(status_code=200 if result.success else 500, content=result.summary())


@app.get("/")
async def read_root():
    return {"message": "Welcome to the Display Update Service"}


@app.get("/health")
async def health_check():
    db_ok = False
    source_ok = bool(_schedule_source_instance)
    pusher_ok = bool(_pusher_instance)
    if _orchestrator_instance is not None:
        db_ok = await _orchestrator_instance.event_store.health_check()
    if not db_ok:
        logger.warning("Health check: Firestore not healthy for DisplayUpdater service.")

    if db_ok and source_ok and pusher_ok:
        return {
            "status": "ok",
            "firestore_healthy": True,
            "schedule_source_initialized": True,
            "device_pusher_initialized": True,
            "device_configured": _pusher_instance.is_configured(),
        }
    details = []
    if not db_ok:
        details.append("Firestore client issue.")
    if not source_ok:
        details.append("Schedule source not initialized.")
    if not pusher_ok:
        details.append("Device pusher not initialized.")
    return {
        "status": "degraded",
        "firestore_healthy": db_ok,
        "schedule_source_initialized": source_ok,
        "device_pusher_initialized": pusher_ok,
        "detail": " ".join(details),
    }
