# display_update_service/app/services/record_store.py
import datetime
import logging
import uuid
from typing import Callable, Dict, Iterable, List, Optional

from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore
from pydantic import ValidationError

from common import firestore_schema as schema
from ..config import settings
from ..models import (
    BatchItemError,
    BatchUpsertSummary,
    CollectionEntry,
    EventCreateRequest,
    RawCollectionEntry,
    ReminderEvent,
)
from ..utils.dates import expiry_for, normalize_event_date, source_date_to_key, utc_now
from .write_throttle import WriteThrottle

logger = logging.getLogger(__name__)

# Namespace for ids of events created through upsert; one id per date.
UPSERT_EVENT_NAMESPACE = uuid.UUID("6f1c3c1e-2b7a-4c55-9d0e-3a8f5b7e2d41")


def upsert_event_id(date: str) -> str:
    return str(uuid.uuid5(UPSERT_EVENT_NAMESPACE, date))


class ReminderEventStore:
    """Date-partitioned reminder events.

    Storage exceptions are logged and re-raised unchanged; nothing here retries.
    """

    def __init__(
        self,
        db: firestore.Client,
        collection_name: str | None = None,
        ttl_days: int | None = None,
        throttle: WriteThrottle | None = None,
        now: Callable[[], datetime.datetime] = utc_now,
    ):
        self.db = db
        self.collection_name = collection_name or settings.REMINDER_EVENTS_COLLECTION
        self.ttl_days = ttl_days if ttl_days is not None else settings.RECORD_TTL_DAYS
        self.throttle = throttle or WriteThrottle(settings.STORE_WRITES_PER_SECOND)
        self._now = now

    def _collection(self):
        return self.db.collection(self.collection_name)

    async def query_by_date(self, date: str) -> List[ReminderEvent]:
        logger.info(f"EventStore: Querying events for date: {date}")
        try:
            snaps = list(
                self._collection().where(schema.EVENT_DATE_FIELD, "==", date).stream()
            )
        except Exception as e:
            logger.error(f"EventStore: Error querying events for {date}: {e}", exc_info=True)
            raise

        events: List[ReminderEvent] = []
        for snap in snaps:
            try:
                events.append(ReminderEvent(**snap.to_dict()))
            except ValidationError as e:
                logger.warning(f"EventStore: Skipping malformed event doc {snap.id}: {e}")
        logger.info(f"EventStore: Found {len(events)} events for date {date}")
        return events

    async def create(self, date: str, text: str, event_id: str | None = None) -> ReminderEvent:
        """
        Unconditional insert of a new event. A random id is generated when none is given.
        Raises AlreadyExists if a document with the given id is already stored.
        """
        now = self._now()
        event = ReminderEvent(
            date=date,
            id=event_id or str(uuid.uuid4()),
            text=text,
            created_at=now,
            expires_at=expiry_for(date, self.ttl_days),
        )
        doc_ref = self._collection().document(event.id)
        try:
            doc_ref.create(event.model_dump(exclude_none=True))
        except AlreadyExists:
            raise
        except Exception as e:
            logger.error(f"EventStore: Error creating event for {date}: {e}", exc_info=True)
            raise
        logger.info(f"EventStore: Created event {event.id} for {date}")
        return event

    async def update(self, date: str, event_id: str, new_text: str) -> ReminderEvent:
        """Overwrites the text and updated_at of an existing event."""
        doc_ref = self._collection().document(event_id)
        try:
            doc_ref.update(
                {
                    schema.EVENT_TEXT_FIELD: new_text,
                    schema.EVENT_UPDATED_AT_FIELD: self._now(),
                }
            )
            updated = ReminderEvent(**doc_ref.get().to_dict())
        except Exception as e:
            logger.error(
                f"EventStore: Error updating event {event_id} ({date}): {e}", exc_info=True
            )
            raise
        logger.info(f"EventStore: Updated event {event_id} for {date}")
        return updated

    async def upsert(self, date: str, text: str) -> ReminderEvent:
        """
        Keeps one logical event per date: updates the first stored event for the
        date, or creates one.

        A created event gets an id derived from the date, and the insert is a
        conditional create. Two concurrent upserts that both find nothing therefore
        race on the same document: the loser gets AlreadyExists and updates instead.
        Events added through create() with random ids are not covered by this.
        """
        existing = await self.query_by_date(date)
        if existing:
            logger.info(f"EventStore: Updating existing event {existing[0].id} for {date}")
            return await self.update(date, existing[0].id, text)

        event_id = upsert_event_id(date)
        try:
            logger.info(f"EventStore: No event for {date}, creating {event_id}")
            return await self.create(date, text, event_id=event_id)
        except AlreadyExists:
            logger.info(f"EventStore: Event {event_id} was created concurrently, updating it")
            return await self.update(date, event_id, text)

    async def upsert_many(self, items: Iterable[EventCreateRequest]) -> BatchUpsertSummary:
        """Upserts each item in turn; a failing item is recorded, not raised."""
        summary = BatchUpsertSummary()
        for item in items:
            summary.total += 1
            try:
                date = normalize_event_date(item.date)
                async with self.throttle.slot():
                    summary.created.append(await self.upsert(date, item.text))
            except Exception as e:
                logger.error(f"EventStore: Batch item for {item.date} failed: {e}")
                summary.errors.append(BatchItemError(date=item.date, text=item.text, error=str(e)))
        summary.succeeded = len(summary.created)
        summary.failed = len(summary.errors)
        logger.info(
            f"EventStore: Batch complete: {summary.succeeded} succeeded, {summary.failed} failed"
        )
        return summary

    async def health_check(self) -> bool:
        try:
            list(
                self._collection()
                .where(schema.EVENT_DATE_FIELD, "==", schema.HEALTH_CHECK_DATE)
                .limit(1)
                .stream()
            )
            return True
        except Exception as e:
            logger.warning(f"EventStore: Health check failed: {e}")
            return False


class CollectionStore:
    """Bin collection entries keyed by (date, service); writes overwrite in place."""

    def __init__(
        self,
        db: firestore.Client,
        collection_name: str | None = None,
        ttl_days: int | None = None,
        throttle: WriteThrottle | None = None,
        now: Callable[[], datetime.datetime] = utc_now,
    ):
        self.db = db
        self.collection_name = collection_name or settings.BIN_COLLECTIONS_COLLECTION
        self.ttl_days = ttl_days if ttl_days is not None else settings.RECORD_TTL_DAYS
        self.throttle = throttle or WriteThrottle(settings.STORE_WRITES_PER_SECOND)
        self._now = now

    def _collection(self):
        return self.db.collection(self.collection_name)

    async def query_by_date(self, date: str) -> List[CollectionEntry]:
        logger.info(f"CollectionStore: Querying collections for date: {date}")
        try:
            snaps = list(
                self._collection().where(schema.COLLECTION_DATE_FIELD, "==", date).stream()
            )
        except Exception as e:
            logger.error(
                f"CollectionStore: Error querying collections for {date}: {e}", exc_info=True
            )
            raise

        entries: List[CollectionEntry] = []
        for snap in snaps:
            try:
                entries.append(CollectionEntry(**snap.to_dict()))
            except ValidationError as e:
                logger.warning(f"CollectionStore: Skipping malformed doc {snap.id}: {e}")
        logger.info(f"CollectionStore: Found {len(entries)} collections for {date}")
        return entries

    async def create(self, entry: CollectionEntry) -> CollectionEntry:
        """Unconditional write of a complete entry under its natural key."""
        doc_ref = self._collection().document(
            schema.collection_doc_id(entry.date, entry.service_name)
        )
        try:
            doc_ref.set(entry.model_dump(by_alias=True))
        except Exception as e:
            logger.error(
                f"CollectionStore: Error writing {entry.date} - {entry.service_name}: {e}",
                exc_info=True,
            )
            raise
        return entry

    async def update(
        self,
        date: str,
        service_name: str,
        day_of_week: Optional[str] = None,
        round_id: Optional[str] = None,
        schedule_id: Optional[str] = None,
    ) -> CollectionEntry:
        """Overwrites the given mutable fields and updated_at of an existing entry."""
        changes: Dict[str, object] = {schema.COLLECTION_UPDATED_AT_FIELD: self._now()}
        if day_of_week is not None:
            changes[schema.COLLECTION_DAY_FIELD] = day_of_week
        if round_id is not None:
            changes[schema.COLLECTION_ROUND_FIELD] = round_id
        if schedule_id is not None:
            changes[schema.COLLECTION_SCHEDULE_FIELD] = schedule_id

        doc_ref = self._collection().document(schema.collection_doc_id(date, service_name))
        try:
            doc_ref.update(changes)
            return CollectionEntry(**doc_ref.get().to_dict())
        except Exception as e:
            logger.error(
                f"CollectionStore: Error updating {date} - {service_name}: {e}", exc_info=True
            )
            raise

    async def upsert(self, date: str, raw: RawCollectionEntry) -> CollectionEntry:
        logger.debug(f"CollectionStore: Upserting bin collection: {date} - {raw.service}")
        entry = CollectionEntry(
            date=date,
            service_name=raw.service,
            day_of_week=raw.day or "",
            round_id=raw.round or "",
            schedule_id=raw.schedule or "",
            updated_at=self._now(),
            expires_at=expiry_for(date, self.ttl_days),
        )
        return await self.create(entry)

    async def store_many(self, raw_entries: Iterable[RawCollectionEntry]) -> int:
        """
        Writes each entry under its canonical date key, one throttled write at a time.
        Entries with an unparseable source date are skipped. Storage errors propagate.
        """
        raw_entries = list(raw_entries)
        logger.info(f"CollectionStore: Storing {len(raw_entries)} bin collections")
        stored_count = 0
        for raw in raw_entries:
            try:
                date = source_date_to_key(raw.date)
            except ValueError:
                logger.warning(
                    f"CollectionStore: Skipping {raw.service} with unparseable date '{raw.date}'"
                )
                continue
            async with self.throttle.slot():
                await self.upsert(date, raw)
            stored_count += 1
        logger.info(f"CollectionStore: Successfully stored {stored_count} bin collections")
        return stored_count
