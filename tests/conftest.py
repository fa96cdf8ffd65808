"""Shared fixtures: an in-memory Firestore double, fake clocks and recorded sleeps."""

import datetime
from typing import Any, Dict, List, Optional

import httpx
import pytest
from google.api_core.exceptions import AlreadyExists, NotFound

from display_update_service.app.models import RawCollectionEntry
from display_update_service.app.services.write_throttle import WriteThrottle


class FakeSnapshot:
    def __init__(self, doc_id: str, data: Optional[Dict[str, Any]]):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, collection: "FakeCollection", doc_id: str):
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> Dict[str, Dict[str, Any]]:
        return self._collection.docs

    def create(self, data: Dict[str, Any]) -> None:
        self._collection.db.check_write()
        if self.id in self._docs:
            raise AlreadyExists(f"Document already exists: {self.id}")
        self._docs[self.id] = dict(data)

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        self._collection.db.check_write()
        if merge and self.id in self._docs:
            self._docs[self.id].update(data)
        else:
            self._docs[self.id] = dict(data)

    def update(self, data: Dict[str, Any]) -> None:
        self._collection.db.check_write()
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self.id}")
        self._docs[self.id].update(data)

    def get(self) -> FakeSnapshot:
        return FakeSnapshot(self.id, self._docs.get(self.id))


class FakeQuery:
    def __init__(self, collection: "FakeCollection", filters: List[tuple], limit: Optional[int] = None):
        self._collection = collection
        self._filters = filters
        self._limit = limit

    def where(self, field: str, op: str, value: Any) -> "FakeQuery":
        assert op == "==", "only equality filters are used by the stores"
        return FakeQuery(self._collection, self._filters + [(field, value)], self._limit)

    def limit(self, count: int) -> "FakeQuery":
        return FakeQuery(self._collection, self._filters, count)

    def stream(self):
        self._collection.db.check_query()
        # Firestore returns equality-query results in document ID order
        matches = [
            FakeSnapshot(doc_id, data)
            for doc_id, data in sorted(self._collection.docs.items())
            if all(data.get(field) == value for field, value in self._filters)
        ]
        if self._limit is not None:
            matches = matches[: self._limit]
        return iter(matches)


class FakeCollection:
    def __init__(self, db: "FakeFirestoreClient", name: str):
        self.db = db
        self.name = name
        self.docs: Dict[str, Dict[str, Any]] = {}

    def document(self, doc_id: str) -> FakeDocumentReference:
        return FakeDocumentReference(self, doc_id)

    def where(self, field: str, op: str, value: Any) -> FakeQuery:
        return FakeQuery(self, []).where(field, op, value)


class FakeFirestoreClient:
    """Just enough of google.cloud.firestore.Client for the record stores."""

    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}
        self.query_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.writes = 0

    def collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    def check_query(self) -> None:
        if self.query_error is not None:
            raise self.query_error

    def check_write(self) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes += 1


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordedSleep:
    """Stands in for asyncio.sleep; records delays and advances an optional clock."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.delays: List[float] = []
        self._clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._clock is not None:
            self._clock.advance(seconds)


@pytest.fixture
def fake_db() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorded_sleep() -> RecordedSleep:
    return RecordedSleep()


@pytest.fixture
def fixed_now():
    """Frozen UTC timestamp used for created_at / updated_at."""
    return lambda: datetime.datetime(2026, 10, 17, 7, 10, tzinfo=datetime.timezone.utc)


@pytest.fixture
def unthrottled() -> WriteThrottle:
    """A throttle whose waits are recorded but never actually slept."""
    return WriteThrottle(writes_per_second=1000, sleep=RecordedSleep())


@pytest.fixture
def council_collections() -> List[RawCollectionEntry]:
    return [
        RawCollectionEntry(
            service="Recycling Collection Service",
            date="18/10/2026 00:00:00",
            day="Sunday",
            round="REC-SUN",
            schedule="Wk1",
        ),
        RawCollectionEntry(
            service="Food Waste Collection Service",
            date="18/10/2026 00:00:00",
            day="Sunday",
            round="FOOD-SUN",
            schedule="Wk1",
        ),
        RawCollectionEntry(
            service="Domestic Waste Collection Service",
            date="25/10/2026 00:00:00",
            day="Sunday",
            round="DOM-SUN",
            schedule="Wk2",
        ),
    ]


def mock_http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def make_http_client():
    return mock_http_client


@pytest.fixture
def clocked_sleep(fake_clock) -> RecordedSleep:
    """Recorded sleep that also advances fake_clock."""
    return RecordedSleep(fake_clock)


@pytest.fixture
def device_calls() -> List[httpx.Request]:
    """Requests received by the fake display device."""
    return []


@pytest.fixture
def build_orchestrator(fake_db, fixed_now, unthrottled, fake_clock, recorded_sleep, device_calls):
    """Factory for an orchestrator wired to the in-memory stores and a fake device."""
    from display_update_service.app.data_sources.mock_data_source import ConstantCollectionSource
    from display_update_service.app.services.collection_fetcher import (
        CollectionFetcher,
        ScheduleCache,
    )
    from display_update_service.app.services.device_pusher import DevicePusher
    from display_update_service.app.services.record_store import (
        CollectionStore,
        ReminderEventStore,
    )
    from display_update_service.app.services.update_orchestrator import UpdateOrchestrator

    def ok(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    def _build(device_status=None, layout="SPLIT", endpoint="https://device.example/api/display", source=None):
        def handler(request: httpx.Request) -> httpx.Response:
            device_calls.append(request)
            if device_status is not None:
                return httpx.Response(device_status)
            return ok(request)

        pusher = DevicePusher(
            endpoint=endpoint,
            token="secret-token",
            field_names={"title": "title", "message": "message", "signature": "signature"},
            http_client=mock_http_client(handler),
            sleep=recorded_sleep,
        )
        return UpdateOrchestrator(
            fetcher=CollectionFetcher(
                source or ConstantCollectionSource(weeks_ahead=1, today=datetime.date(2026, 10, 17)),
                ScheduleCache(ttl_seconds=3600, clock=fake_clock),
            ),
            event_store=ReminderEventStore(
                fake_db, collection_name="events", throttle=unthrottled, now=fixed_now
            ),
            collection_store=CollectionStore(
                fake_db, collection_name="bins", throttle=unthrottled, now=fixed_now
            ),
            pusher=pusher,
            today=lambda: datetime.date(2026, 10, 17),
            layout=layout,
        )

    return _build
