# display_update_service/app/models.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional
import datetime


# --- Council schedule API ---
class RawCollectionEntry(BaseModel):
    """One item of the council API `collections` array, as received."""

    model_config = ConfigDict(extra="ignore")

    service: str
    date: str  # "DD/MM/YYYY HH:MM:SS"
    day: Optional[str] = None
    round: Optional[str] = None
    schedule: Optional[str] = None

    @field_validator("day", "round", "schedule", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        # The API sends numbers for some rounds
        if value is None:
            return None
        return str(value)


# --- Stored records ---
class ReminderEvent(BaseModel):
    date: str  # YYYY-MM-DD
    id: str
    text: str
    created_at: datetime.datetime
    updated_at: Optional[datetime.datetime] = None
    expires_at: datetime.datetime


class CollectionEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str  # YYYY-MM-DD
    service_name: str = Field(alias="service")
    day_of_week: str = Field(default="", alias="day")
    round_id: str = Field(default="", alias="round")
    schedule_id: str = Field(default="", alias="schedule")
    updated_at: datetime.datetime
    expires_at: datetime.datetime


# --- Display ---
LAYOUT_SPLIT = "SPLIT"
LAYOUT_COMBINED = "COMBINED"


class DisplayPayload(BaseModel):
    header_text: str
    body_text: str
    # Collection line in the SPLIT layout; always "" in the COMBINED layout
    signature_text: str = ""
    layout: str = LAYOUT_SPLIT


# --- Inbound API ---
class EventCreateRequest(BaseModel):
    date: str = Field(default="", description="YYYY/MM/DD or YYYY-MM-DD")
    text: str = Field(default="", validation_alias=AliasChoices("text", "event"))


class EventBatchRequest(BaseModel):
    events: List[EventCreateRequest]


class EventCreateResponse(ReminderEvent):
    device_updated: bool = False
    display_refreshed: bool = False


class BatchItemError(BaseModel):
    date: str
    text: str
    error: str


class BatchUpsertSummary(BaseModel):
    created: List[ReminderEvent] = Field(default_factory=list)
    errors: List[BatchItemError] = Field(default_factory=list)
    total: int = 0
    succeeded: int = 0
    failed: int = 0


# --- Pipeline runs ---
class RunMetrics(BaseModel):
    collections_fetched: int = 0
    collections_stored: int = 0
    tomorrow_collections_found: int = 0
    events_found: int = 0
    device_updated: bool = False
    display: Optional[DisplayPayload] = None


class UpdateRunResult(BaseModel):
    success: bool
    trigger: str  # "scheduled" | "on_demand"
    duration_ms: int
    timestamp: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )
    metrics: Optional[RunMetrics] = None
    error: Optional[str] = None
    stack: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
