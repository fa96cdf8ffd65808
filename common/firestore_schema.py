# display-updater/common/firestore_schema.py

import hashlib

# --- Project Name (can be used in logging, etc.) ---
PROJECT_NAME = "BinDisplayUpdater"

# --- Collection Names (defaults, overridable from service config) ---
REMINDER_EVENTS_COLLECTION = "reminder_events"  # One document per reminder event
BIN_COLLECTIONS_COLLECTION = "bin_collections"  # One document per (date, service)

# --- Reminder Event Document Fields (in REMINDER_EVENTS_COLLECTION) ---
# Document ID for this collection is the event id (UUID string).
EVENT_DATE_FIELD = "date"  # String YYYY-MM-DD, the partition key
EVENT_ID_FIELD = "id"  # String, mirrors the document ID
EVENT_TEXT_FIELD = "text"  # String, may contain "\n"
EVENT_CREATED_AT_FIELD = "created_at"  # Timestamp
EVENT_UPDATED_AT_FIELD = "updated_at"  # Timestamp, absent until first update
EVENT_EXPIRES_AT_FIELD = "expires_at"  # Timestamp, Firestore TTL policy field

# --- Bin Collection Document Fields (in BIN_COLLECTIONS_COLLECTION) ---
# Document ID is derived from (date, service), see collection_doc_id().
COLLECTION_DATE_FIELD = "date"  # String YYYY-MM-DD, the partition key
COLLECTION_SERVICE_FIELD = "service"  # String, original label from the council API
COLLECTION_DAY_FIELD = "day"  # String, e.g. "Tuesday"
COLLECTION_ROUND_FIELD = "round"  # String
COLLECTION_SCHEDULE_FIELD = "schedule"  # String
COLLECTION_UPDATED_AT_FIELD = "updated_at"  # Timestamp
COLLECTION_EXPIRES_AT_FIELD = "expires_at"  # Timestamp, Firestore TTL policy field

# Sentinel partition used by the store health check; never written.
HEALTH_CHECK_DATE = "9999-12-31"


def collection_doc_id(date: str, service: str) -> str:
    """Document ID for a bin collection entry: readable slug plus a hash of the exact label.

    Firestore IDs may not contain "/" and may not be "." or "..".
    """
    slug = "".join(ch.lower() if ch.isalnum() else "-" for ch in service).strip("-")
    digest = hashlib.sha1(service.encode("utf-8")).hexdigest()[:8]
    return f"{date}__{slug or 'unknown'}-{digest}"
