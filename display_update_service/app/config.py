# display_update_service/app/config.py
import os
from dotenv import load_dotenv

from common import firestore_schema

load_dotenv()


class Settings:
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    FIRESTORE_DATABASE_NAME: str | None = os.getenv("FIRESTORE_DATABASE_NAME")
    GCP_PROJECT_ID: str | None = os.getenv("GCP_PROJECT_ID")

    # Firestore Collection Names
    REMINDER_EVENTS_COLLECTION: str = os.getenv(
        "REMINDER_EVENTS_COLLECTION", firestore_schema.REMINDER_EVENTS_COLLECTION
    )
    BIN_COLLECTIONS_COLLECTION: str = os.getenv(
        "BIN_COLLECTIONS_COLLECTION", firestore_schema.BIN_COLLECTIONS_COLLECTION
    )
    # Records carry an expires_at this many days after their date (Firestore TTL policy)
    RECORD_TTL_DAYS: int = int(os.getenv("RECORD_TTL_DAYS", "90"))
    # Batch writes go out one at a time, at most this many per second
    STORE_WRITES_PER_SECOND: float = float(os.getenv("STORE_WRITES_PER_SECOND", "5"))

    # Schedule Source Configuration
    # Options: "MOCK", "READING_COUNCIL"
    SCHEDULE_SOURCE_TYPE: str = os.getenv(
        "SCHEDULE_SOURCE_TYPE", "READING_COUNCIL"
    ).upper()
    SCHEDULE_API_BASE_URL: str = os.getenv(
        "SCHEDULE_API_BASE_URL", "https://api.reading.gov.uk/api/collections"
    )
    SCHEDULE_PROPERTY_ID: str = os.getenv("SCHEDULE_PROPERTY_ID", "310022781")
    SCHEDULE_API_TIMEOUT_SECONDS: float = float(
        os.getenv("SCHEDULE_API_TIMEOUT_SECONDS", "5")
    )
    SCHEDULE_CACHE_TTL_HOURS: float = float(os.getenv("SCHEDULE_CACHE_TTL_HOURS", "12"))

    # Display device push
    DEVICE_ENDPOINT: str | None = os.getenv("DEVICE_ENDPOINT")
    DEVICE_TOKEN: str | None = os.getenv("DEVICE_TOKEN")
    DEVICE_TIMEOUT_SECONDS: float = float(os.getenv("DEVICE_TIMEOUT_SECONDS", "10"))
    DEVICE_MAX_ATTEMPTS: int = int(os.getenv("DEVICE_MAX_ATTEMPTS", "3"))
    DEVICE_INITIAL_RETRY_DELAY_SECONDS: float = float(
        os.getenv("DEVICE_INITIAL_RETRY_DELAY_SECONDS", "1")
    )

    # Payload shape sent to the device
    # Options: "SPLIT" (collection line in its own field), "COMBINED" (prepended to body)
    DISPLAY_LAYOUT: str = os.getenv("DISPLAY_LAYOUT", "SPLIT").upper()
    DEVICE_TITLE_FIELD: str = os.getenv("DEVICE_TITLE_FIELD", "title")
    DEVICE_MESSAGE_FIELD: str = os.getenv("DEVICE_MESSAGE_FIELD", "message")
    DEVICE_SIGNATURE_FIELD: str = os.getenv("DEVICE_SIGNATURE_FIELD", "signature")

    # "Today" and "tomorrow" are evaluated in this timezone
    DISPLAY_TIMEZONE: str = os.getenv("DISPLAY_TIMEZONE", "Europe/London")


settings = Settings()

# Character budgets of the display. The inbound text limit is derived from the
# body budget so the two never disagree.
MAX_HEADER_LENGTH = 25
MAX_LINE_LENGTH = int(os.getenv("DISPLAY_LINE_WIDTH", "27"))
MAX_BODY_LINES = 3
MAX_EVENT_TEXT_LENGTH = MAX_BODY_LINES * MAX_LINE_LENGTH

# Friendly names for council service labels (unmapped labels pass through)
SERVICE_FRIENDLY_NAMES = {
    "Domestic Waste Collection Service": "Grey bin",
    "Recycling Collection Service": "Red bin",
    "Food Waste Collection Service": "Food waste",
}
