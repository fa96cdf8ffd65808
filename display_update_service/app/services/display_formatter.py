# display_update_service/app/services/display_formatter.py
"""Renders reminder events and tomorrow's bin collections for the one-line display.

The display shows a header (today's date) and a body of MAX_BODY_LINES lines of at
most MAX_LINE_LENGTH characters. The bin reminder either travels in its own
signature field (SPLIT) or is prepended to the body (COMBINED).

Nothing in here raises or reads the clock: callers pass `today`.
"""
import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..config import (
    MAX_BODY_LINES,
    MAX_HEADER_LENGTH,
    MAX_LINE_LENGTH,
    SERVICE_FRIENDLY_NAMES,
)
from ..models import (
    LAYOUT_COMBINED,
    LAYOUT_SPLIT,
    CollectionEntry,
    DisplayPayload,
    ReminderEvent,
)

logger = logging.getLogger(__name__)


def format_header(today: datetime.date) -> str:
    return today.strftime("%Y/%m/%d")[:MAX_HEADER_LENGTH]


def format_collection_line(collections: Optional[Iterable[CollectionEntry]]) -> str:
    """'collect Red bin, Food waste tmr', or '' when nothing is collected tomorrow."""
    names: List[str] = []
    for entry in collections or []:
        service = getattr(entry, "service_name", None)
        if not service:
            continue
        name = SERVICE_FRIENDLY_NAMES.get(service, service)
        if name not in names:
            names.append(name)
    if not names:
        return ""
    return f"collect {', '.join(names)} tmr"[:MAX_LINE_LENGTH]


def format_event_lines(events: Optional[Iterable[ReminderEvent]]) -> List[str]:
    """Exactly MAX_BODY_LINES lines: event text lines in store order, hard-truncated, padded."""
    lines: List[str] = []
    for event in events or []:
        text = getattr(event, "text", None) or ""
        # Only "\n" breaks a line; other control characters stay in the text
        for line in text.replace("\r\n", "\n").split("\n"):
            if len(lines) >= MAX_BODY_LINES:
                break
            lines.append(line[:MAX_LINE_LENGTH])
        if len(lines) >= MAX_BODY_LINES:
            break
    while len(lines) < MAX_BODY_LINES:
        lines.append("")
    return lines


def validate_payload(payload: DisplayPayload) -> List[str]:
    """Budget violations of a payload; empty when the device will accept it."""
    errors: List[str] = []
    if len(payload.header_text) > MAX_HEADER_LENGTH:
        errors.append(f"Header exceeds {MAX_HEADER_LENGTH} characters")
    if len(payload.signature_text) > MAX_LINE_LENGTH:
        errors.append(f"Signature exceeds {MAX_LINE_LENGTH} characters")

    body_lines = payload.body_text.split("\n")
    expected_lines = MAX_BODY_LINES
    if payload.layout == LAYOUT_COMBINED and len(body_lines) == MAX_BODY_LINES + 1:
        expected_lines = MAX_BODY_LINES + 1
    if len(body_lines) != expected_lines:
        errors.append(f"Body must have exactly {expected_lines} lines")
    for index, line in enumerate(body_lines, start=1):
        if len(line) > MAX_LINE_LENGTH:
            errors.append(f"Body line {index} exceeds {MAX_LINE_LENGTH} characters")
    return errors


def _clamp(payload: DisplayPayload) -> DisplayPayload:
    return payload.model_copy(
        update={
            "header_text": payload.header_text[:MAX_HEADER_LENGTH],
            "signature_text": payload.signature_text[:MAX_LINE_LENGTH],
            "body_text": "\n".join(
                line[:MAX_LINE_LENGTH] for line in payload.body_text.split("\n")
            ),
        }
    )


def render(
    events: Optional[List[ReminderEvent]],
    tomorrow_collections: Optional[List[CollectionEntry]],
    today: datetime.date,
    layout: str = LAYOUT_SPLIT,
) -> DisplayPayload:
    header = format_header(today)
    collection_line = format_collection_line(tomorrow_collections)
    event_lines = format_event_lines(events)

    if layout == LAYOUT_COMBINED:
        body_lines = ([collection_line] if collection_line else []) + event_lines
        payload = DisplayPayload(
            header_text=header, body_text="\n".join(body_lines), layout=LAYOUT_COMBINED
        )
    else:
        payload = DisplayPayload(
            header_text=header,
            body_text="\n".join(event_lines),
            signature_text=collection_line,
            layout=LAYOUT_SPLIT,
        )

    errors = validate_payload(payload)
    if errors:
        logger.warning(f"DisplayFormatter: Clamping payload, violations: {errors}")
        payload = _clamp(payload)

    logger.debug(
        f"DisplayFormatter: header='{payload.header_text}' "
        f"body='{payload.body_text!r}' signature='{payload.signature_text}'"
    )
    return payload


def to_device_body(payload: DisplayPayload, field_names: Dict[str, str]) -> Dict[str, Any]:
    """JSON body for the device, using the deployment's field names."""
    body: Dict[str, Any] = {
        "refreshNow": True,
        field_names["title"]: payload.header_text,
        field_names["message"]: payload.body_text,
    }
    if payload.layout == LAYOUT_SPLIT:
        body[field_names["signature"]] = payload.signature_text
    return body
