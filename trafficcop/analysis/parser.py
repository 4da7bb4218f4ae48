"""
Traffic Cop Capture Parser

Parses capture text (HAR JSON) into CaptureDocument models, validates
structure, and provides accessors for headers, URLs and content types.
"""

import json
import re
from datetime import datetime, timezone
from urllib.parse import SplitResult, urlsplit

import structlog

from trafficcop.analysis.errors import (
    InvalidDocumentError,
    MalformedInputError,
    MalformedUrlError,
)
from trafficcop.analysis.models import CaptureDocument, Entry, NameValuePair

logger = structlog.get_logger(__name__)

_HOST_PATTERN = re.compile(r"^[^\s\x00-\x1f\x7f\"<>\\^`{|}]+$")
"""Rejects host names carrying whitespace or URL-unsafe characters."""


# =============================================================================
# Parsing and Serialization
# =============================================================================


def parse(text: str) -> CaptureDocument:
    """
    Parse capture text into a CaptureDocument.

    Only the container structure is checked here; use `validate()` for
    per-entry checks.

    Args:
        text: Serialized capture (HAR JSON)

    Returns:
        CaptureDocument with entries in their original order

    Raises:
        MalformedInputError: If text is not well-formed JSON
        InvalidDocumentError: If the log container or entries array is missing
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedInputError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidDocumentError("root must be an object", field="root")

    log = data.get("log")
    if not isinstance(log, dict):
        raise InvalidDocumentError("missing log object", field="log")

    entries = log.get("entries")
    if not isinstance(entries, list):
        raise InvalidDocumentError("log.entries must be an array", field="log.entries")

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise InvalidDocumentError("entry must be an object", index=index, field="entry")

    document = CaptureDocument.from_dict(data)
    logger.debug("capture_parsed", entries=len(document.entries), version=document.version)
    return document


def stringify(document: CaptureDocument, pretty: bool = False) -> str:
    """Serialize a document to HAR JSON, compact or indented."""
    if pretty:
        return json.dumps(document.to_dict(), indent=2, ensure_ascii=False)
    return json.dumps(document.to_dict(), separators=(",", ":"), ensure_ascii=False)


def is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate(document: CaptureDocument) -> None:
    """
    Validate document structure thoroughly.

    Raises:
        InvalidDocumentError: On the first defect found, with the entry
            index and field name when the defect is inside an entry
    """
    if not document.version:
        raise InvalidDocumentError("missing log.version", field="log.version")

    creator = document.creator
    if creator is None or not creator.name or not creator.version:
        raise InvalidDocumentError("missing or incomplete log.creator", field="log.creator")

    for index, entry in enumerate(document.entries):
        if entry.request is None:
            raise InvalidDocumentError("missing request object", index=index, field="request")

        if entry.response is None:
            raise InvalidDocumentError("missing response object", index=index, field="response")

        if not entry.request.method:
            raise InvalidDocumentError("missing request.method", index=index, field="request.method")

        if not entry.request.url:
            raise InvalidDocumentError("missing request.url", index=index, field="request.url")

        status = entry.response.status
        if not isinstance(status, int) or isinstance(status, bool):
            raise InvalidDocumentError(
                "response.status must be an integer", index=index, field="response.status"
            )

        if not entry.started_at:
            raise InvalidDocumentError("missing startedDateTime", index=index, field="startedDateTime")

        if not is_number(entry.duration_ms):
            raise InvalidDocumentError("time must be a number", index=index, field="time")

        if entry.duration_ms < 0:
            raise InvalidDocumentError("time must not be negative", index=index, field="time")

    logger.debug("capture_validated", entries=len(document.entries))


# =============================================================================
# Header Helpers
# =============================================================================


def get_header(headers: list[NameValuePair], name: str) -> str | None:
    """Get the first header value matching `name` (case-insensitive)."""
    wanted = name.lower()
    for header in headers:
        if header.name.lower() == wanted:
            return header.value
    return None


def get_headers(headers: list[NameValuePair], name: str) -> list[str]:
    """Get every value for a repeated header such as Set-Cookie."""
    wanted = name.lower()
    return [h.value for h in headers if h.name.lower() == wanted]


def has_header(headers: list[NameValuePair], name: str) -> bool:
    """Check whether a header is present (case-insensitive)."""
    wanted = name.lower()
    return any(h.name.lower() == wanted for h in headers)


# =============================================================================
# URL and Content Helpers
# =============================================================================


def get_url(entry: Entry) -> SplitResult:
    """
    Split the request URL into components.

    Raises:
        MalformedUrlError: If the URL is not a valid absolute URL
    """
    url = entry.request.url if entry.request is not None else ""
    try:
        parts = urlsplit(url)
        # Accessing the port validates it
        parts.port
    except (TypeError, ValueError) as e:
        raise MalformedUrlError(str(url)) from e

    if not parts.scheme or not parts.hostname or not _HOST_PATTERN.match(parts.hostname):
        raise MalformedUrlError(url)

    return parts


def get_request_content_type(entry: Entry) -> str | None:
    """Content-Type header of the request, if sent."""
    if entry.request is None:
        return None
    return get_header(entry.request.headers, "content-type")


def get_response_content_type(entry: Entry) -> str | None:
    """Response mime type from the content descriptor, else the Content-Type header."""
    if entry.response is None:
        return None
    return entry.response.content.mime_type or get_header(entry.response.headers, "content-type")


def is_json_response(entry: Entry) -> bool:
    """Check whether the response content type mentions JSON."""
    content_type = get_response_content_type(entry)
    return bool(content_type) and "json" in content_type.lower()


def get_query_params(entry: Entry) -> dict[str, str]:
    """All query parameters as a mapping; a repeated name keeps its last value."""
    if entry.request is None:
        return {}
    return {q.name: q.value for q in entry.request.query_string}


def get_query_param(entry: Entry, name: str) -> str | None:
    return get_query_params(entry).get(name)


def get_cookies(entry: Entry) -> dict[str, str]:
    """Request cookies as a mapping; a repeated name keeps its last value."""
    if entry.request is None:
        return {}
    return {c.name: c.value for c in entry.request.cookies}


def get_cookie(entry: Entry, name: str) -> str | None:
    return get_cookies(entry).get(name)


# =============================================================================
# Timestamps and Formatting
# =============================================================================


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp.

    Naive timestamps are taken as UTC so that all results compare.
    Returns None for anything unparsable.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_entry(entry: Entry) -> str:
    """One-line summary: `GET https://x/y - 200 (123ms, 456 bytes)`."""
    method = entry.request.method if entry.request is not None else "?"
    url = entry.request.url if entry.request is not None else "?"
    status = entry.response.status if entry.response is not None else "?"
    duration = round(entry.duration_ms) if is_number(entry.duration_ms) else "?"
    return f"{method} {url} - {status} ({duration}ms, {entry.response_size} bytes)"
