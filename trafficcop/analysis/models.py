"""
Traffic Cop Capture Models

Passive data structures for capture documents (HTTP Archive 1.2 layout).
Each record converts to and from its serialized HAR mapping; no other behavior.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Constants
# =============================================================================

HAR_VERSION = "1.2"

DEFAULT_CREATOR_NAME = "Traffic Cop"
DEFAULT_CREATOR_VERSION = "0.7.0"

UNKNOWN_SIZE = -1
"""HAR convention for a byte size that was not measured."""


# =============================================================================
# Helpers
# =============================================================================


def _put(target: dict[str, Any], key: str, value: Any) -> None:
    """Set an optional key only when a value is present."""
    if value is not None:
        target[key] = value


def _list_of(raw: Any, factory: Any) -> list:
    """Build records from a raw sequence, skipping anything that isn't a mapping."""
    if not isinstance(raw, list):
        return []
    return [factory(item) for item in raw if isinstance(item, dict)]


def _mapping(raw: Any) -> dict[str, Any]:
    return dict(raw) if isinstance(raw, dict) else {}


def _extra(data: dict[str, Any], known: set[str]) -> dict[str, Any]:
    """Keys outside the HAR layout, kept for a lossless round trip."""
    return {k: v for k, v in data.items() if k not in known}


# =============================================================================
# Name/Value Records
# =============================================================================


@dataclass(slots=True)
class NameValuePair:
    """
    A header or query parameter.

    Names and values are kept exactly as captured; no trimming.
    """

    name: str
    value: str
    comment: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NameValuePair":
        return cls(
            name=data.get("name", ""),
            value=data.get("value", ""),
            comment=data.get("comment"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "value": self.value}
        _put(result, "comment", self.comment)
        return result


@dataclass(slots=True)
class Cookie(NameValuePair):
    """A request or response cookie."""

    path: str | None = None
    domain: str | None = None
    expires: str | None = None
    http_only: bool | None = None
    secure: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cookie":
        return cls(
            name=data.get("name", ""),
            value=data.get("value", ""),
            comment=data.get("comment"),
            path=data.get("path"),
            domain=data.get("domain"),
            expires=data.get("expires"),
            http_only=data.get("httpOnly"),
            secure=data.get("secure"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "value": self.value}
        _put(result, "path", self.path)
        _put(result, "domain", self.domain)
        _put(result, "expires", self.expires)
        _put(result, "httpOnly", self.http_only)
        _put(result, "secure", self.secure)
        _put(result, "comment", self.comment)
        return result


@dataclass(slots=True)
class PostParam:
    """A parsed form parameter of a request body."""

    name: str
    value: str | None = None
    file_name: str | None = None
    content_type: str | None = None
    comment: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PostParam":
        return cls(
            name=data.get("name", ""),
            value=data.get("value"),
            file_name=data.get("fileName"),
            content_type=data.get("contentType"),
            comment=data.get("comment"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name}
        _put(result, "value", self.value)
        _put(result, "fileName", self.file_name)
        _put(result, "contentType", self.content_type)
        _put(result, "comment", self.comment)
        return result


# =============================================================================
# Request / Response
# =============================================================================

_POST_DATA_KEYS = {"mimeType", "params", "text", "comment"}

_CONTENT_KEYS = {"size", "compression", "mimeType", "text", "encoding", "comment"}

_REQUEST_KEYS = {
    "method",
    "url",
    "httpVersion",
    "cookies",
    "headers",
    "queryString",
    "postData",
    "headersSize",
    "bodySize",
    "comment",
}

_RESPONSE_KEYS = {
    "status",
    "statusText",
    "httpVersion",
    "cookies",
    "headers",
    "content",
    "redirectURL",
    "headersSize",
    "bodySize",
    "comment",
}


@dataclass
class PostData:
    """Request body descriptor."""

    mime_type: str = ""
    text: str | None = None
    params: list[PostParam] | None = None
    comment: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PostData":
        params = data.get("params")
        return cls(
            mime_type=data.get("mimeType", ""),
            text=data.get("text"),
            params=_list_of(params, PostParam.from_dict) if params is not None else None,
            comment=data.get("comment"),
            extra=_extra(data, _POST_DATA_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"mimeType": self.mime_type}
        if self.params is not None:
            result["params"] = [p.to_dict() for p in self.params]
        _put(result, "text", self.text)
        _put(result, "comment", self.comment)
        result.update(self.extra)
        return result


@dataclass
class Content:
    """Response body descriptor."""

    size: int = 0
    """Decoded body size in bytes (-1 when unknown)."""

    mime_type: str = ""
    compression: int | None = None
    """Bytes saved by compression, if known."""

    text: str | None = None
    encoding: str | None = None
    comment: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Content":
        return cls(
            size=data.get("size", 0),
            mime_type=data.get("mimeType", ""),
            compression=data.get("compression"),
            text=data.get("text"),
            encoding=data.get("encoding"),
            comment=data.get("comment"),
            extra=_extra(data, _CONTENT_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"size": self.size}
        _put(result, "compression", self.compression)
        result["mimeType"] = self.mime_type
        _put(result, "text", self.text)
        _put(result, "encoding", self.encoding)
        _put(result, "comment", self.comment)
        result.update(self.extra)
        return result


@dataclass
class Request:
    """
    Captured HTTP request.

    Method case is preserved; comparisons elsewhere are case-insensitive.
    Headers keep their original order and may repeat.
    """

    method: str = ""
    url: str = ""
    http_version: str = ""
    headers: list[NameValuePair] = field(default_factory=list)
    query_string: list[NameValuePair] = field(default_factory=list)
    cookies: list[Cookie] = field(default_factory=list)
    post_data: PostData | None = None
    headers_size: int = UNKNOWN_SIZE
    body_size: int = UNKNOWN_SIZE
    comment: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Request":
        post_data = data.get("postData")
        return cls(
            method=data.get("method", ""),
            url=data.get("url", ""),
            http_version=data.get("httpVersion", ""),
            headers=_list_of(data.get("headers"), NameValuePair.from_dict),
            query_string=_list_of(data.get("queryString"), NameValuePair.from_dict),
            cookies=_list_of(data.get("cookies"), Cookie.from_dict),
            post_data=PostData.from_dict(post_data) if isinstance(post_data, dict) else None,
            headers_size=data.get("headersSize", UNKNOWN_SIZE),
            body_size=data.get("bodySize", UNKNOWN_SIZE),
            comment=data.get("comment"),
            extra=_extra(data, _REQUEST_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "method": self.method,
            "url": self.url,
            "httpVersion": self.http_version,
            "cookies": [c.to_dict() for c in self.cookies],
            "headers": [h.to_dict() for h in self.headers],
            "queryString": [q.to_dict() for q in self.query_string],
        }
        if self.post_data is not None:
            result["postData"] = self.post_data.to_dict()
        result["headersSize"] = self.headers_size
        result["bodySize"] = self.body_size
        _put(result, "comment", self.comment)
        result.update(self.extra)
        return result


@dataclass
class Response:
    """Captured HTTP response."""

    status: int | None = None
    status_text: str = ""
    http_version: str = ""
    headers: list[NameValuePair] = field(default_factory=list)
    cookies: list[Cookie] = field(default_factory=list)
    content: Content = field(default_factory=Content)
    redirect_url: str = ""
    headers_size: int = UNKNOWN_SIZE
    body_size: int = UNKNOWN_SIZE
    comment: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Response":
        content = data.get("content")
        return cls(
            status=data.get("status"),
            status_text=data.get("statusText", ""),
            http_version=data.get("httpVersion", ""),
            headers=_list_of(data.get("headers"), NameValuePair.from_dict),
            cookies=_list_of(data.get("cookies"), Cookie.from_dict),
            content=Content.from_dict(content) if isinstance(content, dict) else Content(),
            redirect_url=data.get("redirectURL", ""),
            headers_size=data.get("headersSize", UNKNOWN_SIZE),
            body_size=data.get("bodySize", UNKNOWN_SIZE),
            comment=data.get("comment"),
            extra=_extra(data, _RESPONSE_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "status": self.status,
            "statusText": self.status_text,
            "httpVersion": self.http_version,
            "cookies": [c.to_dict() for c in self.cookies],
            "headers": [h.to_dict() for h in self.headers],
            "content": self.content.to_dict(),
            "redirectURL": self.redirect_url,
            "headersSize": self.headers_size,
            "bodySize": self.body_size,
        }
        _put(result, "comment", self.comment)
        result.update(self.extra)
        return result


# =============================================================================
# Timings
# =============================================================================

_TIMINGS_KEYS = {"blocked", "dns", "connect", "send", "wait", "receive", "ssl", "comment"}


@dataclass
class Timings:
    """Phase durations in milliseconds (-1 marks a phase that does not apply)."""

    send: float = 0
    wait: float = 0
    receive: float = 0
    blocked: float | None = None
    dns: float | None = None
    connect: float | None = None
    ssl: float | None = None
    comment: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Timings":
        return cls(
            send=data.get("send", 0),
            wait=data.get("wait", 0),
            receive=data.get("receive", 0),
            blocked=data.get("blocked"),
            dns=data.get("dns"),
            connect=data.get("connect"),
            ssl=data.get("ssl"),
            comment=data.get("comment"),
            extra=_extra(data, _TIMINGS_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        _put(result, "blocked", self.blocked)
        _put(result, "dns", self.dns)
        _put(result, "connect", self.connect)
        result["send"] = self.send
        result["wait"] = self.wait
        result["receive"] = self.receive
        _put(result, "ssl", self.ssl)
        _put(result, "comment", self.comment)
        result.update(self.extra)
        return result


# =============================================================================
# Entry
# =============================================================================

_ENTRY_KEYS = {
    "pageref",
    "startedDateTime",
    "time",
    "request",
    "response",
    "cache",
    "timings",
    "serverIPAddress",
    "connection",
    "comment",
}


@dataclass
class Entry:
    """
    One captured request/response exchange.

    `request` and `response` are None only in loosely-formed documents;
    `validate()` rejects those.
    """

    started_at: str = ""
    """ISO-8601 timestamp of when the exchange began."""

    duration_ms: float = 0
    """Total elapsed time of the exchange."""

    request: Request | None = None
    response: Response | None = None

    cache: dict[str, Any] = field(default_factory=dict)
    """Opaque cache state, carried through untouched."""

    timings: Timings = field(default_factory=Timings)
    pageref: str | None = None
    server_ip: str | None = None
    connection: str | None = None
    comment: str | None = None

    extra: dict[str, Any] = field(default_factory=dict)
    """Custom (usually underscore-prefixed) fields from the capture tool."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entry":
        request = data.get("request")
        response = data.get("response")
        timings = data.get("timings")
        return cls(
            started_at=data.get("startedDateTime", ""),
            duration_ms=data.get("time"),
            request=Request.from_dict(request) if isinstance(request, dict) else None,
            response=Response.from_dict(response) if isinstance(response, dict) else None,
            cache=_mapping(data.get("cache")),
            timings=Timings.from_dict(timings) if isinstance(timings, dict) else Timings(),
            pageref=data.get("pageref"),
            server_ip=data.get("serverIPAddress"),
            connection=data.get("connection"),
            comment=data.get("comment"),
            extra=_extra(data, _ENTRY_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        _put(result, "pageref", self.pageref)
        result["startedDateTime"] = self.started_at
        result["time"] = self.duration_ms
        if self.request is not None:
            result["request"] = self.request.to_dict()
        if self.response is not None:
            result["response"] = self.response.to_dict()
        result["cache"] = dict(self.cache)
        result["timings"] = self.timings.to_dict()
        _put(result, "serverIPAddress", self.server_ip)
        _put(result, "connection", self.connection)
        _put(result, "comment", self.comment)
        result.update(self.extra)
        return result

    @property
    def response_size(self) -> int:
        """Response content size in bytes as recorded (may be -1)."""
        if self.response is None:
            return 0
        return self.response.content.size


# =============================================================================
# Document
# =============================================================================


@dataclass(slots=True)
class Creator:
    """Name and version of the tool (or browser) that produced a capture."""

    name: str = ""
    version: str = ""
    comment: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Creator":
        return cls(
            name=data.get("name", ""),
            version=data.get("version", ""),
            comment=data.get("comment"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "version": self.version}
        _put(result, "comment", self.comment)
        return result


@dataclass
class Page:
    """A logical page that groups entries."""

    id: str
    started_at: str = ""
    title: str = ""
    page_timings: dict[str, Any] = field(default_factory=dict)
    comment: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Page":
        return cls(
            id=data.get("id", ""),
            started_at=data.get("startedDateTime", ""),
            title=data.get("title", ""),
            page_timings=_mapping(data.get("pageTimings")),
            comment=data.get("comment"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "startedDateTime": self.started_at,
            "id": self.id,
            "title": self.title,
            "pageTimings": dict(self.page_timings),
        }
        _put(result, "comment", self.comment)
        return result


_LOG_KEYS = {"version", "creator", "browser", "pages", "entries", "comment"}


@dataclass
class CaptureDocument:
    """
    Root of a capture: metadata plus entries in capture order.

    Entry order is chronological capture order and is never re-sorted.
    Serializes as `{"log": {...}}`.
    """

    version: str = HAR_VERSION
    creator: Creator | None = None
    browser: Creator | None = None
    pages: list[Page] | None = None
    entries: list[Entry] = field(default_factory=list)
    comment: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CaptureDocument":
        """Build from a `{"log": {...}}` mapping whose entries are mappings."""
        log = data["log"]
        creator = log.get("creator")
        browser = log.get("browser")
        pages = log.get("pages")
        return cls(
            version=log.get("version", ""),
            creator=Creator.from_dict(creator) if isinstance(creator, dict) else None,
            browser=Creator.from_dict(browser) if isinstance(browser, dict) else None,
            pages=_list_of(pages, Page.from_dict) if pages is not None else None,
            entries=[Entry.from_dict(e) for e in log["entries"]],
            comment=log.get("comment"),
            extra=_extra(log, _LOG_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        log: dict[str, Any] = {"version": self.version}
        if self.creator is not None:
            log["creator"] = self.creator.to_dict()
        if self.browser is not None:
            log["browser"] = self.browser.to_dict()
        if self.pages is not None:
            log["pages"] = [p.to_dict() for p in self.pages]
        log["entries"] = [e.to_dict() for e in self.entries]
        _put(log, "comment", self.comment)
        log.update(self.extra)
        return {"log": log}


def create_empty(
    creator_name: str = DEFAULT_CREATOR_NAME,
    creator_version: str = DEFAULT_CREATOR_VERSION,
) -> CaptureDocument:
    """Create a minimal valid document with no entries."""
    return CaptureDocument(
        version=HAR_VERSION,
        creator=Creator(name=creator_name, version=creator_version),
        entries=[],
    )
