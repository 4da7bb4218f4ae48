"""
Traffic Cop Test Configuration

Pytest fixtures and configuration for all tests.
"""

import json
from pathlib import Path
from typing import Any, Callable

import pytest
import structlog

from trafficcop.analysis.models import (
    CaptureDocument,
    Content,
    Cookie,
    Creator,
    Entry,
    NameValuePair,
    PostData,
    Request,
    Response,
)


def build_entry(
    url: str = "https://api.example.com/users",
    method: str = "GET",
    status: int = 200,
    duration_ms: float = 100,
    size: int = 512,
    mime_type: str = "application/json",
    started_at: str = "2024-03-01T10:00:00.000Z",
    request_headers: dict[str, str] | None = None,
    response_headers: dict[str, str] | None = None,
    cookies: dict[str, str] | None = None,
    body: str | None = None,
    response_text: str | None = None,
    body_size: int = -1,
    status_text: str = "",
) -> Entry:
    """Build a complete entry with sensible defaults."""
    return Entry(
        started_at=started_at,
        duration_ms=duration_ms,
        request=Request(
            method=method,
            url=url,
            http_version="HTTP/1.1",
            headers=[NameValuePair(k, v) for k, v in (request_headers or {}).items()],
            cookies=[Cookie(name=k, value=v) for k, v in (cookies or {}).items()],
            post_data=PostData(mime_type="application/json", text=body) if body is not None else None,
            body_size=body_size,
        ),
        response=Response(
            status=status,
            status_text=status_text,
            http_version="HTTP/1.1",
            headers=[NameValuePair(k, v) for k, v in (response_headers or {}).items()],
            content=Content(size=size, mime_type=mime_type, text=response_text),
        ),
    )


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo global structlog configuration made by a test (e.g. the CLI binding
    its logger to pytest's per-test captured stderr, which is closed afterwards)."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_entry() -> Callable[..., Entry]:
    """Factory for capture entries."""
    return build_entry


@pytest.fixture
def sample_capture_dict() -> dict[str, Any]:
    """A small capture with one GET and one failed POST."""
    return {
        "log": {
            "version": "1.2",
            "creator": {"name": "Proxy", "version": "2.1"},
            "pages": [
                {
                    "startedDateTime": "2024-03-01T10:00:00.000Z",
                    "id": "page_1",
                    "title": "Dashboard",
                    "pageTimings": {"onLoad": 850},
                }
            ],
            "entries": [
                {
                    "pageref": "page_1",
                    "startedDateTime": "2024-03-01T10:00:00.000Z",
                    "time": 120.5,
                    "request": {
                        "method": "GET",
                        "url": "https://api.example.com/users?page=2&sort=name",
                        "httpVersion": "HTTP/2",
                        "cookies": [{"name": "session", "value": "abc"}],
                        "headers": [
                            {"name": "Accept", "value": "application/json"},
                            {"name": "traceparent", "value": "00-abc123def456-0102030405060708-01"},
                        ],
                        "queryString": [
                            {"name": "page", "value": "2"},
                            {"name": "sort", "value": "name"},
                        ],
                        "headersSize": 210,
                        "bodySize": 0,
                    },
                    "response": {
                        "status": 200,
                        "statusText": "OK",
                        "httpVersion": "HTTP/2",
                        "cookies": [],
                        "headers": [
                            {"name": "Content-Type", "value": "application/json; charset=utf-8"},
                            {"name": "Set-Cookie", "value": "a=1"},
                            {"name": "Set-Cookie", "value": "b=2"},
                        ],
                        "content": {"size": 2048, "mimeType": "application/json", "text": "[]"},
                        "redirectURL": "",
                        "headersSize": 180,
                        "bodySize": 2048,
                    },
                    "cache": {},
                    "timings": {"blocked": -1, "dns": -1, "connect": -1, "send": 1, "wait": 100, "receive": 19.5},
                    "_resourceType": "xhr",
                },
                {
                    "startedDateTime": "2024-03-01T10:00:02.000Z",
                    "time": 1500,
                    "request": {
                        "method": "post",
                        "url": "https://api.example.com/orders",
                        "httpVersion": "HTTP/2",
                        "cookies": [],
                        "headers": [{"name": "Content-Type", "value": "application/json"}],
                        "queryString": [],
                        "postData": {"mimeType": "application/json", "text": "{\"id\": 1}"},
                        "headersSize": -1,
                        "bodySize": 9,
                    },
                    "response": {
                        "status": 500,
                        "statusText": "Internal Server Error",
                        "httpVersion": "HTTP/2",
                        "cookies": [],
                        "headers": [],
                        "content": {"size": -1, "mimeType": "text/html"},
                        "redirectURL": "",
                        "headersSize": -1,
                        "bodySize": -1,
                    },
                    "cache": {},
                    "timings": {"send": 0, "wait": 1500, "receive": 0},
                },
            ],
        }
    }


@pytest.fixture
def sample_capture_text(sample_capture_dict: dict[str, Any]) -> str:
    return json.dumps(sample_capture_dict)


@pytest.fixture
def sample_capture_file(tmp_path: Path, sample_capture_text: str) -> Path:
    """Write the sample capture to a temporary .har file."""
    path = tmp_path / "capture.har"
    path.write_text(sample_capture_text, encoding="utf-8")
    return path


@pytest.fixture
def empty_document() -> CaptureDocument:
    return CaptureDocument(creator=Creator(name="Traffic Cop", version="0.7.0"))
