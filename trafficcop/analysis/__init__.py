"""
Traffic Cop Analysis Module

Capture parsing, search, statistics and live buffering. This package has
no dependency on configuration, console output or the CLI.
"""

from trafficcop.analysis.errors import (
    CaptureError,
    InvalidDocumentError,
    MalformedInputError,
    MalformedUrlError,
)
from trafficcop.analysis.live import LiveCaptureBuffer, LiveSummary, LiveTrackerStats
from trafficcop.analysis.models import (
    CaptureDocument,
    Content,
    Cookie,
    Creator,
    Entry,
    NameValuePair,
    Page,
    PostData,
    PostParam,
    Request,
    Response,
    Timings,
    create_empty,
)
from trafficcop.analysis.parser import (
    format_entry,
    get_header,
    get_headers,
    get_url,
    has_header,
    is_json_response,
    parse,
    stringify,
    validate,
)
from trafficcop.analysis.repair import RepairResult, repair_and_parse, repair_capture_text
from trafficcop.analysis.search import SearchCriteria, SearchResult, intersect, search, union
from trafficcop.analysis.statistics import CaptureSummary, summarize

__all__ = [
    "CaptureError",
    "MalformedInputError",
    "InvalidDocumentError",
    "MalformedUrlError",
    "CaptureDocument",
    "Entry",
    "Request",
    "Response",
    "Content",
    "PostData",
    "PostParam",
    "NameValuePair",
    "Cookie",
    "Creator",
    "Page",
    "Timings",
    "create_empty",
    "parse",
    "validate",
    "stringify",
    "get_header",
    "get_headers",
    "has_header",
    "get_url",
    "is_json_response",
    "format_entry",
    "RepairResult",
    "repair_capture_text",
    "repair_and_parse",
    "SearchCriteria",
    "SearchResult",
    "search",
    "union",
    "intersect",
    "CaptureSummary",
    "summarize",
    "LiveCaptureBuffer",
    "LiveTrackerStats",
    "LiveSummary",
]
