"""
Traffic Cop Capture Search

Multi-criteria filtering of capture entries. Every criterion that is set
must hold (AND); each match reports why it matched.

A criterion that cannot be evaluated (bad regex, unparsable date) never
matches. It does not raise, so one bad criterion cannot abort a search.
"""

import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Callable

import structlog

from trafficcop.analysis.models import Entry, NameValuePair
from trafficcop.analysis.parser import get_header, get_response_content_type, parse_timestamp

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_SLOW_THRESHOLD_MS = 1000
DEFAULT_LARGE_THRESHOLD_BYTES = 1024 * 1024

FAILURE_STATUS_RANGE = (400, 599)
SUCCESS_STATUS_RANGE = (200, 299)
REDIRECT_STATUS_RANGE = (300, 399)

TRACEPARENT_HEADER = "traceparent"

# camelCase names used by tool callers
_CAMEL_CASE_KEYS = {
    "urlRegex": "url_regex",
    "statusCode": "status_code",
    "statusRange": "status_range",
    "minDuration": "min_duration",
    "maxDuration": "max_duration",
    "minSize": "min_size",
    "maxSize": "max_size",
    "responseHeaders": "response_headers",
    "hasRequestBody": "has_request_body",
    "hasResponseBody": "has_response_body",
    "contentType": "content_type",
    "afterDate": "after_date",
    "beforeDate": "before_date",
}


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class SearchCriteria:
    """
    Conditions an entry must satisfy. Unset (None) fields are ignored.

    An empty criteria set matches nothing.
    """

    url: str | None = None
    """Case-insensitive substring of the request URL."""

    url_regex: str | None = None
    """Case-insensitive regular expression searched in the request URL."""

    method: str | None = None
    status_code: int | None = None
    status_range: tuple[int, int] | None = None
    """Inclusive (min, max) status range."""

    min_duration: float | None = None
    max_duration: float | None = None
    min_size: int | None = None
    max_size: int | None = None

    headers: dict[str, str] | None = None
    """Request header name -> case-insensitive value substring."""

    response_headers: dict[str, str] | None = None
    has_request_body: bool | None = None
    has_response_body: bool | None = None
    content_type: str | None = None

    after_date: str | None = None
    """ISO-8601; entries starting at or after this instant."""

    before_date: str | None = None
    """ISO-8601; entries starting at or before this instant."""

    traceparent: str | None = None
    """W3C trace-id (or fragment) carried in the traceparent request header."""

    def is_empty(self) -> bool:
        """True when no criterion is set; an empty header map counts as unset."""
        return all(getattr(self, f.name) in (None, {}) for f in fields(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchCriteria":
        """
        Build criteria from a mapping with snake_case or camelCase keys.

        Raises:
            ValueError: On an unknown key
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown search criterion: {key}")
            if name == "status_range" and value is not None:
                low, high = value
                value = (int(low), int(high))
            kwargs[name] = value
        return cls(**kwargs)


@dataclass
class SearchResult:
    """An entry that satisfied every criterion."""

    entry: Entry
    index: int
    """Position of the entry in the searched list."""

    match_reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "entry": self.entry.to_dict(),
            "index": self.index,
            "match_reasons": list(self.match_reasons),
        }


# =============================================================================
# Criterion Checks
# =============================================================================
#
# Each check returns a reason string when the entry satisfies the criterion
# and None when it does not.


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning("invalid_url_regex", pattern=pattern, error=str(e))
        return None


def _check_headers(
    actual: list[NameValuePair], expected: dict[str, str], label: str
) -> str | None:
    if not expected:
        return None
    reasons = []
    for name, value in expected.items():
        if not _contains(get_header(actual, name), value):
            return None
        reasons.append(f'{label} header {name} contains "{value}"')
    return "; ".join(reasons)


def _extract_trace_id(traceparent: str) -> str:
    """Second segment of `version-traceId-spanId-flags`."""
    parts = traceparent.split("-")
    return parts[1] if len(parts) >= 2 else ""


class _Matcher:
    """
    Compiled form of a SearchCriteria.

    Regexes and dates are prepared once; a criterion that fails to
    prepare is kept as a check that never matches.
    """

    def __init__(self, criteria: SearchCriteria):
        self.criteria = criteria
        self.checks: list[Callable[[Entry], str | None]] = []
        self._build()

    def _build(self) -> None:
        c = self.criteria

        if c.url is not None:
            self.checks.append(
                lambda e: f'URL contains "{c.url}"' if _contains(e.request.url, c.url) else None
            )

        if c.url_regex is not None:
            regex = _compile(c.url_regex)
            self.checks.append(
                lambda e: (
                    f"URL matches regex /{c.url_regex}/"
                    if regex is not None and regex.search(e.request.url)
                    else None
                )
            )

        if c.method is not None:
            self.checks.append(
                lambda e: (
                    f"Method is {c.method}"
                    if e.request.method.upper() == c.method.upper()
                    else None
                )
            )

        if c.status_code is not None:
            self.checks.append(
                lambda e: (
                    f"Status code is {c.status_code}"
                    if e.response.status == c.status_code
                    else None
                )
            )

        if c.status_range is not None:
            low, high = c.status_range
            self.checks.append(
                lambda e: (
                    f"Status in range {low}-{high}"
                    if isinstance(e.response.status, int) and low <= e.response.status <= high
                    else None
                )
            )

        if c.min_duration is not None:
            self.checks.append(
                lambda e: (
                    f"Duration >= {c.min_duration}ms"
                    if e.duration_ms is not None and e.duration_ms >= c.min_duration
                    else None
                )
            )

        if c.max_duration is not None:
            self.checks.append(
                lambda e: (
                    f"Duration <= {c.max_duration}ms"
                    if e.duration_ms is not None and e.duration_ms <= c.max_duration
                    else None
                )
            )

        if c.min_size is not None:
            self.checks.append(
                lambda e: f"Size >= {c.min_size} bytes" if e.response_size >= c.min_size else None
            )

        if c.max_size is not None:
            self.checks.append(
                lambda e: f"Size <= {c.max_size} bytes" if e.response_size <= c.max_size else None
            )

        if c.headers:
            self.checks.append(lambda e: _check_headers(e.request.headers, c.headers, "Request"))

        if c.response_headers:
            self.checks.append(
                lambda e: _check_headers(e.response.headers, c.response_headers, "Response")
            )

        if c.has_request_body is not None:
            self.checks.append(self._check_request_body)

        if c.has_response_body is not None:
            self.checks.append(self._check_response_body)

        if c.content_type is not None:
            self.checks.append(
                lambda e: (
                    f'Content-Type contains "{c.content_type}"'
                    if _contains(get_response_content_type(e), c.content_type)
                    else None
                )
            )

        if c.after_date is not None:
            after = self._parse_date(c.after_date)
            self.checks.append(
                lambda e: f"After {c.after_date}" if self._on_or_after(e, after) else None
            )

        if c.before_date is not None:
            before = self._parse_date(c.before_date)
            self.checks.append(
                lambda e: f"Before {c.before_date}" if self._on_or_before(e, before) else None
            )

        if c.traceparent is not None:
            self.checks.append(self._check_traceparent)

    @staticmethod
    def _parse_date(value: str) -> datetime | None:
        parsed = parse_timestamp(value)
        if parsed is None:
            logger.warning("invalid_date_criterion", value=value)
        return parsed

    @staticmethod
    def _on_or_after(entry: Entry, bound: datetime | None) -> bool:
        started = parse_timestamp(entry.started_at)
        return bound is not None and started is not None and started >= bound

    @staticmethod
    def _on_or_before(entry: Entry, bound: datetime | None) -> bool:
        started = parse_timestamp(entry.started_at)
        return bound is not None and started is not None and started <= bound

    def _check_request_body(self, entry: Entry) -> str | None:
        has_body = entry.request.post_data is not None
        if has_body != self.criteria.has_request_body:
            return None
        return "Has request body" if has_body else "No request body"

    def _check_response_body(self, entry: Entry) -> str | None:
        content = entry.response.content
        has_body = bool(content.text) or content.size > 0
        if has_body != self.criteria.has_response_body:
            return None
        return "Has response body" if has_body else "No response body"

    def _check_traceparent(self, entry: Entry) -> str | None:
        value = get_header(entry.request.headers, TRACEPARENT_HEADER)
        if not value:
            return None

        wanted = self.criteria.traceparent.lower()
        trace_id = _extract_trace_id(value)
        if wanted in trace_id.lower() or wanted in value.lower():
            return f'Traceparent contains TraceId "{self.criteria.traceparent}"'
        return None

    def match(self, entry: Entry) -> list[str] | None:
        """Reasons for a match, or None as soon as one criterion fails."""
        if not self.checks or entry.request is None or entry.response is None:
            return None

        reasons = []
        for check in self.checks:
            reason = check(entry)
            if reason is None:
                return None
            reasons.append(reason)
        return reasons


# =============================================================================
# Search Functions
# =============================================================================


def search(entries: list[Entry], criteria: SearchCriteria) -> list[SearchResult]:
    """
    Find entries satisfying every criterion that is set.

    Args:
        entries: Entries in capture order
        criteria: Conditions to AND together

    Returns:
        Matches in their original order, each with its index and reasons
    """
    matcher = _Matcher(criteria)
    results = []

    for index, entry in enumerate(entries):
        reasons = matcher.match(entry)
        if reasons is not None:
            results.append(SearchResult(entry=entry, index=index, match_reasons=reasons))

    logger.debug("capture_search_complete", entries=len(entries), matches=len(results))
    return results


def by_url(entries: list[Entry], pattern: str, regex: bool = False) -> list[SearchResult]:
    """Search by URL substring, or by regex when `regex` is set."""
    if regex:
        return search(entries, SearchCriteria(url_regex=pattern))
    return search(entries, SearchCriteria(url=pattern))


def find_failures(entries: list[Entry]) -> list[SearchResult]:
    """Client and server errors (4xx, 5xx)."""
    return search(entries, SearchCriteria(status_range=FAILURE_STATUS_RANGE))


def find_slow(entries: list[Entry], threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS) -> list[SearchResult]:
    return search(entries, SearchCriteria(min_duration=threshold_ms))


def find_large(
    entries: list[Entry], threshold_bytes: int = DEFAULT_LARGE_THRESHOLD_BYTES
) -> list[SearchResult]:
    return search(entries, SearchCriteria(min_size=threshold_bytes))


def find_json(entries: list[Entry]) -> list[SearchResult]:
    return search(entries, SearchCriteria(content_type="json"))


def by_method(entries: list[Entry], method: str) -> list[SearchResult]:
    return search(entries, SearchCriteria(method=method))


def find_successful(entries: list[Entry]) -> list[SearchResult]:
    return search(entries, SearchCriteria(status_range=SUCCESS_STATUS_RANGE))


def find_redirects(entries: list[Entry]) -> list[SearchResult]:
    return search(entries, SearchCriteria(status_range=REDIRECT_STATUS_RANGE))


def by_trace(entries: list[Entry], trace_id: str) -> list[SearchResult]:
    """Entries belonging to a distributed trace."""
    return search(entries, SearchCriteria(traceparent=trace_id))


# =============================================================================
# Combining Results
# =============================================================================


def union(*result_sets: list[SearchResult]) -> list[SearchResult]:
    """Merge result sets; the first result seen for an index wins. Sorted by index."""
    seen: set[int] = set()
    combined = []

    for result_set in result_sets:
        for result in result_set:
            if result.index not in seen:
                seen.add(result.index)
                combined.append(result)

    return sorted(combined, key=lambda r: r.index)


def intersect(*result_sets: list[SearchResult]) -> list[SearchResult]:
    """Results of the first set whose index appears in every set."""
    if not result_sets:
        return []

    index_sets = [{r.index for r in result_set} for result_set in result_sets[1:]]
    return [
        r for r in result_sets[0]
        if all(r.index in indexes for indexes in index_sets)
    ]
