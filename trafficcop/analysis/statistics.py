"""
Traffic Cop Capture Statistics

Pure aggregation over capture entries: status, size, duration and method
breakdowns, percentiles, top-N lists, bandwidth and time range.
Nothing here raises on empty input.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from trafficcop.analysis.models import Entry
from trafficcop.analysis.parser import has_header, is_number, parse_timestamp

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

KIB = 1024
MIB = 1024 * 1024

# (min inclusive, max exclusive, label); None means unbounded
SIZE_BUCKETS: list[tuple[int, int | None, str]] = [
    (0, KIB, "0-1KB"),
    (KIB, 10 * KIB, "1KB-10KB"),
    (10 * KIB, 100 * KIB, "10KB-100KB"),
    (100 * KIB, MIB, "100KB-1MB"),
    (MIB, 10 * MIB, "1MB-10MB"),
    (10 * MIB, None, "10MB+"),
]

DURATION_BUCKETS: list[tuple[int, int | None, str]] = [
    (0, 100, "0-100ms"),
    (100, 500, "100-500ms"),
    (500, 1000, "500ms-1s"),
    (1000, 5000, "1s-5s"),
    (5000, 10000, "5s-10s"),
    (10000, None, "10s+"),
]

DEFAULT_PERCENTILES = [50, 75, 90, 95, 99]
DEFAULT_TOP_N = 10
SUMMARY_TOP_N = 5

AUTH_FAILURE_STATUSES = {401, 403}


# =============================================================================
# Report Data Models
# =============================================================================


@dataclass
class StatusCodeStats:
    """Aggregate for one exact status code."""

    code: int
    status_text: str
    count: int = 0
    total_duration: float = 0.0
    avg_duration: float = 0.0
    min_duration: float = 0.0
    max_duration: float = 0.0
    total_size: int = 0
    avg_size: float = 0.0
    urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "status_text": self.status_text,
            "count": self.count,
            "total_duration": self.total_duration,
            "avg_duration": round(self.avg_duration, 2),
            "min_duration": self.min_duration,
            "max_duration": self.max_duration,
            "total_size": self.total_size,
            "avg_size": round(self.avg_size, 2),
            "urls": list(self.urls),
        }


@dataclass
class PayloadSizeStats:
    """Aggregate for one response size bucket."""

    size_range: str
    min_bytes: int
    max_bytes: int
    """Exclusive upper bound; -1 for the open-ended bucket."""

    count: int = 0
    total_size: int = 0
    avg_size: float = 0.0
    urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "size_range": self.size_range,
            "min_bytes": self.min_bytes,
            "max_bytes": self.max_bytes,
            "count": self.count,
            "total_size": self.total_size,
            "avg_size": round(self.avg_size, 2),
            "urls": list(self.urls),
        }


@dataclass
class DurationStats:
    """Aggregate for one duration bucket."""

    duration_range: str
    min_ms: int
    max_ms: int
    """Exclusive upper bound; -1 for the open-ended bucket."""

    count: int = 0
    total_duration: float = 0.0
    avg_duration: float = 0.0
    urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_range": self.duration_range,
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
            "count": self.count,
            "total_duration": self.total_duration,
            "avg_duration": round(self.avg_duration, 2),
            "urls": list(self.urls),
        }


@dataclass
class MethodStats:
    """Aggregate for one HTTP method."""

    method: str
    count: int = 0
    total_duration: float = 0.0
    avg_duration: float = 0.0
    success_count: int = 0
    """2xx responses."""

    failure_count: int = 0
    """Responses with status >= 400."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "count": self.count,
            "total_duration": self.total_duration,
            "avg_duration": round(self.avg_duration, 2),
            "success_count": self.success_count,
            "failure_count": self.failure_count,
        }


@dataclass
class AuthFailure:
    """
    A 401/403 response.

    `has_auth_header` and `cookie_count` separate "no credentials sent"
    from "credentials rejected".
    """

    url: str
    method: str
    status: int
    status_text: str
    timestamp: str
    has_auth_header: bool
    cookie_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "status": self.status,
            "status_text": self.status_text,
            "timestamp": self.timestamp,
            "has_auth_header": self.has_auth_header,
            "cookie_count": self.cookie_count,
        }


@dataclass
class SlowRequest:
    url: str
    method: str
    duration: float
    status: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "duration": self.duration,
            "status": self.status,
        }


@dataclass
class LargeResponse:
    url: str
    method: str
    size: int
    content_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "size": self.size,
            "content_type": self.content_type,
        }


@dataclass
class Bandwidth:
    """Transferred body bytes (unknown sizes count as zero)."""

    total_bytes: int = 0
    request_bytes: int = 0
    response_bytes: int = 0

    @property
    def total_mb(self) -> float:
        return self.total_bytes / MIB

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_bytes": self.total_bytes,
            "total_mb": round(self.total_mb, 3),
            "request_bytes": self.request_bytes,
            "response_bytes": self.response_bytes,
        }


@dataclass
class TimeRange:
    """Earliest and latest entry start times."""

    start: datetime
    end: datetime

    @property
    def duration_ms(self) -> float:
        return (self.end - self.start).total_seconds() * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_ms": self.duration_ms,
        }


@dataclass
class CaptureSummary:
    """Overview of a capture, combining the individual reports."""

    total_requests: int = 0
    time_range: TimeRange | None = None
    bandwidth: Bandwidth = field(default_factory=Bandwidth)
    status_codes: list[StatusCodeStats] = field(default_factory=list)
    methods: list[MethodStats] = field(default_factory=list)
    duration_percentiles: dict[str, float] = field(default_factory=dict)
    slowest: list[SlowRequest] = field(default_factory=list)
    largest: list[LargeResponse] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_requests": self.total_requests,
            "time_range": self.time_range.to_dict() if self.time_range else None,
            "bandwidth": self.bandwidth.to_dict(),
            "status_codes": [
                {
                    "code": s.code,
                    "count": s.count,
                    "avg_duration": round(s.avg_duration),
                }
                for s in self.status_codes
            ],
            "methods": [m.to_dict() for m in self.methods],
            "duration_percentiles": self.duration_percentiles,
            "slowest": [s.to_dict() for s in self.slowest],
            "largest": [r.to_dict() for r in self.largest],
        }


# =============================================================================
# Helpers
# =============================================================================


def _known_size(size: int | None) -> int:
    """Byte size with the -1 'unknown' marker counted as zero."""
    return size if is_number(size) and size > 0 else 0


def _duration(entry: Entry) -> float:
    return entry.duration_ms if is_number(entry.duration_ms) and entry.duration_ms > 0 else 0.0


def _exchanges(entries: list[Entry]) -> list[Entry]:
    """Entries carrying both a request and a response; loose entries are skipped."""
    return [e for e in entries if e.request is not None and e.response is not None]


def _status_class(status: Any) -> int | None:
    """Hundreds digit of an integer status code, else None."""
    if isinstance(status, int) and not isinstance(status, bool):
        return status // 100
    return None


def _bucket_label(value: float, buckets: list[tuple[int, int | None, str]]) -> str:
    for low, high, label in buckets:
        if value >= low and (high is None or value < high):
            return label
    # NaN
    return buckets[0][2]


def _mean(total: float, count: int) -> float:
    return total / count if count else 0.0


# =============================================================================
# Grouping
# =============================================================================


def group_by_status(entries: list[Entry]) -> list[StatusCodeStats]:
    """Bucket entries by exact status code, most frequent first."""
    groups: dict[int, StatusCodeStats] = {}

    for entry in _exchanges(entries):
        code = entry.response.status
        stats = groups.get(code)
        duration = _duration(entry)
        size = _known_size(entry.response_size)

        if stats is None:
            stats = StatusCodeStats(
                code=code,
                status_text=entry.response.status_text,
                min_duration=duration,
                max_duration=duration,
            )
            groups[code] = stats

        stats.count += 1
        stats.total_duration += duration
        stats.min_duration = min(stats.min_duration, duration)
        stats.max_duration = max(stats.max_duration, duration)
        stats.total_size += size
        stats.urls.append(entry.request.url)

    for stats in groups.values():
        stats.avg_duration = _mean(stats.total_duration, stats.count)
        stats.avg_size = _mean(stats.total_size, stats.count)

    return sorted(groups.values(), key=lambda s: s.count, reverse=True)


def group_by_size(entries: list[Entry]) -> list[PayloadSizeStats]:
    """Bucket entries by response size; empty buckets are omitted."""
    groups = {
        label: PayloadSizeStats(
            size_range=label,
            min_bytes=low,
            max_bytes=high if high is not None else -1,
        )
        for low, high, label in SIZE_BUCKETS
    }

    for entry in _exchanges(entries):
        size = _known_size(entry.response_size)
        stats = groups[_bucket_label(size, SIZE_BUCKETS)]
        stats.count += 1
        stats.total_size += size
        stats.urls.append(entry.request.url)

    result = []
    for stats in groups.values():
        if stats.count:
            stats.avg_size = _mean(stats.total_size, stats.count)
            result.append(stats)
    return result


def group_by_duration(entries: list[Entry]) -> list[DurationStats]:
    """Bucket entries by total duration; empty buckets are omitted."""
    groups = {
        label: DurationStats(
            duration_range=label,
            min_ms=low,
            max_ms=high if high is not None else -1,
        )
        for low, high, label in DURATION_BUCKETS
    }

    for entry in _exchanges(entries):
        duration = _duration(entry)
        stats = groups[_bucket_label(duration, DURATION_BUCKETS)]
        stats.count += 1
        stats.total_duration += duration
        stats.urls.append(entry.request.url)

    result = []
    for stats in groups.values():
        if stats.count:
            stats.avg_duration = _mean(stats.total_duration, stats.count)
            result.append(stats)
    return result


def group_by_method(entries: list[Entry]) -> list[MethodStats]:
    """Bucket entries by upper-cased method, most frequent first."""
    groups: dict[str, MethodStats] = {}

    for entry in _exchanges(entries):
        method = str(entry.request.method or "").upper()
        stats = groups.setdefault(method, MethodStats(method=method))
        status_class = _status_class(entry.response.status)

        stats.count += 1
        stats.total_duration += _duration(entry)
        if status_class == 2:
            stats.success_count += 1
        elif status_class is not None and status_class >= 4:
            stats.failure_count += 1

    for stats in groups.values():
        stats.avg_duration = _mean(stats.total_duration, stats.count)

    return sorted(groups.values(), key=lambda s: s.count, reverse=True)


# =============================================================================
# Findings
# =============================================================================


def find_auth_failures(entries: list[Entry]) -> list[AuthFailure]:
    """401 and 403 responses, with what credentials the request carried."""
    return [
        AuthFailure(
            url=e.request.url,
            method=e.request.method,
            status=e.response.status,
            status_text=e.response.status_text,
            timestamp=e.started_at,
            has_auth_header=has_header(e.request.headers, "authorization"),
            cookie_count=len(e.request.cookies),
        )
        for e in _exchanges(entries)
        if isinstance(e.response.status, int) and e.response.status in AUTH_FAILURE_STATUSES
    ]


def calculate_duration_percentiles(
    entries: list[Entry],
    percentiles: list[float] | None = None,
) -> dict[str, float]:
    """
    Nearest-rank duration percentiles.

    For percentile p over n sorted durations the value at
    index ceil(p / 100 * n) - 1 (clamped to [0, n - 1]) is reported,
    keyed as "p50", "p95", "p99.9" and so on.

    Returns:
        Empty dict when there are no entries
    """
    if not entries:
        return {}

    durations = sorted(_duration(e) for e in entries)
    n = len(durations)

    result = {}
    for p in percentiles if percentiles is not None else DEFAULT_PERCENTILES:
        index = math.ceil(p / 100 * n) - 1
        index = min(max(index, 0), n - 1)
        result[f"p{p:g}"] = durations[index]
    return result


def find_slowest(entries: list[Entry], limit: int = DEFAULT_TOP_N) -> list[SlowRequest]:
    ranked = sorted(_exchanges(entries), key=_duration, reverse=True)
    return [
        SlowRequest(
            url=e.request.url,
            method=e.request.method,
            duration=_duration(e),
            status=e.response.status,
        )
        for e in ranked[: max(limit, 0)]
    ]


def find_largest(entries: list[Entry], limit: int = DEFAULT_TOP_N) -> list[LargeResponse]:
    ranked = sorted(_exchanges(entries), key=lambda e: _known_size(e.response_size), reverse=True)
    return [
        LargeResponse(
            url=e.request.url,
            method=e.request.method,
            size=_known_size(e.response_size),
            content_type=e.response.content.mime_type,
        )
        for e in ranked[: max(limit, 0)]
    ]


def calculate_total_bandwidth(entries: list[Entry]) -> Bandwidth:
    """Sum request body and response content bytes."""
    exchanges = _exchanges(entries)
    request_bytes = sum(_known_size(e.request.body_size) for e in exchanges)
    response_bytes = sum(_known_size(e.response_size) for e in exchanges)
    return Bandwidth(
        total_bytes=request_bytes + response_bytes,
        request_bytes=request_bytes,
        response_bytes=response_bytes,
    )


def get_time_range(entries: list[Entry]) -> TimeRange | None:
    """
    Earliest and latest start time.

    Entries with unparsable timestamps are ignored; None when no entry
    has a usable timestamp.
    """
    timestamps = [t for t in (parse_timestamp(e.started_at) for e in entries) if t is not None]
    if not timestamps:
        return None
    return TimeRange(start=min(timestamps), end=max(timestamps))


# =============================================================================
# Summary
# =============================================================================


def summarize(entries: list[Entry], top_n: int = SUMMARY_TOP_N) -> CaptureSummary:
    """Build the overview report used by hosts for a quick capture digest."""
    summary = CaptureSummary(
        total_requests=len(entries),
        time_range=get_time_range(entries),
        bandwidth=calculate_total_bandwidth(entries),
        status_codes=group_by_status(entries),
        methods=group_by_method(entries),
        duration_percentiles=calculate_duration_percentiles(entries),
        slowest=find_slowest(entries, top_n),
        largest=find_largest(entries, top_n),
    )

    logger.debug(
        "capture_summary_complete",
        requests=summary.total_requests,
        status_codes=len(summary.status_codes),
    )

    return summary
