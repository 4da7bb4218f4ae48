"""
Traffic Cop Live Capture Buffer

Bounded FIFO buffer for entries arriving during an active capture session.
Once full, each new entry evicts the single oldest one.

Not thread-safe: the host serializes writes and reads.
"""

import copy
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from typing import Any

import structlog

from trafficcop.analysis.models import (
    DEFAULT_CREATOR_NAME,
    DEFAULT_CREATOR_VERSION,
    HAR_VERSION,
    CaptureDocument,
    Creator,
    Entry,
)
from trafficcop.analysis.parser import stringify

logger = structlog.get_logger(__name__)

DEFAULT_CAPACITY = 10000
LIVE_BROWSER_NAME = "Live Capture"


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class LiveTrackerStats:
    """Snapshot of buffer state for host status displays."""

    entry_count: int = 0
    total_size: int = 0
    """Sum of response content sizes in bytes."""

    oldest_entry: str | None = None
    """startedDateTime of the oldest buffered entry."""

    newest_entry: str | None = None
    is_at_capacity: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_count": self.entry_count,
            "total_size": self.total_size,
            "oldest_entry": self.oldest_entry,
            "newest_entry": self.newest_entry,
            "is_at_capacity": self.is_at_capacity,
        }


@dataclass
class LiveSummary:
    """Request count and durations of buffered entries."""

    total_requests: int = 0
    total_duration: float = 0.0
    avg_duration: float = 0.0
    status_codes: dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_duration": self.total_duration,
            "avg_duration": round(self.avg_duration, 2),
            "status_codes": {str(k): v for k, v in self.status_codes.items()},
        }


# =============================================================================
# Live Buffer
# =============================================================================


class LiveCaptureBuffer:
    """
    Session-scoped buffer of captured entries.

    Inactive until `start_session()`; `add()` is rejected while inactive.
    Read methods return copies, so callers cannot alter the buffer.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        creator_name: str = DEFAULT_CREATOR_NAME,
        creator_version: str = DEFAULT_CREATOR_VERSION,
    ):
        """
        Initialize the buffer.

        Args:
            capacity: Maximum number of entries retained
            creator_name: Creator name written into exported documents
            creator_version: Creator version written into exported documents

        Raises:
            ValueError: If capacity is less than 1
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self._entries: deque[Entry] = deque(maxlen=capacity)
        self._capacity = capacity
        self._creator = Creator(name=creator_name, version=creator_version)
        self._session_id: str | None = None
        self._start_time: datetime | None = None

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    def start_session(self, session_id: str) -> None:
        """Begin a session, discarding anything buffered before."""
        self._session_id = session_id
        self._start_time = datetime.now(timezone.utc)
        self._entries.clear()
        logger.debug("live_session_started", session_id=session_id, capacity=self._capacity)

    def stop_session(self) -> None:
        """
        End the session and clear the buffer.

        Documents already produced by `to_document()` are unaffected.
        """
        logger.debug(
            "live_session_stopped",
            session_id=self._session_id,
            entries=len(self._entries),
        )
        self._session_id = None
        self._start_time = None
        self._entries.clear()

    def is_session_active(self) -> bool:
        return self._session_id is not None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def start_time(self) -> datetime | None:
        return self._start_time

    def session_duration_ms(self) -> float | None:
        """Milliseconds since the session started, or None when inactive."""
        if self._start_time is None:
            return None
        return (datetime.now(timezone.utc) - self._start_time).total_seconds() * 1000

    # =========================================================================
    # Writes
    # =========================================================================

    def add(self, entry: Entry) -> bool:
        """
        Append an entry, evicting the oldest one if the buffer is full.

        Returns:
            True if accepted, False when no session is active
        """
        if not self.is_session_active():
            return False

        if len(self._entries) == self._capacity:
            logger.debug("live_buffer_evicted", session_id=self._session_id)

        # deque(maxlen=...) drops exactly one entry from the left when full
        self._entries.append(entry)
        return True

    def add_batch(self, entries: list[Entry]) -> int:
        """Add entries in order; returns how many were accepted."""
        return sum(1 for entry in entries if self.add(entry))

    def clear(self) -> None:
        """Empty the buffer but keep the session running."""
        self._entries.clear()

    def reset(self) -> None:
        """Empty the buffer and end the session."""
        self._entries.clear()
        self._session_id = None
        self._start_time = None

    # =========================================================================
    # Reads
    # =========================================================================

    def get_all(self) -> list[Entry]:
        """All buffered entries, oldest first."""
        return list(self._entries)

    def get_after_index(self, index: int) -> list[Entry]:
        """Entries after position `index`, for incremental polling."""
        if index < 0 or index >= len(self._entries):
            return []
        return list(islice(self._entries, index + 1, None))

    def get_last(self, count: int) -> list[Entry]:
        """The `count` most recent entries, oldest first."""
        if count <= 0:
            return []
        start = max(len(self._entries) - count, 0)
        return list(islice(self._entries, start, None))

    def get_latest(self, count: int) -> list[Entry]:
        return self.get_last(count)

    def get_stats(self) -> LiveTrackerStats:
        total_size = sum(
            e.response_size for e in self._entries if e.response_size > 0
        )
        return LiveTrackerStats(
            entry_count=len(self._entries),
            total_size=total_size,
            oldest_entry=self._entries[0].started_at if self._entries else None,
            newest_entry=self._entries[-1].started_at if self._entries else None,
            is_at_capacity=self.is_at_capacity(),
        )

    def get_summary(self) -> LiveSummary:
        total_duration = sum(e.duration_ms or 0 for e in self._entries)
        status_codes = Counter(
            e.response.status for e in self._entries if e.response is not None
        )
        count = len(self._entries)
        return LiveSummary(
            total_requests=count,
            total_duration=total_duration,
            avg_duration=total_duration / count if count else 0.0,
            status_codes=dict(status_codes),
        )

    def to_document(self) -> CaptureDocument:
        """
        Snapshot the buffer as a capture document.

        Entries are deep-copied; the document shares no state with the buffer.
        """
        session = self._session_id or "unknown"
        return CaptureDocument(
            version=HAR_VERSION,
            creator=Creator(name=self._creator.name, version=self._creator.version),
            browser=Creator(name=LIVE_BROWSER_NAME, version=session),
            entries=copy.deepcopy(list(self._entries)),
            comment=f"Live capture session: {self._session_id}" if self._session_id else None,
        )

    def to_json(self, pretty: bool = False) -> str:
        return stringify(self.to_document(), pretty=pretty)

    # =========================================================================
    # Capacity
    # =========================================================================

    @property
    def count(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def remaining_capacity(self) -> int:
        return self._capacity - len(self._entries)

    def is_at_capacity(self) -> bool:
        return len(self._entries) >= self._capacity
