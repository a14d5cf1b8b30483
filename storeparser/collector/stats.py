"""Per-run counters reported at the end of each pipeline."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

from storeparser.collector.fetcher import FetchResult


@dataclass(frozen=True)
class SkippedItem:
    """Source record that did not make it into the output."""

    ref: str
    reason: str


@dataclass
class RunStats:
    """Request and product counters for one pipeline run."""

    name: str
    requests: int = 0
    processed: int = 0
    skipped: List[SkippedItem] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def record_fetch(self, result: FetchResult) -> None:
        """Add the requests sent by one fetch call (thread-safe)."""
        with self._lock:
            self.requests += result.requests

    def record_skip(self, ref: str, reason: str) -> None:
        with self._lock:
            self.skipped.append(SkippedItem(ref=ref, reason=reason))

    def finish(self, processed: int) -> None:
        self.processed = processed
        self.finished_at = time.monotonic()

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at
