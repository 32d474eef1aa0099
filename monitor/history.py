"""
In-memory outcome ring. Keeps the last N execution records for the scorer's
historical-success feature, the size optimizer and the parameter tuner.

Readers take an immutable HistorySnapshot once per tick so that scoring
stays deterministic while executions keep appending.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from scanner.models import HistoricalStats, OutcomeRecord


def summarize(records: tuple[OutcomeRecord, ...] | list[OutcomeRecord]) -> HistoricalStats:
    successes = [r for r in records if r.success]
    avg = sum(r.realized_profit for r in successes) / len(successes) if successes else 0.0
    return HistoricalStats(
        total_count=len(records),
        success_count=len(successes),
        avg_profit=avg,
    )


@dataclass(frozen=True)
class HistorySnapshot:
    """Read-only view of the outcome ring at one point in time."""
    records: tuple[OutcomeRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def pair_success_rate(self, pool_a_id: str, pool_b_id: str) -> float | None:
        """Success rate over attempted executions on this unordered pool pair, None if unseen.

        Safety and concurrency rejections never reached the venue and are ignored.
        """
        pair = {pool_a_id, pool_b_id}
        matching = [
            r for r in self.records
            if r.outcome.attempted and {r.pool_a_id, r.pool_b_id} == pair
        ]
        if not matching:
            return None
        return sum(1 for r in matching if r.success) / len(matching)

    def optimal_trade_size(self, asset_pair: tuple[str, str]) -> float:
        """Mean trade size of successful executions on this asset pair (0 if none)."""
        key = tuple(sorted(asset_pair))
        sizes = [
            r.trade_amount for r in self.records
            if r.success and tuple(sorted(r.asset_pair)) == key and r.trade_amount > 0
        ]
        if not sizes:
            return 0.0
        return sum(sizes) / len(sizes)

    def recent(self, n: int) -> tuple[OutcomeRecord, ...]:
        if n <= 0:
            return ()
        return self.records[-n:]

    def stats(self, window_hours: float, now: float | None = None) -> HistoricalStats:
        now = time.time() if now is None else now
        since = now - window_hours * 3600.0
        return summarize([r for r in self.records if r.timestamp > since])


class OutcomeHistory:
    """Bounded, thread-safe ring of outcome records in completion order."""

    def __init__(self, maxlen: int = 100, clock: Callable[[], float] = time.time) -> None:
        self._records: deque[OutcomeRecord] = deque(maxlen=maxlen)
        self._total = 0
        self._clock = clock
        self._lock = threading.Lock()

    def append(self, record: OutcomeRecord) -> int:
        """Append a record. Returns the total number ever recorded."""
        with self._lock:
            self._records.append(record)
            self._total += 1
            return self._total

    @property
    def total_recorded(self) -> int:
        with self._lock:
            return self._total

    def snapshot(self) -> HistorySnapshot:
        with self._lock:
            return HistorySnapshot(records=tuple(self._records))

    def recent(self, n: int) -> tuple[OutcomeRecord, ...]:
        return self.snapshot().recent(n)

    def stats(self, window_hours: float = 24.0) -> HistoricalStats:
        return self.snapshot().stats(window_hours, now=self._clock())
