"""
Append-only JSONL outcome ledger with running net P&L.

Each line is one OutcomeRecord plus an ISO datetime and the cumulative net
P&L after that record. The cumulative figure is restored from the last line
when the ledger is reopened, so it survives restarts.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import Callable

from scanner.models import OutcomeRecord

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_PATH = os.path.join("logs", "transactions.jsonl")

_PNL_WINDOWS = (("24h", 86400.0), ("7d", 7 * 86400.0), ("30d", 30 * 86400.0))


def _iter_lines(path: str):
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed ledger line %s:%d", path, lineno)


def load_records(path: str) -> list[OutcomeRecord]:
    """Read every record back from a ledger file. Missing file -> []."""
    if not os.path.exists(path):
        return []
    records: list[OutcomeRecord] = []
    for data in _iter_lines(path):
        try:
            records.append(OutcomeRecord.from_dict(data))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable ledger entry: %s", e)
    return records


class OutcomeLedger:
    """OutcomeSink writing one JSON line per record."""

    def __init__(self, path: str = DEFAULT_LEDGER_PATH, clock: Callable[[], float] = time.time) -> None:
        self.path = path
        self._clock = clock
        self._lock = threading.Lock()
        self._session_start = clock()

        self.cumulative_pnl = 0.0
        self.total_records = 0
        self.successes = 0
        self.failures = 0
        self.session_pnl = 0.0
        self.total_volume = 0.0

        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self._restore()

    def _restore(self) -> None:
        if not os.path.exists(self.path):
            return
        last = None
        for data in _iter_lines(self.path):
            last = data
        if last is not None:
            self.cumulative_pnl = float(last.get("cumulative_pnl", 0.0))
            logger.info("Ledger %s: restored cumulative P&L $%.4f", self.path, self.cumulative_pnl)

    def emit(self, record: OutcomeRecord) -> None:
        with self._lock:
            self.total_records += 1
            if record.success:
                self.successes += 1
                self.total_volume += record.trade_amount
            elif record.gas_cost > 0 or record.realized_profit != 0:
                self.failures += 1
            self.cumulative_pnl += record.realized_profit
            self.session_pnl += record.realized_profit

            entry = record.to_dict()
            entry["datetime"] = datetime.fromtimestamp(record.timestamp, tz=timezone.utc).isoformat()
            entry["cumulative_pnl"] = self.cumulative_pnl
            with open(self.path, "a") as f:
                f.write(json.dumps(entry, separators=(",", ":")) + "\n")
            cumulative = self.cumulative_pnl

        if record.success:
            logger.info(
                "Ledger: %s net=$%.4f cumulative=$%.4f",
                record.opportunity_id, record.realized_profit, cumulative,
            )
        else:
            logger.debug(
                "Ledger: %s %s cumulative=$%.4f",
                record.opportunity_id, record.outcome.value, cumulative,
            )

    @property
    def win_rate(self) -> float:
        attempts = self.successes + self.failures
        if attempts == 0:
            return 0.0
        return self.successes / attempts * 100.0

    def summary(self) -> dict:
        with self._lock:
            return {
                "cumulative_pnl": round(self.cumulative_pnl, 6),
                "session_pnl": round(self.session_pnl, 6),
                "records": self.total_records,
                "successes": self.successes,
                "failures": self.failures,
                "win_rate_pct": round(self.win_rate, 1),
                "total_volume": round(self.total_volume, 2),
                "session_duration_sec": round(self._clock() - self._session_start, 0),
            }

    def pnl_summary(self) -> dict[str, dict]:
        """Net P&L and trade counts over the last 24h, 7d and 30d."""
        now = self._clock()
        records = load_records(self.path)
        summary: dict[str, dict] = {}
        for label, span in _PNL_WINDOWS:
            window = [r for r in records if r.timestamp >= now - span]
            summary[label] = {
                "net_pnl": round(sum(r.realized_profit for r in window), 6),
                "trades": sum(1 for r in window if r.success),
                "records": len(window),
            }
        return summary
