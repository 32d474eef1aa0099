"""
SQLite storage for execution outcomes, parameter history and pool
snapshots. WAL mode for concurrent read/write.

The engine writes through OutcomeStore (it is an OutcomeSink); the status
server reads the same file from its own thread.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable

from scanner.models import DynamicParameters, HistoricalStats, OutcomeRecord, PoolSnapshot

DB_PATH = Path("sentinel.db")


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict[str, Any]:
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


class OutcomeStore:
    """Thread-safe SQLite store. One connection per thread."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = str(db_path or DB_PATH)
        self._clock = clock
        self._local = threading.local()
        self._init_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def _conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.row_factory = _dict_factory
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            self._local.conn = conn
        return conn

    def _init_schema(self) -> None:
        conn = self._conn
        conn.executescript(_SCHEMA)
        conn.commit()

    # ── Write methods ──

    def emit(self, record: OutcomeRecord) -> None:
        """OutcomeSink: persist one execution outcome."""
        features = record.features
        self._conn.execute(
            """INSERT INTO outcomes
               (timestamp, opportunity_id, pool_a, pool_b, token_a, token_b,
                score, predicted_profit, actual_profit, trade_size, gas_cost,
                success, outcome, error, reference_id, execution_time_ms,
                spread_pct, liquidity, features_json)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.timestamp, record.opportunity_id,
                record.pool_a_id, record.pool_b_id,
                record.asset_pair[0], record.asset_pair[1],
                record.score, record.predicted_profit, record.realized_profit,
                record.trade_amount, record.gas_cost,
                int(record.success), record.outcome.value, record.error,
                record.reference_id, record.execution_time_ms,
                features.spread_pct if features else None,
                features.liquidity if features else None,
                json.dumps(features.to_dict()) if features else None,
            ),
        )
        self._conn.commit()

    def record_parameters(
        self,
        params: DynamicParameters,
        stats: HistoricalStats | None = None,
    ) -> None:
        """Tuner hook: one row per tuning pass."""
        self._conn.execute(
            """INSERT INTO parameters_history
               (timestamp, min_spread_threshold, min_profit_threshold, max_slippage,
                target_trade_size, risk_tolerance, success_rate, avg_profit)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                self._clock(),
                params.min_spread_threshold, params.min_profit_threshold,
                params.max_slippage, params.target_trade_size, params.risk_tolerance,
                stats.success_rate if stats else None,
                stats.avg_profit if stats else None,
            ),
        )
        self._conn.commit()

    def record_snapshots(self, snapshots: list[PoolSnapshot]) -> None:
        """Market conditions: one row per pool snapshot."""
        if not snapshots:
            return
        self._conn.executemany(
            """INSERT INTO pool_snapshots
               (timestamp, pool_id, token_a, token_b, price, liquidity_a, liquidity_b)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            [
                (s.timestamp, s.pool_id, s.asset_a, s.asset_b, s.price_a, s.liquidity_a, s.liquidity_b)
                for s in snapshots
            ],
        )
        self._conn.commit()

    # ── Read methods ──

    def get_trade_stats(self, hours: float = 24.0) -> dict[str, Any]:
        """Aggregate outcome stats over the trailing window. avg_profit is over successes."""
        since = self._clock() - hours * 3600.0
        row = self._conn.execute(
            """SELECT
                   COUNT(*) AS total_count,
                   COALESCE(SUM(success), 0) AS success_count,
                   AVG(CASE WHEN success = 1 THEN actual_profit END) AS avg_profit,
                   COALESCE(SUM(actual_profit), 0.0) AS total_profit,
                   AVG(score) AS avg_score,
                   AVG(execution_time_ms) AS avg_execution_ms
               FROM outcomes
               WHERE timestamp > ?""",
            (since,),
        ).fetchone()
        total = row["total_count"] or 0
        row["avg_profit"] = row["avg_profit"] or 0.0
        row["avg_score"] = row["avg_score"] or 0.0
        row["avg_execution_ms"] = row["avg_execution_ms"] or 0.0
        row["success_rate"] = row["success_count"] / total if total else 0.0
        return row

    def historical_stats(self, hours: float = 24.0) -> HistoricalStats:
        row = self.get_trade_stats(hours)
        return HistoricalStats(
            total_count=row["total_count"],
            success_count=row["success_count"],
            avg_profit=row["avg_profit"],
        )

    def best_pool_pairs(self, limit: int = 10) -> list[dict[str, Any]]:
        """Pool pairs ranked by total realized profit over successful outcomes."""
        return self._conn.execute(
            """SELECT pool_a, pool_b, token_a, token_b,
                      COUNT(*) AS trade_count,
                      AVG(actual_profit) AS avg_profit,
                      SUM(actual_profit) AS total_profit
               FROM outcomes
               WHERE success = 1
               GROUP BY pool_a, pool_b
               ORDER BY total_profit DESC
               LIMIT ?""",
            (limit,),
        ).fetchall()

    def recent_outcomes(self, limit: int = 50) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT * FROM outcomes ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        for row in rows:
            row["success"] = bool(row["success"])
            raw = row.pop("features_json", None)
            row["features"] = json.loads(raw) if raw else None
        return rows

    def parameter_history(self, limit: int = 50) -> list[dict[str, Any]]:
        return self._conn.execute(
            "SELECT * FROM parameters_history ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()

    def price_history(self, pool_id: str, hours: float = 24.0) -> list[dict[str, Any]]:
        since = self._clock() - hours * 3600.0
        return self._conn.execute(
            """SELECT timestamp, price, liquidity_a, liquidity_b
               FROM pool_snapshots
               WHERE pool_id = ? AND timestamp > ?
               ORDER BY timestamp ASC""",
            (pool_id, since),
        ).fetchall()

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


_SCHEMA = """
CREATE TABLE IF NOT EXISTS outcomes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp REAL NOT NULL,
    opportunity_id TEXT NOT NULL,
    pool_a TEXT NOT NULL,
    pool_b TEXT NOT NULL,
    token_a TEXT NOT NULL,
    token_b TEXT NOT NULL,
    score INTEGER NOT NULL,
    predicted_profit REAL NOT NULL,
    actual_profit REAL NOT NULL,
    trade_size REAL NOT NULL,
    gas_cost REAL NOT NULL DEFAULT 0.0,
    success INTEGER NOT NULL,
    outcome TEXT NOT NULL,
    error TEXT,
    reference_id TEXT,
    execution_time_ms REAL NOT NULL DEFAULT 0.0,
    spread_pct REAL,
    liquidity REAL,
    features_json TEXT
);
CREATE INDEX IF NOT EXISTS idx_outcomes_ts ON outcomes(timestamp);
CREATE INDEX IF NOT EXISTS idx_outcomes_pair ON outcomes(pool_a, pool_b);

CREATE TABLE IF NOT EXISTS parameters_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp REAL NOT NULL,
    min_spread_threshold REAL NOT NULL,
    min_profit_threshold REAL NOT NULL,
    max_slippage REAL NOT NULL,
    target_trade_size REAL NOT NULL,
    risk_tolerance REAL NOT NULL,
    success_rate REAL,
    avg_profit REAL
);

CREATE TABLE IF NOT EXISTS pool_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp REAL NOT NULL,
    pool_id TEXT NOT NULL,
    token_a TEXT NOT NULL,
    token_b TEXT NOT NULL,
    price REAL NOT NULL,
    liquidity_a REAL NOT NULL,
    liquidity_b REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_snapshots_pool ON pool_snapshots(pool_id, timestamp);
"""
