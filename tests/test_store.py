"""
Tests for report/store.py -- SQLite outcome store.
"""

import threading

import pytest

from report import create_store
from report.store import OutcomeStore
from scanner.models import (
    DynamicParameters,
    ExecutionOutcome,
    HistoricalStats,
    OpportunityFeatures,
    OutcomeRecord,
    PoolSnapshot,
)

NOW = 1_700_000_000.0


def _make_record(ts=NOW, success=True, profit=2.0, pool_a="p1", pool_b="p2", score=90):
    return OutcomeRecord(
        timestamp=ts, opportunity_id=f"arb_{pool_a}_{pool_b}_{ts}", pool_a_id=pool_a,
        pool_b_id=pool_b, asset_pair=("SUI", "USDC"), score=score, predicted_profit=2.0,
        realized_profit=profit, trade_amount=1000.0, gas_cost=0.001, success=success,
        outcome=ExecutionOutcome.SUCCESS if success else ExecutionOutcome.SIMULATION_FAILED,
        execution_time_ms=4.0,
        features=OpportunityFeatures(0.03, 2.0, 100_000.0, 0.03, 2000.0, 0.0) if success else None,
    )


@pytest.fixture
def store(tmp_path):
    s = OutcomeStore(tmp_path / "test.db", clock=lambda: NOW)
    yield s
    s.close()


class TestOutcomes:
    def test_emit_and_recent(self, store):
        store.emit(_make_record(ts=NOW - 10))
        store.emit(_make_record(ts=NOW - 5, success=False, profit=0.0))
        rows = store.recent_outcomes(limit=10)
        assert len(rows) == 2
        assert rows[0]["success"] is False
        assert rows[0]["outcome"] == "simulation_failed"
        assert rows[0]["features"] is None
        assert rows[1]["success"] is True
        assert rows[1]["features"]["liquidity"] == 100_000.0
        assert rows[1]["token_a"] == "SUI"

    def test_trade_stats_window(self, store):
        store.emit(_make_record(ts=NOW - 60, profit=2.0, score=90))
        store.emit(_make_record(ts=NOW - 30, profit=4.0, score=80))
        store.emit(_make_record(ts=NOW - 20, success=False, profit=-0.001, score=70))
        store.emit(_make_record(ts=NOW - 2 * 86400, profit=100.0))

        stats = store.get_trade_stats(hours=24)
        assert stats["total_count"] == 3
        assert stats["success_count"] == 2
        assert stats["avg_profit"] == pytest.approx(3.0)
        assert stats["total_profit"] == pytest.approx(5.999)
        assert stats["avg_score"] == pytest.approx(80.0)
        assert stats["avg_execution_ms"] == pytest.approx(4.0)
        assert stats["success_rate"] == pytest.approx(2 / 3)

    def test_trade_stats_empty(self, store):
        stats = store.get_trade_stats()
        assert stats["total_count"] == 0
        assert stats["success_count"] == 0
        assert stats["avg_profit"] == 0.0
        assert stats["success_rate"] == 0.0

    def test_historical_stats(self, store):
        store.emit(_make_record(profit=1.0))
        store.emit(_make_record(success=False, profit=0.0))
        stats = store.historical_stats()
        assert stats == HistoricalStats(total_count=2, success_count=1, avg_profit=1.0)

    def test_best_pool_pairs(self, store):
        store.emit(_make_record(profit=1.0, pool_a="p1", pool_b="p2"))
        store.emit(_make_record(profit=5.0, pool_a="p3", pool_b="p4"))
        store.emit(_make_record(profit=2.0, pool_a="p3", pool_b="p4"))
        store.emit(_make_record(success=False, profit=0.0, pool_a="p5", pool_b="p6"))
        pairs = store.best_pool_pairs()
        assert [(p["pool_a"], p["pool_b"]) for p in pairs] == [("p3", "p4"), ("p1", "p2")]
        assert pairs[0]["trade_count"] == 2
        assert pairs[0]["total_profit"] == pytest.approx(7.0)


class TestParametersAndSnapshots:
    def test_parameter_history(self, store):
        params = DynamicParameters(0.005, 0.1, 0.01, 1000.0, 0.5)
        store.record_parameters(params)
        store.record_parameters(params, HistoricalStats(10, 9, 1.5))
        rows = store.parameter_history()
        assert len(rows) == 2
        assert rows[0]["success_rate"] == pytest.approx(0.9)
        assert rows[0]["avg_profit"] == 1.5
        assert rows[1]["success_rate"] is None
        assert rows[0]["timestamp"] == NOW

    def test_price_history(self, store):
        store.record_snapshots([
            PoolSnapshot("p1", "SUI", "USDC", 1.0, 1.0, 10.0, 10.0, NOW - 100),
            PoolSnapshot("p1", "SUI", "USDC", 1.01, 1 / 1.01, 10.0, 10.1, NOW - 50),
            PoolSnapshot("p2", "SUI", "USDC", 1.02, 1 / 1.02, 10.0, 10.2, NOW - 50),
            PoolSnapshot("p1", "SUI", "USDC", 0.9, 1 / 0.9, 10.0, 9.0, NOW - 2 * 86400),
        ])
        prices = [row["price"] for row in store.price_history("p1")]
        assert prices == [1.0, 1.01]

    def test_record_snapshots_empty(self, store):
        store.record_snapshots([])
        assert store.price_history("p1") == []


def test_reads_from_another_thread(tmp_path):
    store = OutcomeStore(tmp_path / "threads.db", clock=lambda: NOW)
    store.emit(_make_record())
    seen = []

    def reader():
        seen.append(store.get_trade_stats()["total_count"])
        store.close()

    t = threading.Thread(target=reader)
    t.start()
    t.join()
    assert seen == [1]
    store.close()


def test_create_store(tmp_path):
    assert create_store(enabled=False) is None
    store = create_store(enabled=True, db_path=str(tmp_path / "x.db"))
    assert isinstance(store, OutcomeStore)
    store.close()
