"""
Unit tests for monitor/history.py.
"""

from monitor.history import HistorySnapshot, OutcomeHistory
from scanner.models import ExecutionOutcome, OutcomeRecord


def _make_record(ts=1000.0, success=True, profit=1.0, pool_a="p1", pool_b="p2", amount=1000.0):
    return OutcomeRecord(
        timestamp=ts, opportunity_id=f"o_{ts}", pool_a_id=pool_a, pool_b_id=pool_b,
        asset_pair=("SUI", "USDC"), score=80, predicted_profit=1.0,
        realized_profit=profit, trade_amount=amount, gas_cost=0.001, success=success,
        outcome=ExecutionOutcome.SUCCESS if success else ExecutionOutcome.SIMULATION_FAILED,
    )


class TestOutcomeHistory:
    def test_bounded_ring(self):
        history = OutcomeHistory(maxlen=3)
        for i in range(5):
            total = history.append(_make_record(ts=float(i)))
        assert total == 5
        assert history.total_recorded == 5
        snap = history.snapshot()
        assert len(snap) == 3
        assert [r.timestamp for r in snap.records] == [2.0, 3.0, 4.0]

    def test_snapshot_is_frozen_view(self):
        history = OutcomeHistory()
        history.append(_make_record())
        snap = history.snapshot()
        history.append(_make_record(ts=2000.0))
        assert len(snap) == 1

    def test_recent(self):
        history = OutcomeHistory()
        for i in range(5):
            history.append(_make_record(ts=float(i)))
        assert [r.timestamp for r in history.recent(2)] == [3.0, 4.0]
        assert history.recent(0) == ()

    def test_stats_window(self):
        now = [10_000.0]
        history = OutcomeHistory(clock=lambda: now[0])
        history.append(_make_record(ts=10_000.0 - 7200.0, profit=5.0))
        history.append(_make_record(ts=9_900.0, profit=1.0))
        history.append(_make_record(ts=9_950.0, success=False, profit=0.0))
        stats = history.stats(window_hours=1.0)
        assert stats.total_count == 2
        assert stats.success_count == 1
        assert stats.avg_profit == 1.0
        assert history.stats(window_hours=24.0).total_count == 3


class TestHistorySnapshot:
    def test_pair_success_rate_unordered(self):
        snap = HistorySnapshot(records=(
            _make_record(success=True, pool_a="p1", pool_b="p2"),
            _make_record(success=False, pool_a="p2", pool_b="p1"),
            _make_record(success=False, pool_a="p1", pool_b="p3"),
        ))
        assert snap.pair_success_rate("p1", "p2") == 0.5
        assert snap.pair_success_rate("p2", "p1") == 0.5
        assert snap.pair_success_rate("p1", "p3") == 0.0
        assert snap.pair_success_rate("p4", "p5") is None

    def test_pair_success_rate_ignores_rejections(self):
        snap = HistorySnapshot(records=(
            _make_record(success=True),
            OutcomeRecord(
                timestamp=1001.0, opportunity_id="o_r1", pool_a_id="p1", pool_b_id="p2",
                asset_pair=("SUI", "USDC"), score=80, predicted_profit=1.0,
                realized_profit=0.0, trade_amount=1000.0, gas_cost=0.0, success=False,
                outcome=ExecutionOutcome.SAFETY_REJECTED,
            ),
            OutcomeRecord(
                timestamp=1002.0, opportunity_id="o_r2", pool_a_id="p2", pool_b_id="p1",
                asset_pair=("SUI", "USDC"), score=80, predicted_profit=1.0,
                realized_profit=0.0, trade_amount=1000.0, gas_cost=0.0, success=False,
                outcome=ExecutionOutcome.CONCURRENCY_REJECTED,
            ),
        ))
        assert snap.pair_success_rate("p1", "p2") == 1.0

    def test_pair_success_rate_none_when_only_rejected(self):
        snap = HistorySnapshot(records=(
            OutcomeRecord(
                timestamp=1000.0, opportunity_id="o_r", pool_a_id="p1", pool_b_id="p2",
                asset_pair=("SUI", "USDC"), score=80, predicted_profit=1.0,
                realized_profit=0.0, trade_amount=1000.0, gas_cost=0.0, success=False,
                outcome=ExecutionOutcome.SAFETY_REJECTED,
            ),
        ))
        assert snap.pair_success_rate("p1", "p2") is None

    def test_optimal_trade_size(self):
        snap = HistorySnapshot(records=(
            _make_record(amount=400.0),
            _make_record(amount=600.0),
            _make_record(amount=10_000.0, success=False),
        ))
        assert snap.optimal_trade_size(("USDC", "SUI")) == 500.0
        assert snap.optimal_trade_size(("DEEP", "SUI")) == 0.0
