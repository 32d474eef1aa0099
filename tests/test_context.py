"""
Unit tests for pipeline/context.py -- engine wiring and outcome fan-out.
"""

import logging

import pytest

from config import Config
from pipeline.context import build_context, initial_parameters
from scanner.models import ExecutionOutcome, OutcomeRecord, PoolSnapshot


def _make_record(i=0, success=True, profit=1.0):
    return OutcomeRecord(
        timestamp=1000.0 + i, opportunity_id=f"o{i}", pool_a_id="p1", pool_b_id="p2",
        asset_pair=("SUI", "USDC"), score=80, predicted_profit=1.0,
        realized_profit=profit, trade_amount=1000.0, gas_cost=0.001, success=success,
        outcome=ExecutionOutcome.SUCCESS if success else ExecutionOutcome.EXECUTION_FAILED,
    )


class _ListSink:
    def __init__(self):
        self.records = []

    def emit(self, record):
        self.records.append(record)


class _BrokenSink:
    def emit(self, record):
        raise OSError("disk full")


class TestBuildContext:
    def test_wiring_follows_config(self):
        cfg = Config(_env_file=None, default_trade_amount=500.0, max_position_size=800.0,
                     opportunity_ttl_sec=12.0, min_score=70.0)
        ctx = build_context(cfg, clock=lambda: 1000.0)
        assert ctx.parameters.get() == initial_parameters(cfg)
        assert ctx.parameters.get().target_trade_size == 500.0
        assert ctx.detector.ttl_sec == 12.0
        assert ctx.decision_policy.min_score == 70.0
        assert ctx.started_at == 1000.0
        assert not ctx.safety.check(900.0).passed

    def test_status_snapshot(self):
        now = [1000.0]
        ctx = build_context(Config(_env_file=None), clock=lambda: now[0])
        pools = [
            PoolSnapshot("p1", "SUI", "USDC", 1.0, 1.0, 100_000.0, 100_000.0, 1000.0),
            PoolSnapshot("p2", "SUI", "USDC", 1.03, 1 / 1.03, 100_000.0, 103_000.0, 1000.0),
        ]
        ctx.detector.detect(pools, ctx.parameters.get())
        ctx.record_outcome(_make_record())
        now[0] = 1005.0

        status = ctx.status()
        assert set(status) == {
            "uptime_sec", "parameters", "safety", "open_opportunities",
            "opportunities", "outcomes_recorded", "stats_24h",
        }
        assert status["uptime_sec"] == 5.0
        assert status["open_opportunities"] == 1
        assert status["opportunities"][0]["age_sec"] == 5.0
        assert status["outcomes_recorded"] == 1
        assert status["safety"]["breaker"] == "closed"
        assert status["stats_24h"]["success_count"] == 1


class TestRecordOutcome:
    def test_sinks_receive_every_record(self):
        sink = _ListSink()
        ctx = build_context(Config(_env_file=None), sinks=[sink], clock=lambda: 1000.0)
        ctx.record_outcome(_make_record(0))
        ctx.record_outcome(_make_record(1))
        assert [r.opportunity_id for r in sink.records] == ["o0", "o1"]

    def test_broken_sink_is_logged_and_skipped(self, caplog):
        good = _ListSink()
        ctx = build_context(Config(_env_file=None), clock=lambda: 1000.0)
        ctx.add_sink(_BrokenSink())
        ctx.add_sink(good)
        with caplog.at_level(logging.ERROR, logger="pipeline.context"):
            ctx.record_outcome(_make_record())
        assert len(good.records) == 1
        assert ctx.history.total_recorded == 1
        assert any("_BrokenSink" in r.getMessage() for r in caplog.records)

    def test_tuner_runs_on_tenth_record(self):
        ctx = build_context(Config(_env_file=None), clock=lambda: 1000.0)
        for i in range(9):
            ctx.record_outcome(_make_record(i, profit=1.0))
        assert ctx.parameters.get().risk_tolerance == 0.5
        ctx.record_outcome(_make_record(9, profit=1.0))
        params = ctx.parameters.get()
        assert params.risk_tolerance == pytest.approx(0.55)
        assert params.min_profit_threshold == pytest.approx(0.11)
