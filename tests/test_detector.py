"""
Unit tests for scanner/detector.py.
"""

import pytest

from scanner.detector import OpportunityDetector, make_opportunity_id
from scanner.models import DynamicParameters, PoolSnapshot


def _make_pool(pool_id, price, liquidity=100_000.0, a="SUI", b="USDC"):
    return PoolSnapshot(
        pool_id=pool_id, asset_a=a, asset_b=b,
        price_a=price, price_b=1.0 / price,
        liquidity_a=liquidity, liquidity_b=liquidity * price,
        timestamp=1000.0,
    )


def _make_params(min_spread=0.005):
    return DynamicParameters(
        min_spread_threshold=min_spread,
        min_profit_threshold=0.1,
        max_slippage=0.01,
        target_trade_size=1000.0,
        risk_tolerance=0.5,
    )


def _make_detector(now, **kwargs):
    return OpportunityDetector(clock=lambda: now[0], **kwargs)


class TestDetect:
    def test_detects_cross_pool_spread(self):
        now = [1000.0]
        det = _make_detector(now)
        opps = det.detect([_make_pool("p1", 1.00), _make_pool("p2", 1.03)], _make_params())
        assert len(opps) == 1
        opp = opps[0]
        assert opp.spread == pytest.approx(0.03)
        assert opp.spread_pct == pytest.approx(0.03)
        # 1000 * 0.03 - (0.001 gas + 1000 * 0.0009 flash fee)
        assert opp.estimated_profit == pytest.approx(29.099)
        assert opp.trade_amount == 1000.0
        assert opp.approved is False
        assert opp.id == "arb_p1_p2_1000000"

    def test_identical_pools_yield_nothing(self):
        det = _make_detector([1000.0])
        assert det.detect([_make_pool("p1", 1.0), _make_pool("p2", 1.0)], _make_params()) == []

    def test_below_coarse_floor_skipped(self):
        det = _make_detector([1000.0])
        # 0.2% < 0.5 * 0.5%
        assert det.detect([_make_pool("p1", 1.0), _make_pool("p2", 1.002)], _make_params()) == []

    def test_between_coarse_floor_and_threshold_kept(self):
        det = _make_detector([1000.0])
        opps = det.detect([_make_pool("p1", 1.0), _make_pool("p2", 1.003)], _make_params())
        assert len(opps) == 1

    def test_fees_exceeding_gross_skipped(self):
        det = _make_detector([1000.0], flash_fee_rate=0.01)
        assert det.detect([_make_pool("p1", 1.0), _make_pool("p2", 1.003)], _make_params()) == []

    def test_different_asset_pairs_not_compared(self):
        det = _make_detector([1000.0])
        pools = [_make_pool("p1", 1.0), _make_pool("p2", 1.05, a="DEEP", b="USDC")]
        assert det.detect(pools, _make_params()) == []

    def test_reversed_pool_is_normalized(self):
        det = _make_detector([1000.0])
        reversed_pool = PoolSnapshot("p2", "USDC", "SUI", 1 / 1.03, 1.03, 103_000.0, 100_000.0, 1000.0)
        opps = det.detect([_make_pool("p1", 1.0), reversed_pool], _make_params())
        assert len(opps) == 1
        assert opps[0].spread_pct == pytest.approx(0.03)

    def test_non_positive_price_skipped(self):
        det = _make_detector([1000.0])
        broken = PoolSnapshot("p2", "SUI", "USDC", 0.0, 0.0, 100_000.0, 0.0, 1000.0)
        assert det.detect([_make_pool("p1", 1.0), broken], _make_params()) == []

    def test_same_pool_id_skipped(self):
        det = _make_detector([1000.0])
        assert det.detect([_make_pool("p1", 1.0), _make_pool("p1", 1.03)], _make_params()) == []

    def test_every_pair_visited(self):
        det = _make_detector([1000.0])
        pools = [_make_pool("p1", 1.0), _make_pool("p2", 1.03), _make_pool("p3", 1.06)]
        assert len(det.detect(pools, _make_params())) == 3

    def test_wider_spread_means_more_profit(self):
        det = _make_detector([1000.0])
        narrow = det.detect([_make_pool("a1", 1.0), _make_pool("a2", 1.01)], _make_params())[0]
        wide = det.detect([_make_pool("b1", 1.0), _make_pool("b2", 1.02)], _make_params())[0]
        assert wide.estimated_profit > narrow.estimated_profit


class TestActiveSet:
    def test_ttl_boundary(self):
        now = [1000.0]
        det = _make_detector(now)
        opp = det.detect([_make_pool("p1", 1.0), _make_pool("p2", 1.03)], _make_params())[0]

        now[0] = 1029.0
        assert det.count() == 1
        assert det.get(opp.id) is opp

        now[0] = 1031.0
        assert det.count() == 0
        assert det.get(opp.id) is None
        assert det.active() == []

    def test_expired_entries_purged_on_detect(self):
        now = [1000.0]
        det = _make_detector(now)
        det.detect([_make_pool("p1", 1.0), _make_pool("p2", 1.03)], _make_params())
        now[0] = 1040.0
        fresh = det.detect([_make_pool("p1", 1.0), _make_pool("p2", 1.04)], _make_params())
        assert [o.id for o in det.active()] == [fresh[0].id]


def test_make_opportunity_id():
    assert make_opportunity_id("a", "b", 12.3456) == "arb_a_b_12345"
