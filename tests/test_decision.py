"""
Unit tests for scanner/decision.py.
"""

from itertools import product

import pytest

from scanner.decision import DecisionPolicy, RejectReason, evaluate, should_execute
from scanner.models import DynamicParameters, OpportunityFeatures, RiskProfile, Score

_PARAMS = DynamicParameters(0.005, 0.1, 0.01, 1000.0, 0.5)


def _make_score(overall=80, confidence=0.9, profit=1.0):
    features = OpportunityFeatures(0.03, profit, 100_000.0, 0.03, 1000.0, 0.0)
    return Score(
        overall=overall, spread=100.0, liquidity=100.0, profit=100.0,
        volatility=70.0, gas_efficiency=100.0, historical=50.0,
        confidence=confidence, features=features,
    )


def _make_risk(acceptable=True):
    return RiskProfile(
        overall=10.0 if acceptable else 90.0,
        liquidity_risk=10.0, slippage_risk=10.0, gas_risk=10.0, execution_risk=10.0,
        acceptable=acceptable,
    )


class TestEvaluate:
    @pytest.mark.parametrize("score_ok,risk_ok,conf_ok,profit_ok", list(product([True, False], repeat=4)))
    def test_all_combinations(self, score_ok, risk_ok, conf_ok, profit_ok):
        score = _make_score(
            overall=70 if score_ok else 50,
            confidence=0.9 if conf_ok else 0.5,
            profit=1.0 if profit_ok else 0.05,
        )
        decision = evaluate(score, _make_risk(risk_ok), _PARAMS)

        if not score_ok:
            expected = RejectReason.LOW_SCORE
        elif not risk_ok:
            expected = RejectReason.RISK_UNACCEPTABLE
        elif not conf_ok:
            expected = RejectReason.LOW_CONFIDENCE
        elif not profit_ok:
            expected = RejectReason.BELOW_MIN_PROFIT
        else:
            expected = None

        assert decision.approved is (expected is None)
        assert decision.reason == expected

    def test_boundaries_inclusive(self):
        score = _make_score(overall=60, confidence=0.7, profit=0.1)
        assert evaluate(score, _make_risk(), _PARAMS).approved

    def test_custom_policy(self):
        score = _make_score(overall=80)
        decision = evaluate(score, _make_risk(), _PARAMS, DecisionPolicy(min_score=90))
        assert decision.reason == RejectReason.LOW_SCORE


def test_should_execute():
    assert should_execute(_make_score(), _make_risk(), _PARAMS)
    assert not should_execute(_make_score(overall=10), _make_risk(), _PARAMS)
