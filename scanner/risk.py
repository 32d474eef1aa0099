"""
Per-opportunity risk assessment. Four component risks (0-100) averaged into
an overall figure, compared against the current risk tolerance.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from scanner.models import Opportunity, RiskProfile, Score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskLimits:
    liquidity_scale: float = 200.0
    slippage_scale: float = 100.0
    gas_scale: float = 100.0
    execution_base: float = 20.0
    execution_age_cap: float = 30.0
    component_warning: float = 50.0
    overall_warning: float = 70.0


DEFAULT_LIMITS = RiskLimits()


def _cap(value: float) -> float:
    return max(0.0, min(100.0, value))


def _liquidity_risk(trade_size: float, liquidity: float, limits: RiskLimits) -> float:
    if liquidity <= 0:
        return 100.0
    return _cap(trade_size / liquidity * limits.liquidity_scale)


def _slippage_risk(amount: float, liquidity: float, limits: RiskLimits) -> float:
    if liquidity <= 0:
        return 100.0
    return _cap(amount / liquidity * limits.slippage_scale)


def _gas_risk(gas: float, profit: float, limits: RiskLimits) -> float:
    if profit <= 0:
        return 100.0
    return _cap(gas / profit * limits.gas_scale)


def _execution_risk(age_sec: float, limits: RiskLimits) -> float:
    return _cap(limits.execution_base + min(limits.execution_age_cap, max(0.0, age_sec)))


def assess_risk(
    opp: Opportunity,
    score: Score,
    trade_size: float,
    risk_tolerance: float,
    limits: RiskLimits = DEFAULT_LIMITS,
    now: float | None = None,
) -> RiskProfile:
    """
    Assess execution risk for an opportunity at the given trade size.

    acceptable is True iff overall <= risk_tolerance * 100. Zero liquidity
    is treated as maximal risk rather than an error.
    """
    now = time.time() if now is None else now
    liquidity = opp.min_liquidity

    liquidity_risk = _liquidity_risk(trade_size, liquidity, limits)
    slippage_risk = _slippage_risk(opp.trade_amount, liquidity, limits)
    gas_risk = _gas_risk(opp.gas_estimate, score.features.estimated_profit, limits)
    execution_risk = _execution_risk(opp.age(now), limits)

    overall = (liquidity_risk + slippage_risk + gas_risk + execution_risk) / 4.0

    warnings: list[str] = []
    if overall > limits.overall_warning:
        warnings.append("High overall risk")
    if liquidity_risk > limits.component_warning:
        warnings.append("Insufficient liquidity")
    if slippage_risk > limits.component_warning:
        warnings.append("High slippage expected")
    if gas_risk > limits.component_warning:
        warnings.append("Gas costs may exceed profits")

    profile = RiskProfile(
        overall=overall,
        liquidity_risk=liquidity_risk,
        slippage_risk=slippage_risk,
        gas_risk=gas_risk,
        execution_risk=execution_risk,
        acceptable=overall <= risk_tolerance * 100.0,
        warnings=tuple(warnings),
    )
    if warnings:
        logger.debug("Risk %s: overall=%.1f warnings=%s", opp.id, overall, ", ".join(warnings))
    return profile
