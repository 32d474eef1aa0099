"""
Composite opportunity scoring. A weighted multi-factor score (0-100) plus a
confidence value, computed from an opportunity's feature vector.

Not all spreads are created equal:
- a 3% spread on a thin pool is worth less than 1% on a deep one
- a big headline profit eaten by gas is not a profit
- pools that diverge wildly are more likely to snap back before we land
- pool pairs that failed us before deserve less trust
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from monitor.history import HistorySnapshot
from scanner.models import DynamicParameters, Opportunity, OpportunityFeatures, Score

logger = logging.getLogger(__name__)

# Ratio for a profitable trade with zero gas. Finite so records stay valid JSON.
MAX_PROFIT_TO_GAS = 1e6


@dataclass(frozen=True)
class ScoringWeights:
    """Factor weights. Must sum to 1.0."""
    spread: float = 0.20
    liquidity: float = 0.20
    profit: float = 0.25
    volatility: float = 0.10
    gas_efficiency: float = 0.15
    historical: float = 0.10

    def __post_init__(self) -> None:
        total = sum(self.as_tuple())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.4f}")
        if any(w < 0 for w in self.as_tuple()):
            raise ValueError("Scoring weights must be non-negative")

    def as_tuple(self) -> tuple[float, ...]:
        return (
            self.spread, self.liquidity, self.profit,
            self.volatility, self.gas_efficiency, self.historical,
        )


@dataclass(frozen=True)
class ScoringScales:
    """Scale constants for the sub-score mappings and the confidence discounts."""
    spread_multiple: float = 3.0          # spread score = 100 at 3x min spread
    liquidity_multiple: float = 20.0      # liquidity score = 100 at 20x target size
    profit_scale: float = 25.0            # 4x min profit caps the score
    volatility_penalty: float = 1000.0
    gas_efficiency_scale: float = 10.0
    neutral_historical: float = 50.0
    low_liquidity_discount: float = 0.8
    stale_discount: float = 0.9
    stale_age_sec: float = 10.0


DEFAULT_WEIGHTS = ScoringWeights()
DEFAULT_SCALES = ScoringScales()


def _clip(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    if value != value:  # NaN
        return lo
    return max(lo, min(hi, value))


def extract_features(opp: Opportunity, now: float | None = None) -> OpportunityFeatures:
    """Feature vector used by the scorer, the risk assessor and the outcome record."""
    now = time.time() if now is None else now
    price_a = opp.price_a
    volatility = abs(price_a - opp.price_b) / price_a if price_a > 0 else 0.0
    if opp.gas_estimate > 0:
        profit_to_gas = opp.estimated_profit / opp.gas_estimate
    else:
        profit_to_gas = MAX_PROFIT_TO_GAS if opp.estimated_profit > 0 else 0.0
    return OpportunityFeatures(
        spread_pct=opp.spread_pct,
        estimated_profit=opp.estimated_profit,
        liquidity=opp.min_liquidity,
        volatility=volatility,
        profit_to_gas=profit_to_gas,
        age_sec=max(0.0, now - opp.created_at),
    )


def _score_spread(spread_pct: float, params: DynamicParameters, scales: ScoringScales) -> float:
    """Linear up to spread_multiple x min spread threshold."""
    full = params.min_spread_threshold * scales.spread_multiple
    if full <= 0:
        return 100.0 if spread_pct > 0 else 0.0
    return _clip(spread_pct / full * 100.0)


def _score_liquidity(liquidity: float, params: DynamicParameters, scales: ScoringScales) -> float:
    """Penalize pools that cannot absorb many multiples of our size."""
    optimal = params.target_trade_size * scales.liquidity_multiple
    if optimal <= 0:
        return 100.0
    return _clip(liquidity / optimal * 100.0)


def _score_profit(profit: float, params: DynamicParameters, scales: ScoringScales) -> float:
    """Multiple of the current min profit threshold, x25 (4x threshold caps at 100)."""
    if profit <= 0:
        return 0.0
    if params.min_profit_threshold <= 0:
        return 100.0
    return _clip(profit / params.min_profit_threshold * scales.profit_scale)


def _score_volatility(volatility: float, scales: ScoringScales) -> float:
    """Lower divergence between the pools = more stable = higher score."""
    return _clip(100.0 - volatility * scales.volatility_penalty)


def _score_gas_efficiency(profit_to_gas: float, scales: ScoringScales) -> float:
    return _clip(profit_to_gas * scales.gas_efficiency_scale)


def _score_historical(
    opp: Opportunity,
    history: HistorySnapshot,
    scales: ScoringScales,
) -> float:
    """Past success rate on this pool pair; neutral when we have never traded it."""
    rate = history.pair_success_rate(opp.pool_a.pool_id, opp.pool_b.pool_id)
    if rate is None:
        return scales.neutral_historical
    return _clip(rate * 100.0)


def _confidence(
    features: OpportunityFeatures,
    params: DynamicParameters,
    scales: ScoringScales,
) -> float:
    confidence = 1.0
    if features.liquidity < params.target_trade_size:
        confidence *= scales.low_liquidity_discount
    if features.age_sec > scales.stale_age_sec:
        confidence *= scales.stale_discount
    return max(0.0, min(1.0, confidence))


def score_features(
    features: OpportunityFeatures,
    params: DynamicParameters,
    historical: float,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    scales: ScoringScales = DEFAULT_SCALES,
) -> Score:
    """Pure scoring core: features + current parameters -> Score."""
    spread = _score_spread(features.spread_pct, params, scales)
    liquidity = _score_liquidity(features.liquidity, params, scales)
    profit = _score_profit(features.estimated_profit, params, scales)
    volatility = _score_volatility(features.volatility, scales)
    gas_efficiency = _score_gas_efficiency(features.profit_to_gas, scales)
    historical = _clip(historical)

    total = (
        weights.spread * spread
        + weights.liquidity * liquidity
        + weights.profit * profit
        + weights.volatility * volatility
        + weights.gas_efficiency * gas_efficiency
        + weights.historical * historical
    )

    return Score(
        overall=int(round(_clip(total))),
        spread=spread,
        liquidity=liquidity,
        profit=profit,
        volatility=volatility,
        gas_efficiency=gas_efficiency,
        historical=historical,
        confidence=_confidence(features, params, scales),
        features=features,
    )


def score_opportunity(
    opp: Opportunity,
    params: DynamicParameters,
    history: HistorySnapshot | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    scales: ScoringScales = DEFAULT_SCALES,
    now: float | None = None,
) -> Score:
    """
    Score an opportunity using a weighted composite of 6 factors.
    Returns Score with overall (0-100), per-factor breakdown and confidence.
    Higher score = better opportunity. No side effects.
    """
    history = history if history is not None else HistorySnapshot()
    features = extract_features(opp, now)
    historical = _score_historical(opp, history, scales)
    score = score_features(features, params, historical, weights, scales)
    logger.debug(
        "Scored %s: overall=%d spread=%.0f liq=%.0f profit=%.0f vol=%.0f gas=%.0f hist=%.0f conf=%.2f",
        opp.id, score.overall, score.spread, score.liquidity, score.profit,
        score.volatility, score.gas_efficiency, score.historical, score.confidence,
    )
    return score
