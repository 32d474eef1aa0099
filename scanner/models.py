"""
Data models for the arbitrage sentinel. Pure data, minimal behavior.
"""

from __future__ import annotations

import time
from enum import Enum
from dataclasses import dataclass, field, asdict
from typing import Any


class ExecutionOutcome(Enum):
    SUCCESS = "success"
    SAFETY_REJECTED = "safety_rejected"
    SIMULATION_FAILED = "simulation_failed"
    UNPROFITABLE_SIMULATION = "unprofitable_simulation"
    EXECUTION_FAILED = "execution_failed"
    CONCURRENCY_REJECTED = "concurrency_rejected"

    @property
    def attempted(self) -> bool:
        """True when the opportunity got past gating and reached the builder."""
        return self not in (ExecutionOutcome.SAFETY_REJECTED, ExecutionOutcome.CONCURRENCY_REJECTED)


class BreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass(frozen=True)
class PoolSnapshot:
    """One observation of a two-asset pool. Never mutated after creation."""
    pool_id: str
    asset_a: str
    asset_b: str
    price_a: float       # price of asset_a quoted in asset_b
    price_b: float       # price of asset_b quoted in asset_a
    liquidity_a: float
    liquidity_b: float
    timestamp: float = field(default_factory=time.time)

    @property
    def asset_pair(self) -> frozenset[str]:
        return frozenset((self.asset_a, self.asset_b))

    def oriented(self, base: str, quote: str) -> tuple[float, float]:
        """
        (price of base in quote, liquidity of base) for this pool.
        A pool listed as quote/base answers with its reverse side.
        """
        if self.asset_a == base and self.asset_b == quote:
            return self.price_a, self.liquidity_a
        if self.asset_a == quote and self.asset_b == base:
            return self.price_b, self.liquidity_b
        raise ValueError(f"Pool {self.pool_id} does not trade {base}/{quote}")


@dataclass
class Opportunity:
    """
    Cross-pool price discrepancy. Everything except trade_amount and
    approved is fixed at creation.
    """
    id: str
    pool_a: PoolSnapshot
    pool_b: PoolSnapshot
    spread: float
    spread_pct: float
    estimated_profit: float
    gas_estimate: float
    trade_amount: float
    created_at: float
    approved: bool = False

    @property
    def base_asset(self) -> str:
        return self.pool_a.asset_a

    @property
    def quote_asset(self) -> str:
        return self.pool_a.asset_b

    @property
    def price_a(self) -> float:
        return self.pool_a.oriented(self.base_asset, self.quote_asset)[0]

    @property
    def price_b(self) -> float:
        return self.pool_b.oriented(self.base_asset, self.quote_asset)[0]

    @property
    def buy_price(self) -> float:
        return min(self.price_a, self.price_b)

    @property
    def sell_price(self) -> float:
        return max(self.price_a, self.price_b)

    @property
    def min_liquidity(self) -> float:
        liq_a = self.pool_a.oriented(self.base_asset, self.quote_asset)[1]
        liq_b = self.pool_b.oriented(self.base_asset, self.quote_asset)[1]
        return min(liq_a, liq_b)

    @property
    def asset_pair(self) -> tuple[str, str]:
        return tuple(sorted((self.base_asset, self.quote_asset)))  # type: ignore[return-value]

    @property
    def pool_pair(self) -> frozenset[str]:
        return frozenset((self.pool_a.pool_id, self.pool_b.pool_id))

    def age(self, now: float | None = None) -> float:
        return (time.time() if now is None else now) - self.created_at

    def is_expired(self, ttl_sec: float, now: float | None = None) -> bool:
        return self.age(now) > ttl_sec


@dataclass(frozen=True)
class OpportunityFeatures:
    spread_pct: float
    estimated_profit: float
    liquidity: float
    volatility: float
    profit_to_gas: float
    age_sec: float

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> OpportunityFeatures:
        return cls(
            spread_pct=float(data.get("spread_pct", 0.0)),
            estimated_profit=float(data.get("estimated_profit", 0.0)),
            liquidity=float(data.get("liquidity", 0.0)),
            volatility=float(data.get("volatility", 0.0)),
            profit_to_gas=float(data.get("profit_to_gas", 0.0)),
            age_sec=float(data.get("age_sec", 0.0)),
        )


@dataclass(frozen=True)
class Score:
    """Composite desirability (0-100) with per-factor breakdown."""
    overall: int
    spread: float
    liquidity: float
    profit: float
    volatility: float
    gas_efficiency: float
    historical: float
    confidence: float
    features: OpportunityFeatures


@dataclass(frozen=True)
class RiskProfile:
    overall: float
    liquidity_risk: float
    slippage_risk: float
    gas_risk: float
    execution_risk: float
    acceptable: bool
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class DynamicParameters:
    """Self-tuned decision thresholds. Replaced whole, never edited in place."""
    min_spread_threshold: float
    min_profit_threshold: float
    max_slippage: float
    target_trade_size: float
    risk_tolerance: float  # 0-1

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SafetyState:
    shutdown: bool
    consecutive_failures: int
    loss_since_reset: float
    last_reset: float
    breaker: BreakerState

    def to_dict(self) -> dict:
        return {
            "shutdown": self.shutdown,
            "consecutive_failures": self.consecutive_failures,
            "loss_since_reset": self.loss_since_reset,
            "last_reset": self.last_reset,
            "breaker": self.breaker.value,
        }


@dataclass(frozen=True)
class SimulationResult:
    success: bool
    estimated_profit: float = 0.0
    estimated_gas: float = 0.0
    estimated_slippage: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class SubmitResult:
    success: bool
    reference_id: str | None = None
    realized_profit: float = 0.0  # gross, before gas
    gas_cost: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class OutcomeRecord:
    """One execution attempt, append-only. realized_profit is net of gas."""
    timestamp: float
    opportunity_id: str
    pool_a_id: str
    pool_b_id: str
    asset_pair: tuple[str, str]
    score: int
    predicted_profit: float
    realized_profit: float
    trade_amount: float
    gas_cost: float
    success: bool
    outcome: ExecutionOutcome
    error: str | None = None
    reference_id: str | None = None
    execution_time_ms: float = 0.0
    features: OpportunityFeatures | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict."""
        return {
            "timestamp": self.timestamp,
            "opportunity_id": self.opportunity_id,
            "pool_a_id": self.pool_a_id,
            "pool_b_id": self.pool_b_id,
            "asset_pair": list(self.asset_pair),
            "score": self.score,
            "predicted_profit": self.predicted_profit,
            "realized_profit": self.realized_profit,
            "trade_amount": self.trade_amount,
            "gas_cost": self.gas_cost,
            "success": self.success,
            "outcome": self.outcome.value,
            "error": self.error,
            "reference_id": self.reference_id,
            "execution_time_ms": self.execution_time_ms,
            "features": self.features.to_dict() if self.features else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OutcomeRecord:
        """Restore from a serialized dict."""
        features = data.get("features")
        pair = data.get("asset_pair") or ("", "")
        return cls(
            timestamp=float(data["timestamp"]),
            opportunity_id=data["opportunity_id"],
            pool_a_id=data.get("pool_a_id", ""),
            pool_b_id=data.get("pool_b_id", ""),
            asset_pair=(pair[0], pair[1]),
            score=int(data.get("score", 0)),
            predicted_profit=float(data.get("predicted_profit", 0.0)),
            realized_profit=float(data.get("realized_profit", 0.0)),
            trade_amount=float(data.get("trade_amount", 0.0)),
            gas_cost=float(data.get("gas_cost", 0.0)),
            success=bool(data.get("success", False)),
            outcome=ExecutionOutcome(data.get("outcome", ExecutionOutcome.EXECUTION_FAILED.value)),
            error=data.get("error"),
            reference_id=data.get("reference_id"),
            execution_time_ms=float(data.get("execution_time_ms", 0.0)),
            features=OpportunityFeatures.from_dict(features) if features else None,
        )


@dataclass(frozen=True)
class HistoricalStats:
    total_count: int
    success_count: int
    avg_profit: float

    @property
    def success_rate(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.success_count / self.total_count

    def to_dict(self) -> dict:
        return {
            "total_count": self.total_count,
            "success_count": self.success_count,
            "avg_profit": self.avg_profit,
            "success_rate": self.success_rate,
        }
