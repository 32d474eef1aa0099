"""
Engine context: owns every piece of mutable engine state and the policies
built from Config. Passed explicitly to the loop, the pipeline and the
status server; there are no module-level singletons.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from client.platform import OutcomeSink
from config import Config
from executor.safety import SafetyGate
from monitor.history import OutcomeHistory
from scanner.decision import DecisionPolicy
from scanner.detector import OpportunityDetector
from scanner.models import DynamicParameters, OutcomeRecord
from scanner.parameters import ParameterStore
from scanner.risk import RiskLimits
from scanner.scorer import ScoringScales, ScoringWeights
from scanner.tuner import ParameterTuner, TunerPolicy

logger = logging.getLogger(__name__)


@dataclass
class EngineContext:
    config: Config
    parameters: ParameterStore
    safety: SafetyGate
    history: OutcomeHistory
    tuner: ParameterTuner
    detector: OpportunityDetector
    weights: ScoringWeights
    scales: ScoringScales
    risk_limits: RiskLimits
    decision_policy: DecisionPolicy
    sinks: list[OutcomeSink] = field(default_factory=list)
    clock: Callable[[], float] = time.time
    started_at: float = field(default_factory=time.time)

    def add_sink(self, sink: OutcomeSink) -> None:
        self.sinks.append(sink)

    def record_outcome(self, record: OutcomeRecord) -> None:
        """Append to the ring, fan out to sinks, then let the tuner look at it."""
        total = self.history.append(record)
        for sink in self.sinks:
            try:
                sink.emit(record)
            except Exception:
                logger.exception("Outcome sink %s failed for %s", type(sink).__name__, record.opportunity_id)
        try:
            self.tuner.observe(total)
        except Exception:
            logger.exception("Parameter tuning failed after %d records", total)

    def status(self) -> dict[str, Any]:
        """Observability snapshot: parameters, safety state, open opportunities, counts."""
        now = self.clock()
        params = self.parameters.get()
        opportunities = self.detector.active()
        stats = self.history.stats(24.0)
        return {
            "uptime_sec": round(max(0.0, now - self.started_at), 1),
            "parameters": params.to_dict(),
            "safety": self.safety.state().to_dict(),
            "open_opportunities": len(opportunities),
            "opportunities": [
                {
                    "id": o.id,
                    "pool_a": o.pool_a.pool_id,
                    "pool_b": o.pool_b.pool_id,
                    "asset_pair": list(o.asset_pair),
                    "spread_pct": o.spread_pct,
                    "estimated_profit": o.estimated_profit,
                    "trade_amount": o.trade_amount,
                    "approved": o.approved,
                    "age_sec": round(o.age(now), 2),
                }
                for o in opportunities
            ],
            "outcomes_recorded": self.history.total_recorded,
            "stats_24h": stats.to_dict(),
        }


def initial_parameters(cfg: Config) -> DynamicParameters:
    return DynamicParameters(
        min_spread_threshold=cfg.min_spread_threshold,
        min_profit_threshold=cfg.min_profit_threshold,
        max_slippage=cfg.max_slippage,
        target_trade_size=cfg.default_trade_amount,
        risk_tolerance=cfg.initial_risk_tolerance,
    )


def build_context(
    cfg: Config,
    sinks: Iterable[OutcomeSink] = (),
    clock: Callable[[], float] = time.time,
) -> EngineContext:
    """Wire up a fresh engine from config."""
    parameters = ParameterStore(initial_parameters(cfg))
    history = OutcomeHistory(maxlen=cfg.history_size, clock=clock)
    tuner = ParameterTuner(
        parameters,
        history,
        TunerPolicy(
            every_n=cfg.tune_every_n,
            window=cfg.tune_window,
            high_success_rate=cfg.high_success_rate,
            low_success_rate=cfg.low_success_rate,
            risk_step=cfg.risk_tolerance_step,
            risk_floor=cfg.risk_tolerance_floor,
            risk_ceiling=cfg.risk_tolerance_ceiling,
        ),
    )
    safety = SafetyGate(
        max_consecutive_failures=cfg.max_consecutive_failures,
        max_daily_loss=cfg.max_daily_loss,
        max_position_size=cfg.max_position_size,
        loss_window_sec=cfg.loss_window_hours * 3600.0,
        clock=clock,
    )
    detector = OpportunityDetector(
        ttl_sec=cfg.opportunity_ttl_sec,
        gas_estimate=cfg.gas_estimate,
        flash_fee_rate=cfg.flash_loan_fee_rate,
        default_trade_amount=cfg.default_trade_amount,
        coarse_spread_factor=cfg.coarse_spread_factor,
        clock=clock,
    )
    weights = ScoringWeights(
        spread=cfg.weight_spread,
        liquidity=cfg.weight_liquidity,
        profit=cfg.weight_profit,
        volatility=cfg.weight_volatility,
        gas_efficiency=cfg.weight_gas_efficiency,
        historical=cfg.weight_historical,
    )
    scales = ScoringScales(
        spread_multiple=cfg.spread_score_multiple,
        liquidity_multiple=cfg.liquidity_depth_multiple,
        profit_scale=cfg.profit_score_scale,
        volatility_penalty=cfg.volatility_penalty,
        gas_efficiency_scale=cfg.gas_efficiency_scale,
        neutral_historical=cfg.neutral_historical_score,
        low_liquidity_discount=cfg.low_liquidity_confidence_discount,
        stale_discount=cfg.stale_confidence_discount,
        stale_age_sec=cfg.stale_confidence_age_sec,
    )
    limits = RiskLimits(
        liquidity_scale=cfg.liquidity_risk_scale,
        slippage_scale=cfg.slippage_risk_scale,
        gas_scale=cfg.gas_risk_scale,
        execution_base=cfg.execution_base_risk,
        execution_age_cap=cfg.execution_age_risk_cap,
        component_warning=cfg.risk_warning_threshold,
        overall_warning=cfg.overall_risk_warning_threshold,
    )
    policy = DecisionPolicy(min_score=cfg.min_score, min_confidence=cfg.min_confidence)

    return EngineContext(
        config=cfg,
        parameters=parameters,
        safety=safety,
        history=history,
        tuner=tuner,
        detector=detector,
        weights=weights,
        scales=scales,
        risk_limits=limits,
        decision_policy=policy,
        sinks=list(sinks),
        clock=clock,
        started_at=clock(),
    )
