"""
Self-tuning of the dynamic parameters from recent execution outcomes.

Every N recorded outcomes, look at the last `window` records:
- success rate above the high band -> accept a little more risk
- success rate below the low band  -> accept a little less
- profits running well above min_profit -> raise the bar
- profits running well below it         -> lower the bar
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable

from monitor.history import OutcomeHistory, summarize
from scanner.models import DynamicParameters, HistoricalStats
from scanner.parameters import ParameterStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TunerPolicy:
    every_n: int = 10
    window: int = 50
    high_success_rate: float = 0.8
    low_success_rate: float = 0.5
    risk_step: float = 0.05
    risk_floor: float = 0.3
    risk_ceiling: float = 0.7
    profit_raise_factor: float = 1.1
    profit_lower_factor: float = 0.9
    profit_high_multiple: float = 2.0
    profit_low_multiple: float = 0.5


@dataclass(frozen=True)
class TuningResult:
    previous: DynamicParameters
    current: DynamicParameters
    stats: HistoricalStats

    @property
    def changed(self) -> bool:
        return self.previous != self.current


def adjust_parameters(
    params: DynamicParameters,
    stats: HistoricalStats,
    policy: TunerPolicy,
) -> DynamicParameters:
    """Pure adjustment step. Empty stats leave the parameters unchanged."""
    if stats.total_count == 0:
        return params

    risk_tolerance = params.risk_tolerance
    rate = stats.success_rate
    if rate > policy.high_success_rate:
        risk_tolerance = min(policy.risk_ceiling, risk_tolerance + policy.risk_step)
    elif rate < policy.low_success_rate:
        risk_tolerance = max(policy.risk_floor, risk_tolerance - policy.risk_step)

    # A window with no successes has avg_profit 0 and loosens the bar.
    min_profit = params.min_profit_threshold
    if stats.avg_profit > min_profit * policy.profit_high_multiple:
        min_profit *= policy.profit_raise_factor
    elif stats.avg_profit < min_profit * policy.profit_low_multiple:
        min_profit *= policy.profit_lower_factor

    return replace(params, risk_tolerance=risk_tolerance, min_profit_threshold=min_profit)


class ParameterTuner:
    def __init__(
        self,
        store: ParameterStore,
        history: OutcomeHistory,
        policy: TunerPolicy | None = None,
        on_update: Callable[[DynamicParameters, HistoricalStats], None] | None = None,
    ) -> None:
        self._store = store
        self._history = history
        self._policy = policy or TunerPolicy()
        self._on_update = on_update

    @property
    def policy(self) -> TunerPolicy:
        return self._policy

    def set_on_update(self, hook: Callable[[DynamicParameters, HistoricalStats], None] | None) -> None:
        self._on_update = hook

    def observe(self, total_recorded: int) -> TuningResult | None:
        """Called after every recorded outcome. Tunes on every Nth record."""
        if total_recorded <= 0 or total_recorded % self._policy.every_n != 0:
            return None
        return self.tune()

    def tune(self) -> TuningResult:
        stats = summarize(self._history.recent(self._policy.window))
        seen: list[DynamicParameters] = []

        def step(params: DynamicParameters) -> DynamicParameters:
            seen.append(params)
            return adjust_parameters(params, stats, self._policy)

        current = self._store.apply(step)
        previous = seen[0]
        result = TuningResult(previous=previous, current=current, stats=stats)

        if result.changed:
            logger.info(
                "Tuned parameters: risk_tolerance %.2f -> %.2f, min_profit %.4f -> %.4f "
                "(success_rate=%.2f avg_profit=%.4f n=%d)",
                previous.risk_tolerance, current.risk_tolerance,
                previous.min_profit_threshold, current.min_profit_threshold,
                stats.success_rate, stats.avg_profit, stats.total_count,
            )
        else:
            logger.debug(
                "Tuner: no change (success_rate=%.2f avg_profit=%.4f n=%d)",
                stats.success_rate, stats.avg_profit, stats.total_count,
            )

        if self._on_update is not None:
            try:
                self._on_update(current, stats)
            except Exception:
                logger.exception("Parameter update hook failed")
        return result
