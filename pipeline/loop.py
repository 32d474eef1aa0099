"""
Control loop. One tick: read snapshots, detect, score, size, assess, gate,
then hand approved opportunities to the execution pipeline.

Detection and scoring are pure per tick; they read one parameters snapshot
and one history snapshot. Execution is the only stage that awaits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable

from client.platform import SnapshotSource
from executor.engine import ExecutionPipeline, ExecutionResult
from executor.sizing import optimize_trade_size
from pipeline.context import EngineContext
from scanner.decision import evaluate
from scanner.models import Opportunity, PoolSnapshot, Score
from scanner.risk import assess_risk
from scanner.scorer import score_opportunity

logger = logging.getLogger(__name__)


@dataclass
class TickSummary:
    tick: int
    snapshots: int = 0
    detected: int = 0
    approved: int = 0
    rejections: Counter = field(default_factory=Counter)
    outcomes: Counter = field(default_factory=Counter)
    results: list[ExecutionResult] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "tick": self.tick,
            "snapshots": self.snapshots,
            "detected": self.detected,
            "approved": self.approved,
            "rejections": dict(self.rejections),
            "outcomes": dict(self.outcomes),
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


class ControlLoop:
    def __init__(
        self,
        context: EngineContext,
        source: SnapshotSource,
        pipeline: ExecutionPipeline | None = None,
        execute: bool = True,
        on_snapshots: Callable[[list[PoolSnapshot]], None] | None = None,
    ) -> None:
        self._context = context
        self._source = source
        self._pipeline = pipeline
        self._execute = execute and pipeline is not None
        self._on_snapshots = on_snapshots
        self._ticks = 0

    @property
    def ticks(self) -> int:
        return self._ticks

    def _evaluate(
        self,
        opportunities: list[Opportunity],
        summary: TickSummary,
    ) -> list[tuple[Opportunity, Score]]:
        ctx = self._context
        params = ctx.parameters.get()
        history = ctx.history.snapshot()
        now = ctx.clock()
        approved: list[tuple[Opportunity, Score]] = []

        for opp in opportunities:
            score = score_opportunity(opp, params, history, ctx.weights, ctx.scales, now)
            size = optimize_trade_size(opp, params, history, ctx.config.max_liquidity_fraction)
            risk = assess_risk(opp, score, size, params.risk_tolerance, ctx.risk_limits, now)
            decision = evaluate(score, risk, params, ctx.decision_policy)
            if not decision.approved:
                summary.rejections[decision.reason.value] += 1
                logger.info(
                    "Rejected %s: %s (score=%d conf=%.2f risk=%.1f profit=$%.4f)",
                    opp.id, decision.reason.value, score.overall, score.confidence,
                    risk.overall, opp.estimated_profit,
                )
                continue
            if size < 1:
                summary.rejections["zero_size"] += 1
                logger.info("Skipped %s: sized to zero (liquidity %.2f)", opp.id, opp.min_liquidity)
                continue
            opp.approved = True
            opp.trade_amount = size
            approved.append((opp, score))
            logger.info(
                "Approved %s: score=%d conf=%.2f risk=%.1f size=%.0f est_profit=$%.4f",
                opp.id, score.overall, score.confidence, risk.overall, size, opp.estimated_profit,
            )
        return approved

    async def tick(self) -> TickSummary:
        self._ticks += 1
        start = time.perf_counter()
        summary = TickSummary(tick=self._ticks)
        ctx = self._context

        snapshots = self._source.get_snapshots()
        summary.snapshots = len(snapshots)
        if self._on_snapshots is not None:
            try:
                self._on_snapshots(snapshots)
            except Exception:
                logger.exception("Snapshot hook failed")

        opportunities = ctx.detector.detect(snapshots, ctx.parameters.get())
        summary.detected = len(opportunities)

        approved = self._evaluate(opportunities, summary)
        summary.approved = len(approved)

        if approved and self._execute:
            if self._pipeline.scope == "opportunity":
                results = await asyncio.gather(
                    *(self._pipeline.execute(opp, score) for opp, score in approved)
                )
            else:
                results = []
                for opp, score in approved:
                    results.append(await self._pipeline.execute(opp, score))
            for result in results:
                summary.outcomes[result.outcome.value] += 1
            summary.results = list(results)

        summary.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("Tick %d: %s", summary.tick, summary.to_dict())
        return summary

    async def run(
        self,
        interval_sec: float,
        stop_event: asyncio.Event | None = None,
        max_ticks: int | None = None,
    ) -> int:
        """Tick until stopped. Tick errors are logged and the loop carries on."""
        stop_event = stop_event or asyncio.Event()
        ran = 0
        while not stop_event.is_set():
            if max_ticks is not None and ran >= max_ticks:
                break
            try:
                summary = await self.tick()
                if summary.detected or summary.outcomes:
                    logger.info(
                        "Tick %d: pools=%d detected=%d approved=%d outcomes=%s",
                        summary.tick, summary.snapshots, summary.detected,
                        summary.approved, dict(summary.outcomes) or "-",
                    )
            except Exception:
                logger.exception("Tick failed, continuing")
            ran += 1
            if max_ticks is not None and ran >= max_ticks:
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_sec)
            except asyncio.TimeoutError:
                pass
        logger.info("Control loop stopped after %d ticks", ran)
        return ran
