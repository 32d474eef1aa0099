"""
Execution pipeline. Gates, builds, simulates, verifies, submits and records a
single approved opportunity. Never raises to the caller: every call ends in
exactly one OutcomeRecord handed to the engine context.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from client.platform import ActionBuilder, ExecutionVenue
from scanner.models import (
    ExecutionOutcome,
    Opportunity,
    OutcomeRecord,
    Score,
    SimulationResult,
    SubmitResult,
)
from scanner.scorer import extract_features

if TYPE_CHECKING:
    from pipeline.context import EngineContext

logger = logging.getLogger(__name__)

GLOBAL_KEY = "*"


class PipelineStage(Enum):
    IDLE = "idle"
    GATING = "gating"
    BUILDING = "building"
    SIMULATING = "simulating"
    VERIFYING = "verifying"
    SUBMITTING = "submitting"
    RECORDING = "recording"


@dataclass(frozen=True)
class ExecutionResult:
    opportunity_id: str
    outcome: ExecutionOutcome
    stage: PipelineStage           # last stage reached before recording
    realized_profit: float = 0.0   # net of gas
    gas_cost: float = 0.0
    reference_id: str | None = None
    error: str | None = None
    execution_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome == ExecutionOutcome.SUCCESS


@dataclass
class _Attempt:
    """Mutable scratch for one pipeline run."""
    stage: PipelineStage = PipelineStage.IDLE
    outcome: ExecutionOutcome = ExecutionOutcome.EXECUTION_FAILED
    realized_profit: float = 0.0
    gas_cost: float = 0.0
    reference_id: str | None = None
    error: str | None = None


class ExecutionPipeline:
    """
    Single-flight execution over pluggable builder/venue collaborators.

    single_flight_scope="global" allows one attempt process-wide;
    "opportunity" allows one per opportunity id. In both scopes an id that
    has already been attempted is rejected until its TTL runs out.
    """

    def __init__(
        self,
        context: EngineContext,
        builder: ActionBuilder,
        venue: ExecutionVenue,
        single_flight_scope: Literal["global", "opportunity"] = "global",
    ) -> None:
        if single_flight_scope not in ("global", "opportunity"):
            raise ValueError(f"Unknown single-flight scope: {single_flight_scope}")
        self._context = context
        self._builder = builder
        self._venue = venue
        self._scope = single_flight_scope
        self._lock = threading.Lock()
        self._in_flight: dict[str, PipelineStage] = {}
        self._attempted: dict[str, float] = {}  # opportunity id -> created_at

    @property
    def scope(self) -> str:
        return self._scope

    def stages(self) -> dict[str, PipelineStage]:
        """Stage of every in-flight slot (empty when idle)."""
        with self._lock:
            return dict(self._in_flight)

    def _key(self, opp: Opportunity) -> str:
        return GLOBAL_KEY if self._scope == "global" else opp.id

    def _acquire(self, opp: Opportunity) -> str | None:
        """Claim the slot for this opportunity. Returns a rejection message or None."""
        key = self._key(opp)
        now = self._context.clock()
        ttl = self._context.detector.ttl_sec
        with self._lock:
            for oid in [o for o, created in self._attempted.items() if now - created > ttl]:
                del self._attempted[oid]
            if key in self._in_flight:
                return f"Execution already in flight ({key})"
            if opp.id in self._attempted:
                return f"Opportunity {opp.id} already attempted"
            self._in_flight[key] = PipelineStage.GATING
            self._attempted[opp.id] = opp.created_at
        return None

    def _release(self, opp: Opportunity) -> None:
        with self._lock:
            self._in_flight.pop(self._key(opp), None)

    def _enter(self, opp: Opportunity, attempt: _Attempt, stage: PipelineStage) -> None:
        attempt.stage = stage
        with self._lock:
            key = self._key(opp)
            if key in self._in_flight:
                self._in_flight[key] = stage

    async def execute(self, opp: Opportunity, score: Score | None = None) -> ExecutionResult:
        start = time.perf_counter()
        attempt = _Attempt()

        rejection = self._acquire(opp)
        if rejection is not None:
            attempt.outcome = ExecutionOutcome.CONCURRENCY_REJECTED
            attempt.error = rejection
            logger.info("Concurrency rejected %s: %s", opp.id, rejection)
            return self._finish(opp, score, attempt, start)

        try:
            await self._run(opp, attempt)
        except Exception as e:
            logger.exception("Pipeline error at stage %s for %s", attempt.stage.value, opp.id)
            attempt.outcome = ExecutionOutcome.EXECUTION_FAILED
            attempt.error = f"internal: {e}"
            attempt.realized_profit = 0.0
            attempt.gas_cost = 0.0
            self._context.safety.record_failure(0.0)
        finally:
            self._release(opp)

        return self._finish(opp, score, attempt, start)

    async def _run(self, opp: Opportunity, attempt: _Attempt) -> None:
        ctx = self._context
        trade_size = opp.trade_amount

        self._enter(opp, attempt, PipelineStage.GATING)
        if opp.is_expired(ctx.detector.ttl_sec, ctx.clock()):
            attempt.outcome = ExecutionOutcome.SAFETY_REJECTED
            attempt.error = f"Opportunity expired (age {opp.age(ctx.clock()):.1f}s)"
            logger.info("Safety rejected %s: %s", opp.id, attempt.error)
            return
        check = ctx.safety.check(trade_size)
        if not check.passed:
            attempt.outcome = ExecutionOutcome.SAFETY_REJECTED
            attempt.error = check.message
            logger.info("Safety rejected %s: %s", opp.id, check.message)
            return

        self._enter(opp, attempt, PipelineStage.BUILDING)
        action: Any = self._builder.build_action(opp, trade_size)

        self._enter(opp, attempt, PipelineStage.SIMULATING)
        sim: SimulationResult = await self._venue.simulate(action)
        if not sim.success:
            attempt.outcome = ExecutionOutcome.SIMULATION_FAILED
            attempt.error = sim.error or "simulation failed"
            ctx.safety.record_failure(0.0)
            logger.warning("Simulation failed for %s: %s", opp.id, attempt.error)
            return

        self._enter(opp, attempt, PipelineStage.VERIFYING)
        if sim.estimated_profit <= 0:
            attempt.outcome = ExecutionOutcome.UNPROFITABLE_SIMULATION
            attempt.error = f"Simulated profit ${sim.estimated_profit:.4f} <= 0"
            logger.info("Unprofitable simulation for %s: %s", opp.id, attempt.error)
            return

        self._enter(opp, attempt, PipelineStage.SUBMITTING)
        sub: SubmitResult = await self._venue.submit(action)
        attempt.gas_cost = sub.gas_cost
        attempt.reference_id = sub.reference_id
        attempt.realized_profit = sub.realized_profit - sub.gas_cost
        if not sub.success:
            attempt.outcome = ExecutionOutcome.EXECUTION_FAILED
            attempt.error = sub.error or "submit failed"
            ctx.safety.record_failure(max(0.0, sub.gas_cost))
            logger.warning("Execution failed for %s: %s (gas $%.4f)", opp.id, attempt.error, sub.gas_cost)
            return

        attempt.outcome = ExecutionOutcome.SUCCESS
        ctx.safety.record_success()
        logger.info(
            "Executed %s: size=%.0f profit=$%.4f gas=$%.4f ref=%s",
            opp.id, trade_size, attempt.realized_profit, sub.gas_cost, sub.reference_id,
        )

    def _finish(
        self,
        opp: Opportunity,
        score: Score | None,
        attempt: _Attempt,
        start: float,
    ) -> ExecutionResult:
        elapsed_ms = (time.perf_counter() - start) * 1000
        stage = attempt.stage
        attempt.stage = PipelineStage.RECORDING
        features = score.features if score is not None else extract_features(opp, self._context.clock())
        record = OutcomeRecord(
            timestamp=self._context.clock(),
            opportunity_id=opp.id,
            pool_a_id=opp.pool_a.pool_id,
            pool_b_id=opp.pool_b.pool_id,
            asset_pair=opp.asset_pair,
            score=score.overall if score is not None else 0,
            predicted_profit=opp.estimated_profit,
            realized_profit=attempt.realized_profit,
            trade_amount=opp.trade_amount,
            gas_cost=attempt.gas_cost,
            success=attempt.outcome == ExecutionOutcome.SUCCESS,
            outcome=attempt.outcome,
            error=attempt.error,
            reference_id=attempt.reference_id,
            execution_time_ms=elapsed_ms,
            features=features,
        )
        self._context.record_outcome(record)
        return ExecutionResult(
            opportunity_id=opp.id,
            outcome=attempt.outcome,
            stage=stage,
            realized_profit=attempt.realized_profit,
            gas_cost=attempt.gas_cost,
            reference_id=attempt.reference_id,
            error=attempt.error,
            execution_time_ms=elapsed_ms,
        )
