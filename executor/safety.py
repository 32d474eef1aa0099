"""
Pre-trade safety checks and the circuit breaker. Rejections are returned as
values so the pipeline can record them; nothing here raises on a trip.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from scanner.models import BreakerState, SafetyState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SafetyCheck:
    passed: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        return "; ".join(self.reasons)


class SafetyGate:
    """
    Tracks failures and losses. The breaker opens when consecutive failures
    or the rolling loss reach their limits, or on operator shutdown.

    All state sits behind one lock; check() and the record_* calls are safe
    from both the event loop and the status server thread.
    """

    def __init__(
        self,
        max_consecutive_failures: int = 5,
        max_daily_loss: float = 10.0,
        max_position_size: float = 1000.0,
        loss_window_sec: float = 86400.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_consecutive_failures = max_consecutive_failures
        self.max_daily_loss = max_daily_loss
        self.max_position_size = max_position_size
        self.loss_window_sec = loss_window_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._shutdown = False
        self._consecutive_failures = 0
        self._loss_since_reset = 0.0
        self._last_reset = clock()

    def _maybe_reset_window(self, now: float) -> None:
        if now - self._last_reset >= self.loss_window_sec:
            if self._loss_since_reset > 0:
                logger.info("Loss window elapsed, resetting loss counter ($%.4f)", self._loss_since_reset)
            self._loss_since_reset = 0.0
            self._last_reset = now

    def _tripped(self) -> bool:
        return (
            self._shutdown
            or self._consecutive_failures >= self.max_consecutive_failures
            or self._loss_since_reset >= self.max_daily_loss
        )

    def check(self, trade_size: float) -> SafetyCheck:
        """Run all pre-trade checks. Every failing guard contributes a reason."""
        with self._lock:
            self._maybe_reset_window(self._clock())
            reasons: list[str] = []
            if self._shutdown:
                reasons.append("Emergency shutdown active")
            if self._consecutive_failures >= self.max_consecutive_failures:
                reasons.append(
                    f"Consecutive failures: {self._consecutive_failures} >= {self.max_consecutive_failures}"
                )
            if self._loss_since_reset >= self.max_daily_loss:
                reasons.append(
                    f"Daily loss limit reached: ${self._loss_since_reset:.2f} >= ${self.max_daily_loss:.2f}"
                )
            if trade_size > self.max_position_size:
                reasons.append(
                    f"Position size {trade_size:.2f} exceeds max {self.max_position_size:.2f}"
                )
        if reasons:
            logger.warning("Safety check failed: %s", "; ".join(reasons))
        return SafetyCheck(passed=not reasons, reasons=tuple(reasons))

    def record_failure(self, cost: float = 0.0) -> None:
        if cost < 0:
            raise ValueError(f"Failure cost must be non-negative, got {cost}")
        with self._lock:
            self._maybe_reset_window(self._clock())
            was_tripped = self._tripped()
            self._consecutive_failures += 1
            self._loss_since_reset += cost
            tripped = self._tripped()
            failures, loss = self._consecutive_failures, self._loss_since_reset
        if tripped and not was_tripped:
            logger.critical(
                "CIRCUIT BREAKER OPEN: failures=%d loss=$%.4f", failures, loss,
            )

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_failures = 0

    def shutdown(self) -> None:
        with self._lock:
            already = self._shutdown
            self._shutdown = True
        if not already:
            logger.critical("Emergency shutdown requested")

    def restart(self) -> None:
        """Clear shutdown and the failure count. The loss counter is kept."""
        with self._lock:
            self._shutdown = False
            self._consecutive_failures = 0
        logger.warning("Safety gate restarted")

    def state(self) -> SafetyState:
        with self._lock:
            self._maybe_reset_window(self._clock())
            return SafetyState(
                shutdown=self._shutdown,
                consecutive_failures=self._consecutive_failures,
                loss_since_reset=self._loss_since_reset,
                last_reset=self._last_reset,
                breaker=BreakerState.OPEN if self._tripped() else BreakerState.CLOSED,
            )
