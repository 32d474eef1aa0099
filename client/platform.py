"""
Collaborator protocols. The decision core never talks to a chain, a wallet
or a market-data API directly; anything satisfying these protocols can be
plugged into the control loop and the execution pipeline.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from scanner.models import (
    Opportunity,
    OutcomeRecord,
    PoolSnapshot,
    SimulationResult,
    SubmitResult,
)


@runtime_checkable
class SnapshotSource(Protocol):
    """Market-data side: current state of every watched pool."""

    def get_snapshots(self) -> list[PoolSnapshot]:
        ...


@runtime_checkable
class ActionBuilder(Protocol):
    """Turns an approved opportunity into a venue-specific action (opaque to the core)."""

    def build_action(self, opp: Opportunity, trade_size: float) -> Any:
        ...


@runtime_checkable
class ExecutionVenue(Protocol):
    """
    Dry-run and submission. Both are awaited; failures are reported in the
    result value, not raised.
    """

    async def simulate(self, action: Any) -> SimulationResult:
        ...

    async def submit(self, action: Any) -> SubmitResult:
        """realized_profit is gross; the pipeline subtracts gas_cost."""
        ...


@runtime_checkable
class OutcomeSink(Protocol):
    """Persistence side: receives every OutcomeRecord once."""

    def emit(self, record: OutcomeRecord) -> None:
        ...
