"""
Paper collaborators: a random-walk pool feed, an action builder and a venue
that simulates and "submits" without touching any chain. Lets the control
loop run end to end offline.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from scanner.models import Opportunity, PoolSnapshot, SimulationResult, SubmitResult

logger = logging.getLogger(__name__)

# Starting mid prices for the demo pairs; anything else starts at 1.0
_SEED_PRICES = {
    ("SUI", "USDC"): 1.0,
    ("DEEP", "SUI"): 0.05,
    ("DEEP", "USDC"): 0.05,
    ("SUI", "USDT"): 1.0,
}


class MockPoolFeed:
    """
    SnapshotSource producing `pools_per_pair` pools per asset pair. Each
    tick the pair's mid price takes a random-walk step and every pool quotes
    around it with independent jitter. Odd-numbered pools list the pair
    reversed (B/A).
    """

    def __init__(
        self,
        pairs: list[tuple[str, str]],
        pools_per_pair: int = 3,
        base_liquidity: float = 100_000.0,
        price_jitter: float = 0.02,
        seed: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if pools_per_pair < 2:
            raise ValueError("pools_per_pair must be >= 2 for any cross-pool spread")
        self._pairs = list(pairs)
        self._pools_per_pair = pools_per_pair
        self._base_liquidity = base_liquidity
        self._jitter = price_jitter
        self._rng = random.Random(seed)
        self._clock = clock
        self._mids = {pair: _SEED_PRICES.get(pair, 1.0) for pair in self._pairs}

    def _step(self, pair: tuple[str, str]) -> float:
        mid = self._mids[pair] * (1.0 + self._rng.gauss(0.0, self._jitter / 4))
        mid = max(mid, 1e-9)
        self._mids[pair] = mid
        return mid

    def get_snapshots(self) -> list[PoolSnapshot]:
        now = self._clock()
        snapshots: list[PoolSnapshot] = []
        for pair in self._pairs:
            mid = self._step(pair)
            a, b = pair
            for i in range(self._pools_per_pair):
                price = mid * (1.0 + self._rng.uniform(-self._jitter / 2, self._jitter / 2))
                liq_a = self._base_liquidity * (1.0 + self._rng.uniform(-0.2, 0.5))
                liq_b = liq_a * price
                pool_id = f"{a.lower()}_{b.lower()}_{i}"
                if i % 2:
                    snapshots.append(PoolSnapshot(
                        pool_id=pool_id, asset_a=b, asset_b=a,
                        price_a=1.0 / price, price_b=price,
                        liquidity_a=liq_b, liquidity_b=liq_a, timestamp=now,
                    ))
                else:
                    snapshots.append(PoolSnapshot(
                        pool_id=pool_id, asset_a=a, asset_b=b,
                        price_a=price, price_b=1.0 / price,
                        liquidity_a=liq_a, liquidity_b=liq_b, timestamp=now,
                    ))
        return snapshots


@dataclass(frozen=True)
class PaperAction:
    """Buy on the cheap pool, sell on the rich one, financed by a flash loan."""
    opportunity_id: str
    buy_pool: str
    sell_pool: str
    buy_price: float
    sell_price: float
    amount: float
    liquidity: float
    gas_estimate: float
    flash_fee_rate: float

    @property
    def gross_profit(self) -> float:
        return self.amount * (self.sell_price - self.buy_price) - self.amount * self.flash_fee_rate


class PaperActionBuilder:
    def __init__(self, flash_fee_rate: float = 0.0009) -> None:
        self._flash_fee_rate = flash_fee_rate

    def build_action(self, opp: Opportunity, trade_size: float) -> PaperAction:
        if opp.price_a <= opp.price_b:
            buy_pool, sell_pool = opp.pool_a.pool_id, opp.pool_b.pool_id
        else:
            buy_pool, sell_pool = opp.pool_b.pool_id, opp.pool_a.pool_id
        return PaperAction(
            opportunity_id=opp.id,
            buy_pool=buy_pool,
            sell_pool=sell_pool,
            buy_price=opp.buy_price,
            sell_price=opp.sell_price,
            amount=trade_size,
            liquidity=opp.min_liquidity,
            gas_estimate=opp.gas_estimate,
            flash_fee_rate=self._flash_fee_rate,
        )


class PaperVenue:
    """
    ExecutionVenue that fills at the quoted prices. simulate() reports the
    expected net profit; submit() fails with probability `failure_rate`
    (still paying gas) and otherwise reports the gross profit.
    """

    def __init__(
        self,
        failure_rate: float = 0.0,
        latency_sec: float = 0.0,
        seed: int | None = None,
        keep_submitted: int = 100,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be in [0, 1], got {failure_rate}")
        self._failure_rate = failure_rate
        self._latency_sec = latency_sec
        self._rng = random.Random(seed)
        self._refs = itertools.count(1)
        # Most recent fills only
        self.submitted: deque[PaperAction] = deque(maxlen=keep_submitted)

    async def simulate(self, action: PaperAction) -> SimulationResult:
        if self._latency_sec > 0:
            await asyncio.sleep(self._latency_sec)
        if action.amount <= 0:
            return SimulationResult(success=False, error="non-positive trade size")
        slippage = action.amount / action.liquidity if action.liquidity > 0 else 1.0
        return SimulationResult(
            success=True,
            estimated_profit=action.gross_profit - action.gas_estimate,
            estimated_gas=action.gas_estimate,
            estimated_slippage=slippage,
        )

    async def submit(self, action: PaperAction) -> SubmitResult:
        if self._latency_sec > 0:
            await asyncio.sleep(self._latency_sec)
        if self._failure_rate > 0 and self._rng.random() < self._failure_rate:
            logger.info("[PAPER] Submit rejected for %s", action.opportunity_id)
            return SubmitResult(
                success=False,
                gas_cost=action.gas_estimate,
                error="paper venue rejected transaction",
            )
        self.submitted.append(action)
        ref = f"paper_{next(self._refs)}"
        logger.info(
            "[PAPER] Executed %s: buy %s @ %.6f, sell %s @ %.6f, size=%.0f, gross=$%.4f",
            action.opportunity_id, action.buy_pool, action.buy_price,
            action.sell_pool, action.sell_price, action.amount, action.gross_profit,
        )
        return SubmitResult(
            success=True,
            reference_id=ref,
            realized_profit=action.gross_profit,
            gas_cost=action.gas_estimate,
        )
