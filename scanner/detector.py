"""
Cross-pool spread detection. Compares every pair of pools that trade the
same asset pair and emits candidate opportunities above a coarse floor.

The real accept/reject decision happens later (scorer + decision gate);
this pass only throws away pairs that can never be worth scoring.
"""

from __future__ import annotations

import logging
import threading
import time
from itertools import combinations
from typing import Callable

from scanner.models import DynamicParameters, Opportunity, PoolSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TTL_SEC = 30.0
DEFAULT_GAS_ESTIMATE = 0.001
DEFAULT_FLASH_FEE_RATE = 0.0009


def make_opportunity_id(pool_a_id: str, pool_b_id: str, created_at: float) -> str:
    return f"arb_{pool_a_id}_{pool_b_id}_{int(created_at * 1000)}"


class OpportunityDetector:
    """
    Detects spreads and keeps the live opportunity set. Entries are purged
    once their TTL elapses and are never handed out again.
    """

    def __init__(
        self,
        ttl_sec: float = DEFAULT_TTL_SEC,
        gas_estimate: float = DEFAULT_GAS_ESTIMATE,
        flash_fee_rate: float = DEFAULT_FLASH_FEE_RATE,
        default_trade_amount: float = 1000.0,
        coarse_spread_factor: float = 0.5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl_sec = ttl_sec
        self._gas_estimate = gas_estimate
        self._flash_fee_rate = flash_fee_rate
        self._default_trade_amount = default_trade_amount
        self._coarse_spread_factor = coarse_spread_factor
        self._clock = clock
        self._opportunities: dict[str, Opportunity] = {}
        # Status readers run on the report server thread
        self._lock = threading.Lock()

    @property
    def ttl_sec(self) -> float:
        return self._ttl_sec

    def detect(
        self,
        snapshots: list[PoolSnapshot],
        params: DynamicParameters,
    ) -> list[Opportunity]:
        """Scan all same-pair pool combinations. Returns newly created opportunities."""
        now = self._clock()
        floor_pct = params.min_spread_threshold * self._coarse_spread_factor
        found: list[Opportunity] = []

        for pool_x, pool_y in combinations(snapshots, 2):
            if pool_x.pool_id == pool_y.pool_id:
                continue
            if pool_x.asset_pair != pool_y.asset_pair:
                continue
            opp = self._analyze_pair(pool_x, pool_y, floor_pct, now)
            if opp is not None:
                found.append(opp)

        with self._lock:
            self._purge_expired(now)
            for opp in found:
                self._opportunities[opp.id] = opp

        if found:
            logger.debug("Detected %d opportunities across %d pools", len(found), len(snapshots))
        return found

    def _analyze_pair(
        self,
        pool_x: PoolSnapshot,
        pool_y: PoolSnapshot,
        floor_pct: float,
        now: float,
    ) -> Opportunity | None:
        base, quote = pool_x.asset_a, pool_x.asset_b
        price_x, _ = pool_x.oriented(base, quote)
        price_y, _ = pool_y.oriented(base, quote)
        if price_x <= 0 or price_y <= 0:
            return None

        spread = abs(price_x - price_y)
        spread_pct = spread / min(price_x, price_y)
        if spread_pct < floor_pct:
            logger.debug(
                "Skipped %s/%s: spread %.4f%% below floor %.4f%%",
                pool_x.pool_id, pool_y.pool_id, spread_pct * 100, floor_pct * 100,
            )
            return None

        amount = self._default_trade_amount
        gross = amount * (max(price_x, price_y) - min(price_x, price_y))
        fees = self._gas_estimate + amount * self._flash_fee_rate
        profit = gross - fees
        if profit < 0:
            logger.debug(
                "Skipped %s/%s: fees $%.4f exceed gross $%.4f",
                pool_x.pool_id, pool_y.pool_id, fees, gross,
            )
            return None

        return Opportunity(
            id=make_opportunity_id(pool_x.pool_id, pool_y.pool_id, now),
            pool_a=pool_x,
            pool_b=pool_y,
            spread=spread,
            spread_pct=spread_pct,
            estimated_profit=profit,
            gas_estimate=self._gas_estimate,
            trade_amount=amount,
            created_at=now,
        )

    def _purge_expired(self, now: float) -> None:
        expired = [
            oid for oid, opp in self._opportunities.items()
            if opp.is_expired(self._ttl_sec, now)
        ]
        for oid in expired:
            del self._opportunities[oid]

    def active(self) -> list[Opportunity]:
        """All opportunities still inside their TTL."""
        with self._lock:
            self._purge_expired(self._clock())
            return list(self._opportunities.values())

    def get(self, opportunity_id: str) -> Opportunity | None:
        with self._lock:
            opp = self._opportunities.get(opportunity_id)
            if opp is None:
                return None
            if opp.is_expired(self._ttl_sec, self._clock()):
                del self._opportunities[opportunity_id]
                return None
            return opp

    def count(self) -> int:
        return len(self.active())
