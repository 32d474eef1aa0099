"""
Trade sizing: target size capped by pool depth, smoothed toward what has
worked before on the same asset pair.
"""

from __future__ import annotations

import logging
import math

from monitor.history import HistorySnapshot
from scanner.models import DynamicParameters, Opportunity

logger = logging.getLogger(__name__)

DEFAULT_MAX_LIQUIDITY_FRACTION = 0.05


def optimize_trade_size(
    opp: Opportunity,
    params: DynamicParameters,
    history: HistorySnapshot | None = None,
    max_liquidity_fraction: float = DEFAULT_MAX_LIQUIDITY_FRACTION,
) -> float:
    """
    Compute the trade size for an opportunity. Returns a whole number >= 0.

    Never exceeds max_liquidity_fraction of the thinner pool. When history
    has successful trades on this asset pair, the result is the mean of the
    capped size and their average size.
    """
    size = params.target_trade_size
    liquidity_cap = max_liquidity_fraction * max(0.0, opp.min_liquidity)
    size = min(size, liquidity_cap)

    if history is not None:
        optimal = history.optimal_trade_size(opp.asset_pair)
        if optimal > 0:
            size = (size + optimal) / 2.0

    sized = float(math.floor(max(0.0, size)))
    logger.debug(
        "Sizing %s: target=%.0f cap=%.0f -> %.0f",
        opp.id, params.target_trade_size, liquidity_cap, sized,
    )
    return sized
