"""
Decision gate: four ordered checks on score and risk. The first failing
check decides the rejection reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from scanner.models import DynamicParameters, RiskProfile, Score

logger = logging.getLogger(__name__)


class RejectReason(Enum):
    LOW_SCORE = "low_score"
    RISK_UNACCEPTABLE = "risk_unacceptable"
    LOW_CONFIDENCE = "low_confidence"
    BELOW_MIN_PROFIT = "below_min_profit"


@dataclass(frozen=True)
class DecisionPolicy:
    min_score: float = 60.0
    min_confidence: float = 0.7


@dataclass(frozen=True)
class GateDecision:
    approved: bool
    reason: RejectReason | None = None


DEFAULT_POLICY = DecisionPolicy()
_APPROVED = GateDecision(approved=True)


def evaluate(
    score: Score,
    risk: RiskProfile,
    params: DynamicParameters,
    policy: DecisionPolicy = DEFAULT_POLICY,
) -> GateDecision:
    if score.overall < policy.min_score:
        return GateDecision(False, RejectReason.LOW_SCORE)
    if not risk.acceptable:
        return GateDecision(False, RejectReason.RISK_UNACCEPTABLE)
    if score.confidence < policy.min_confidence:
        return GateDecision(False, RejectReason.LOW_CONFIDENCE)
    if score.features.estimated_profit < params.min_profit_threshold:
        return GateDecision(False, RejectReason.BELOW_MIN_PROFIT)
    return _APPROVED


def should_execute(
    score: Score,
    risk: RiskProfile,
    params: DynamicParameters,
    policy: DecisionPolicy = DEFAULT_POLICY,
) -> bool:
    return evaluate(score, risk, params, policy).approved
