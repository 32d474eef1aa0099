"""
Scorer weight grid search over recorded outcomes.

Each ledger record carries the feature vector it was scored on. The factor
sub-scores are recomputed once from those features; every weight
configuration then reweights them and is judged by how well the resulting
composite separates trades that made money from attempts that did not.

Usage:
    python -m benchmark.weight_search --input logs/transactions.jsonl --output PATH [--step 0.05] [--top 10]
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path

from monitor.ledger import load_records
from scanner.models import DynamicParameters, OutcomeRecord, Score
from scanner.scorer import DEFAULT_SCALES, ScoringScales, ScoringWeights, score_features


# ── Data models ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WeightResult:
    """Result of evaluating a single weight configuration."""
    weights: ScoringWeights
    separation: float       # mean score(winners) - mean score(losers)
    weighted_profit: float  # mean of score/100 * realized profit
    mean_score: float


# ── Grid generation ──────────────────────────────────────────────────────

def generate_weight_grid(
    step: float = 0.05,
    min_w: float = 0.05,
    max_w: float = 0.40,
) -> list[ScoringWeights]:
    """
    All weight combinations summing to 1.0 with each weight in [min_w, max_w].

    Integer steps avoid floating-point drift; the 6th weight is derived from
    the sum constraint.
    """
    total_steps = round(1.0 / step)
    min_s = round(min_w / step)
    max_s = round(max_w / step)

    grid: list[ScoringWeights] = []
    span = range(min_s, max_s + 1)
    for w1 in span:
        for w2 in span:
            for w3 in span:
                for w4 in span:
                    remainder = total_steps - w1 - w2 - w3 - w4
                    if remainder < 2 * min_s or remainder > 2 * max_s:
                        continue
                    for w5 in span:
                        w6 = remainder - w5
                        if min_s <= w6 <= max_s:
                            grid.append(ScoringWeights(
                                spread=w1 / total_steps,
                                liquidity=w2 / total_steps,
                                profit=w3 / total_steps,
                                volatility=w4 / total_steps,
                                gas_efficiency=w5 / total_steps,
                                historical=w6 / total_steps,
                            ))
    return grid


# ── Evaluation ───────────────────────────────────────────────────────────

def _is_winner(record: OutcomeRecord) -> bool:
    return record.success and record.realized_profit > 0


def _reweight(score: Score, w: ScoringWeights) -> float:
    return (
        w.spread * score.spread
        + w.liquidity * score.liquidity
        + w.profit * score.profit
        + w.volatility * score.volatility
        + w.gas_efficiency * score.gas_efficiency
        + w.historical * score.historical
    )


def scoreable_records(records: list[OutcomeRecord]) -> list[OutcomeRecord]:
    return [r for r in records if r.features is not None and r.outcome.attempted]


def evaluate_weights(
    records: list[OutcomeRecord],
    grid: list[ScoringWeights],
    params: DynamicParameters,
    scales: ScoringScales = DEFAULT_SCALES,
) -> list[WeightResult]:
    """
    Evaluate each weight configuration. Returns results sorted by separation,
    then weighted profit, descending.
    """
    usable = scoreable_records(records)
    if not usable:
        return [WeightResult(w, 0.0, 0.0, 0.0) for w in grid]

    # Factor scores do not depend on the weights
    scored = [
        score_features(r.features, params, scales.neutral_historical, scales=scales)
        for r in usable
    ]
    winners = [_is_winner(r) for r in usable]
    n = len(usable)
    n_win = sum(winners)

    results: list[WeightResult] = []
    for w in grid:
        composite = [_reweight(s, w) for s in scored]
        mean_score = sum(composite) / n
        if 0 < n_win < n:
            win_mean = sum(c for c, ok in zip(composite, winners) if ok) / n_win
            lose_mean = sum(c for c, ok in zip(composite, winners) if not ok) / (n - n_win)
            separation = win_mean - lose_mean
        else:
            separation = 0.0
        weighted_profit = sum(
            c / 100.0 * r.realized_profit for c, r in zip(composite, usable)
        ) / n
        results.append(WeightResult(w, separation, weighted_profit, mean_score))

    results.sort(key=lambda r: (r.separation, r.weighted_profit), reverse=True)
    return results


# ── CLI ──────────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="benchmark.weight_search",
        description="Grid search for scorer weights that best separate winning trades.",
    )
    parser.add_argument("--input", required=True, help="Path to the JSONL outcome ledger")
    parser.add_argument("--output", required=True, help="Path to write JSON results")
    parser.add_argument("--step", type=float, default=0.05, help="Grid step size (default: 0.05)")
    parser.add_argument("--top", type=int, default=10, help="Number of top results (default: 10)")
    parser.add_argument("--min-spread", type=float, default=0.005, help="Min spread threshold for re-scoring")
    parser.add_argument("--min-profit", type=float, default=0.1, help="Min profit threshold for re-scoring")
    parser.add_argument("--target-size", type=float, default=1000.0, help="Target trade size for re-scoring")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI: python -m benchmark.weight_search --input PATH --output PATH"""
    args = _build_parser().parse_args(argv)
    output_path = Path(args.output)

    records = load_records(args.input)
    usable = scoreable_records(records)
    if not usable:
        print("No executed outcomes with features found in input ledger.")
        sys.exit(1)

    params = DynamicParameters(
        min_spread_threshold=args.min_spread,
        min_profit_threshold=args.min_profit,
        max_slippage=0.01,
        target_trade_size=args.target_size,
        risk_tolerance=0.5,
    )

    print(f"Loaded {len(records)} records, {len(usable)} executed with features")
    grid = generate_weight_grid(step=args.step)
    print(f"Generated {len(grid)} weight combinations (step={args.step})")

    results = evaluate_weights(usable, grid, params)
    top_results = results[: args.top]

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_data = {
        "meta": {
            "total_configs": len(grid),
            "total_records": len(records),
            "scored_records": len(usable),
            "winners": sum(1 for r in usable if _is_winner(r)),
            "step": args.step,
        },
        "results": [
            {
                "rank": i + 1,
                "separation": r.separation,
                "weighted_profit": r.weighted_profit,
                "mean_score": r.mean_score,
                "weights": {
                    "spread": r.weights.spread,
                    "liquidity": r.weights.liquidity,
                    "profit": r.weights.profit,
                    "volatility": r.weights.volatility,
                    "gas_efficiency": r.weights.gas_efficiency,
                    "historical": r.weights.historical,
                },
            }
            for i, r in enumerate(top_results)
        ],
    }

    with open(output_path, "w") as f:
        json.dump(output_data, f, indent=2)

    print(f"\nTop {len(top_results)} weight configurations:")
    for i, r in enumerate(top_results):
        w = r.weights
        print(
            f"  #{i + 1}: sep={r.separation:.3f}  wprofit={r.weighted_profit:.4f}  "
            f"S={w.spread:.2f} L={w.liquidity:.2f} P={w.profit:.2f} "
            f"V={w.volatility:.2f} G={w.gas_efficiency:.2f} H={w.historical:.2f}"
        )

    print(f"\nResults written to {output_path}")


if __name__ == "__main__":
    main()
