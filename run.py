#!/usr/bin/env python3
"""
Pool Arbitrage Sentinel -- single entry point.

Wires the paper collaborators into the engine and runs the control loop:
  1. Read pool snapshots
  2. Detect cross-pool spreads
  3. Score + size + assess risk + gate
  4. Simulate, submit and record approved opportunities
  5. Retune thresholds from outcomes
  6. Repeat

Usage:
  python run.py                     # paper execution (default)
  python run.py --scan-only         # detect and gate only, never execute
  python run.py --ticks 20 --seed 7 # bounded, reproducible run
  python run.py --report            # also serve the status API
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from client.paper import MockPoolFeed, PaperActionBuilder, PaperVenue
from config import Config, load_config, paper_pairs
from executor.engine import ExecutionPipeline
from monitor.ledger import OutcomeLedger
from monitor.logger import setup_logging
from pipeline.context import EngineContext, build_context
from pipeline.loop import ControlLoop
from report import create_store

logger = logging.getLogger("run")

_BANNER = """
==========================================
  Pool Arbitrage Sentinel
==========================================
"""


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pool Arbitrage Sentinel")
    parser.add_argument("--scan-only", action="store_true", help="Detect and gate only, do not execute")
    parser.add_argument("--ticks", type=int, default=None, help="Stop after N ticks (default: run until signalled)")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between ticks (default: POLL_INTERVAL_SEC)")
    parser.add_argument("--json-log", type=str, default=None, help="Path to JSON log file for machine-readable output")
    parser.add_argument("--ledger", type=str, default=None, help="Outcome ledger path (default: LEDGER_PATH)")
    parser.add_argument("--store", type=str, default=None, help="Enable the SQLite outcome store at this path")
    parser.add_argument("--report", action="store_true", help="Serve the HTTP status API")
    parser.add_argument("--report-host", type=str, default=None, help="Status API bind address (default: REPORT_HOST)")
    parser.add_argument("--report-port", type=int, default=None, help="Status API port (default: REPORT_PORT)")
    parser.add_argument("--seed", type=int, default=None, help="Seed the paper feed and venue for reproducible runs")
    return parser.parse_args(argv)


def _apply_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    update: dict = {}
    if args.scan_only:
        update["execution_enabled"] = False
    if args.interval is not None:
        update["poll_interval_sec"] = args.interval
    if args.ledger:
        update["ledger_path"] = args.ledger
    if args.store:
        update["store_db"] = args.store
    if args.report_host:
        update["report_host"] = args.report_host
    if args.report_port:
        update["report_port"] = args.report_port
    if not update:
        return cfg
    # model_copy skips validation
    return Config.model_validate({**cfg.model_dump(), **update})


def print_startup(cfg: Config, args: argparse.Namespace) -> None:
    logger.info("  %-24s %s", "Mode:", "paper execution" if cfg.execution_enabled else "scan-only")
    logger.info("  %-24s %s", "Pairs:", cfg.paper_pairs)
    logger.info("  %-24s %.1fs", "Poll interval:", cfg.poll_interval_sec)
    logger.info("  %-24s %.3f%% / $%.2f", "Min spread / profit:", cfg.min_spread_threshold * 100, cfg.min_profit_threshold)
    logger.info("  %-24s %.0f", "Target trade size:", cfg.default_trade_amount)
    logger.info("  %-24s %s", "Single-flight scope:", cfg.single_flight_scope)
    logger.info("  %-24s %d failures / $%.2f loss / %.0f size",
                "Safety limits:", cfg.max_consecutive_failures, cfg.max_daily_loss, cfg.max_position_size)
    logger.info("  %-24s %s", "Ledger:", cfg.ledger_path)
    if args.store:
        logger.info("  %-24s %s", "Store:", cfg.store_db)
    if args.report:
        logger.info("  %-24s http://%s:%d", "Status API:", cfg.report_host, cfg.report_port)


def _print_session_summary(ctx: EngineContext, ledger: OutcomeLedger, ticks: int) -> None:
    s = ledger.summary()
    state = ctx.safety.state()
    params = ctx.parameters.get()
    logger.info("")
    logger.info("=" * 60)
    logger.info("  SESSION SUMMARY")
    logger.info("=" * 60)
    logger.info("  %-28s %d", "Ticks:", ticks)
    logger.info("  %-28s %d", "Outcomes recorded:", ctx.history.total_recorded)
    logger.info("  %-28s %d W / %d L (%.1f%% win rate)", "Results:", s["successes"], s["failures"], s["win_rate_pct"])
    logger.info("  %-28s $%.4f", "Session P&L:", s["session_pnl"])
    logger.info("  %-28s $%.4f", "Cumulative P&L:", s["cumulative_pnl"])
    logger.info("  %-28s %.2f / $%.4f", "Risk tol. / min profit:", params.risk_tolerance, params.min_profit_threshold)
    logger.info("  %-28s %s", "Breaker:", state.breaker.value)
    logger.info("=" * 60)


async def run(cfg: Config, args: argparse.Namespace) -> int:
    pairs = paper_pairs(cfg)
    if not pairs:
        logger.error("No valid PAPER_PAIRS configured (got %r)", cfg.paper_pairs)
        return 1

    ledger = OutcomeLedger(cfg.ledger_path)
    store = create_store(enabled=bool(args.store), db_path=cfg.store_db)
    sinks = [ledger] + ([store] if store is not None else [])

    ctx = build_context(cfg, sinks=sinks)
    if store is not None:
        ctx.tuner.set_on_update(store.record_parameters)

    feed = MockPoolFeed(
        pairs,
        pools_per_pair=cfg.paper_pools_per_pair,
        base_liquidity=cfg.paper_base_liquidity,
        price_jitter=cfg.paper_price_jitter,
        seed=args.seed,
    )
    pipeline = ExecutionPipeline(
        ctx,
        PaperActionBuilder(flash_fee_rate=cfg.flash_loan_fee_rate),
        PaperVenue(failure_rate=cfg.paper_submit_failure_rate, seed=args.seed),
        single_flight_scope=cfg.single_flight_scope,
    )
    loop = ControlLoop(
        ctx,
        feed,
        pipeline,
        execute=cfg.execution_enabled,
        on_snapshots=store.record_snapshots if store is not None else None,
    )

    if args.report:
        from report.server import start_server
        start_server(ctx, store, host=cfg.report_host, port=cfg.report_port)

    stop = asyncio.Event()
    event_loop = asyncio.get_running_loop()

    def handle_signal(signum, frame):
        logger.info("Signal %d received, stopping after current tick", signum)
        event_loop.call_soon_threadsafe(stop.set)

    previous = {sig: signal.signal(sig, handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        ticks = await loop.run(cfg.poll_interval_sec, stop, max_ticks=args.ticks)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        if store is not None:
            store.close()

    _print_session_summary(ctx, ledger, ticks)
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        cfg = _apply_overrides(load_config(), args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(2)

    log_file_path = setup_logging(cfg.log_level, json_log_file=args.json_log, log_dir=cfg.log_dir)
    logger.info(_BANNER.strip())
    logger.info("  Log file: %s", log_file_path)
    print_startup(cfg, args)

    sys.exit(asyncio.run(run(cfg, args)))


if __name__ == "__main__":
    main()
