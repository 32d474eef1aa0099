"""
FastAPI status server. Runs as a daemon thread next to the control loop.

Read endpoints serve the engine context snapshot (and the SQLite store when
one is attached). The two POST endpoints are operator actions on the safety
gate.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pipeline.context import EngineContext
    from report.store import OutcomeStore

logger = logging.getLogger(__name__)


def create_app(context: EngineContext, store: OutcomeStore | None = None) -> Any:
    """Build and return the FastAPI application."""
    from fastapi import FastAPI, Query

    app = FastAPI(title="Pool Arbitrage Sentinel", docs_url="/docs")

    # ── Health ──

    @app.get("/health")
    async def health():
        state = context.safety.state()
        return {
            "status": "halted" if state.breaker.value == "open" else "ok",
            "breaker": state.breaker.value,
            "uptime_sec": round(max(0.0, context.clock() - context.started_at), 1),
            "outcomes_recorded": context.history.total_recorded,
        }

    @app.get("/api/status")
    async def status():
        return context.status()

    # ── Parameters ──

    @app.get("/api/parameters")
    async def parameters():
        current = context.parameters.get().to_dict()
        if store is None:
            return {"current": current}
        return {"current": current, "history": store.parameter_history(limit=20)}

    # ── Safety ──

    @app.get("/api/safety")
    async def safety():
        return context.safety.state().to_dict()

    @app.post("/api/safety/shutdown")
    async def shutdown():
        logger.warning("Emergency shutdown requested over HTTP")
        context.safety.shutdown()
        return context.safety.state().to_dict()

    @app.post("/api/safety/restart")
    async def restart():
        logger.warning("Safety restart requested over HTTP")
        context.safety.restart()
        return context.safety.state().to_dict()

    # ── Opportunities ──

    @app.get("/api/opportunities")
    async def opportunities():
        snapshot = context.status()
        return {
            "count": snapshot["open_opportunities"],
            "opportunities": snapshot["opportunities"],
        }

    # ── Outcomes ──

    @app.get("/api/stats")
    async def stats(hours: float = Query(24.0, gt=0, le=24 * 365)):
        if store is not None:
            return store.get_trade_stats(hours)
        return context.history.stats(hours).to_dict()

    @app.get("/api/outcomes")
    async def outcomes(limit: int = Query(50, ge=1, le=1000)):
        if store is not None:
            return store.recent_outcomes(limit)
        return [r.to_dict() for r in reversed(context.history.recent(limit))]

    @app.get("/api/pairs")
    async def best_pairs(limit: int = Query(10, ge=1, le=100)):
        if store is None:
            return []
        return store.best_pool_pairs(limit)

    return app


def start_server(
    context: EngineContext,
    store: OutcomeStore | None = None,
    host: str = "127.0.0.1",
    port: int = 8787,
) -> threading.Thread:
    """Start FastAPI in a daemon thread. Returns the thread."""
    import uvicorn

    app = create_app(context, store)

    def _run():
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )

    thread = threading.Thread(target=_run, daemon=True, name="status-server")
    thread.start()
    logger.info("Status server started at http://%s:%d", host, port)
    return thread
