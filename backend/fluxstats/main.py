"""fluxstats API: cached Flux network statistics."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from fluxstats import config
from fluxstats.cache_store import (
    FRESH_REGION,
    LAST_GOOD_REGION,
    SEEDED_TIMESTAMP,
    cache_store,
    default_last_good,
)
from fluxstats.http_log import quiet_client_loggers
from fluxstats.models import REFRESH_ORDER, MetricResponse, MetricValue
from fluxstats.refresh import RefreshOrchestrator
from fluxstats.render import render_block
from fluxstats.resolver import MetricRequestError, resolve_display, resolve_strict
from fluxstats.state import state

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("fluxstats.api")


async def _seed_cache() -> None:
    if not config.SEED_LAST_GOOD:
        return
    try:
        await asyncio.to_thread(cache_store.seed_last_good, default_last_good())
    except Exception:
        logger.exception("Failed seeding last-good cache")


@asynccontextmanager
async def _lifespan(_: FastAPI):
    quiet_client_loggers()
    await _seed_cache()
    orchestrator = RefreshOrchestrator(
        cache_store,
        state,
        interval_seconds=config.REFRESH_INTERVAL_SECONDS,
    )
    refresh_task = asyncio.create_task(orchestrator.run_forever(), name="metrics-refresh-loop")
    try:
        yield
    finally:
        refresh_task.cancel()
        with suppress(asyncio.CancelledError):
            await refresh_task


# --- App ---
app = FastAPI(
    title="fluxstats",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=_lifespan,
)

if config.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )


@app.get("/api/metrics/{metric}", response_model=MetricResponse)
async def get_metric(metric: str, human_readable: bool = Query(default=False)):
    try:
        resolved = await asyncio.to_thread(resolve_strict, cache_store, metric, human_readable)
    except MetricRequestError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"code": exc.kind.value, "message": exc.message},
        ) from exc

    return MetricResponse(
        data=MetricValue(value=resolved.value, cache_time=resolved.cache_time),
        type=resolved.metric,
        human_readable=human_readable,
    )


@app.get("/blocks/{metric}", response_class=HTMLResponse)
async def get_block(metric: str, human_readable: bool = Query(default=False)):
    resolved = await asyncio.to_thread(resolve_display, cache_store, metric, human_readable)
    return HTMLResponse(
        render_block(metric, resolved, human_readable, config.STALE_THRESHOLD_SECONDS)
    )


def _entry_summary(raw: Any, now: float) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        return None
    timestamp = raw.get("timestamp")
    if not isinstance(timestamp, (int, float)):
        return None
    return {
        "timestamp": int(timestamp),
        "age_seconds": max(0, int(now - timestamp)),
        "seeded": timestamp == SEEDED_TIMESTAMP,
    }


@app.get("/api/status")
async def get_status():
    now = cache_store.clock()
    snapshot = await asyncio.to_thread(cache_store.snapshot)
    refresh_meta = await state.get_refresh_metadata()

    metrics: dict[str, dict[str, Any]] = {}
    for metric in REFRESH_ORDER:
        fresh = _entry_summary(snapshot[FRESH_REGION].get(metric.cache_key), now)
        if fresh is not None:
            fresh["expired"] = fresh["age_seconds"] > cache_store.cache_duration_seconds
        metrics[metric.value] = {
            "fresh": fresh,
            "last_good": _entry_summary(snapshot[LAST_GOOD_REGION].get(metric.cache_key), now),
            "last_outcome": refresh_meta["metrics"].get(metric.value),
        }

    return {
        "generated_at": datetime.now(timezone.utc),
        "refreshing": refresh_meta["refreshing"],
        "last_refresh_at": refresh_meta["last_refresh_at"],
        "last_refresh_duration_ms": refresh_meta["last_refresh_duration_ms"],
        "refresh_interval_seconds": config.REFRESH_INTERVAL_SECONDS,
        "metrics": metrics,
    }


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
