"""Periodic refresh of every metric into the cache regions."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx

from fluxstats.cache_store import CacheStore
from fluxstats.derivation import derive_totals
from fluxstats.models import (
    DERIVED_METRICS,
    REFRESH_ORDER,
    ApiErrorKind,
    MetricKind,
    UpstreamFailure,
    UpstreamResult,
    UpstreamSuccess,
)
from fluxstats.services import upstream_client
from fluxstats.services.flux import fetch_node_count, fetch_running_apps
from fluxstats.state import RefreshState

logger = logging.getLogger("fluxstats.refresh")

Producer = Callable[[httpx.AsyncClient], Awaitable[UpstreamResult]]


class RefreshOrchestrator:
    """Clears the fresh region, then refreshes each metric independently.

    A failed metric leaves its last-good entry untouched and is retried on the
    next cycle; there are no retries within a cycle.
    """

    def __init__(
        self,
        store: CacheStore,
        refresh_state: RefreshState,
        *,
        interval_seconds: float = 600,
        producers: Optional[dict[MetricKind, Producer]] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        self.store = store
        self.refresh_state = refresh_state
        self.interval_seconds = interval_seconds
        self.client_factory = client_factory
        self.producers: dict[MetricKind, Producer] = self._default_producers()
        if producers:
            self.producers.update(producers)

    def _default_producers(self) -> dict[MetricKind, Producer]:
        producers: dict[MetricKind, Producer] = {
            MetricKind.NODE_COUNT: fetch_node_count,
            MetricKind.RUNNING_APPS: fetch_running_apps,
        }
        for metric in DERIVED_METRICS:
            producers[metric] = self._derive_from_fresh_node_count
        return producers

    async def _derive_from_fresh_node_count(self, _client: httpx.AsyncClient) -> UpstreamResult:
        entry = await asyncio.to_thread(self.store.get_fresh, MetricKind.NODE_COUNT)
        if entry is None:
            return UpstreamFailure(
                kind=ApiErrorKind.NO_DATA_AVAILABLE,
                message="Node count was not refreshed this cycle",
            )
        return UpstreamSuccess(data=derive_totals(entry.data))

    async def _refresh_metric(self, metric: MetricKind, client: httpx.AsyncClient) -> UpstreamResult:
        try:
            result = await self.producers[metric](client)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Producer for %s raised", metric.value)
            return UpstreamFailure(kind=ApiErrorKind.TRANSPORT_ERROR, message=f"Unexpected error ({exc.__class__.__name__})")

        if not result.ok:
            logger.warning("Keeping last-good %s: %s (%s)", metric.value, result.message, result.kind.value)
            return result

        # Last-good first: a fresh entry must never exist without its fallback.
        try:
            await asyncio.to_thread(self.store.set_last_good, metric, result.data)
            await asyncio.to_thread(self.store.set_fresh, metric, result.data)
        except Exception as exc:
            logger.exception("Cache write failed for %s", metric.value)
            return UpstreamFailure(
                kind=ApiErrorKind.CACHE_WRITE_ERROR,
                message=f"Cache write failed ({exc.__class__.__name__})",
            )
        return result

    async def refresh_all(self) -> dict[MetricKind, UpstreamResult]:
        refreshed_at = datetime.now(timezone.utc)
        start = time.monotonic()
        await self.refresh_state.mark_started()
        try:
            await asyncio.to_thread(self.store.clear_fresh)
            results: dict[MetricKind, UpstreamResult] = {}
            client_context = self.client_factory() if self.client_factory is not None else upstream_client()
            async with client_context as active:
                for metric in REFRESH_ORDER:
                    results[metric] = await self._refresh_metric(metric, active)
        except BaseException:
            await self.refresh_state.mark_aborted()
            raise

        duration_ms = int((time.monotonic() - start) * 1000)
        await self.refresh_state.record_cycle(
            results,
            refreshed_at=refreshed_at,
            refresh_duration_ms=duration_ms,
        )
        logger.info(
            "Refresh cycle duration_ms=%d %s",
            duration_ms,
            " ".join(f"{metric.value}={'ok' if result.ok else result.kind.value}" for metric, result in results.items()),
        )
        return results

    async def run_forever(self) -> None:
        """Refresh once immediately, then every `interval_seconds`."""
        while True:
            try:
                await self.refresh_all()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Refresh cycle failed")
            await asyncio.sleep(self.interval_seconds)
