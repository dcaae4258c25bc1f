"""In-memory runtime state describing refresh cycles."""

from __future__ import annotations

import asyncio
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any

from fluxstats.models import MetricKind, UpstreamResult


class RefreshState:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._refreshing = False
        self._last_refresh_at: datetime | None = None
        self._last_refresh_duration_ms: int | None = None
        self._outcomes: dict[str, dict[str, Any]] = {}

    async def mark_started(self) -> None:
        async with self._lock:
            self._refreshing = True

    async def record_cycle(
        self,
        results: dict[MetricKind, UpstreamResult],
        *,
        refreshed_at: datetime | None = None,
        refresh_duration_ms: int | None = None,
    ) -> None:
        outcomes: dict[str, dict[str, Any]] = {}
        for metric, result in results.items():
            if result.ok:
                outcomes[metric.value] = {"ok": True, "error": None, "message": None}
            else:
                outcomes[metric.value] = {"ok": False, "error": result.kind.value, "message": result.message}

        async with self._lock:
            self._refreshing = False
            self._outcomes = outcomes
            self._last_refresh_at = refreshed_at or datetime.now(timezone.utc)
            self._last_refresh_duration_ms = refresh_duration_ms

    async def mark_aborted(self) -> None:
        async with self._lock:
            self._refreshing = False

    async def get_refresh_metadata(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "refreshing": self._refreshing,
                "last_refresh_at": self._last_refresh_at,
                "last_refresh_duration_ms": self._last_refresh_duration_ms,
                "metrics": deepcopy(self._outcomes),
            }

    async def clear(self) -> None:
        async with self._lock:
            self._refreshing = False
            self._last_refresh_at = None
            self._last_refresh_duration_ms = None
            self._outcomes = {}


state = RefreshState()
