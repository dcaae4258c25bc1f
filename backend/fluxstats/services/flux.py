"""Flux network API endpoints."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import TypeAdapter

from fluxstats import config
from fluxstats.models import FleetNode, NodeCountData, RunningAppsData, UpstreamResult
from fluxstats.services import Endpoint, fetch_envelope, upstream_client


def _running_apps_summary(apps: list[Any]) -> RunningAppsData:
    return RunningAppsData(count=len(apps))


def node_count_endpoint() -> Endpoint:
    return Endpoint(
        name="node_count",
        url=config.FLUX_NODE_COUNT_URL,
        timeout_seconds=config.NODE_COUNT_TIMEOUT_SECONDS,
        adapter=TypeAdapter(NodeCountData),
    )


def running_apps_endpoint() -> Endpoint:
    return Endpoint(
        name="running_apps",
        url=config.FLUX_RUNNING_APPS_URL,
        timeout_seconds=config.RUNNING_APPS_TIMEOUT_SECONDS,
        adapter=TypeAdapter(list[Any]),
        transform=_running_apps_summary,
    )


def fleet_info_endpoint() -> Endpoint:
    return Endpoint(
        name="fleet_info",
        url=config.FLUX_INFO_URL,
        timeout_seconds=config.FLUX_INFO_TIMEOUT_SECONDS,
        adapter=TypeAdapter(list[FleetNode]),
        params={"projection": "tier,benchmark"},
    )


async def fetch_node_count(client: Optional[httpx.AsyncClient] = None) -> UpstreamResult:
    async with upstream_client(client) as active:
        return await fetch_envelope(active, node_count_endpoint())


async def fetch_running_apps(client: Optional[httpx.AsyncClient] = None) -> UpstreamResult:
    async with upstream_client(client) as active:
        return await fetch_envelope(active, running_apps_endpoint())


async def fetch_fleet_info(client: Optional[httpx.AsyncClient] = None) -> UpstreamResult:
    """Per-node tier and benchmark array. Large and slow; not part of the refresh cycle."""
    async with upstream_client(client) as active:
        return await fetch_envelope(active, fleet_info_endpoint())
