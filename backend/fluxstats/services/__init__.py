"""Shared utilities for fetching Flux API envelopes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from fluxstats.http_log import loggable_url, request_logging_hooks
from fluxstats.models import ApiErrorKind, UpstreamFailure, UpstreamResult, UpstreamSuccess

logger = logging.getLogger("fluxstats.upstream")


@dataclass(frozen=True)
class Endpoint:
    name: str
    url: str
    timeout_seconds: float
    adapter: TypeAdapter
    params: dict[str, str] = field(default_factory=dict)
    transform: Optional[Callable[[Any], Any]] = None


@asynccontextmanager
async def upstream_client(client: Optional[httpx.AsyncClient] = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the given client, or a short-lived one with redacted request logging."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(
        headers={"Accept": "application/json"},
        event_hooks=request_logging_hooks(),
    ) as owned:
        yield owned


def _failure(endpoint: Endpoint, kind: ApiErrorKind, message: str) -> UpstreamFailure:
    logger.warning("Upstream %s failed kind=%s: %s", endpoint.name, kind.value, message)
    return UpstreamFailure(kind=kind, message=message)


async def fetch_envelope(client: httpx.AsyncClient, endpoint: Endpoint) -> UpstreamResult:
    """Fetch a `{status, data}` envelope and validate `data`. Returns a result, never raises."""
    try:
        response = await client.get(
            endpoint.url,
            params=endpoint.params or None,
            timeout=httpx.Timeout(endpoint.timeout_seconds),
        )
    except httpx.TimeoutException:
        return _failure(
            endpoint,
            ApiErrorKind.TRANSPORT_ERROR,
            f"Timed out after {endpoint.timeout_seconds:.0f}s",
        )
    except httpx.HTTPError as exc:
        return _failure(endpoint, ApiErrorKind.TRANSPORT_ERROR, f"Request failed ({exc.__class__.__name__})")
    except Exception as exc:
        logger.exception("Unexpected error fetching %s at %s", endpoint.name, loggable_url(endpoint.url))
        return UpstreamFailure(kind=ApiErrorKind.TRANSPORT_ERROR, message=f"Unexpected error ({exc.__class__.__name__})")

    if response.status_code != 200:
        return _failure(endpoint, ApiErrorKind.HTTP_STATUS_ERROR, f"HTTP error: {response.status_code}")

    try:
        body = response.json()
    except ValueError:
        return _failure(endpoint, ApiErrorKind.JSON_PARSE_ERROR, "Invalid JSON response")

    if not isinstance(body, dict):
        return _failure(endpoint, ApiErrorKind.SCHEMA_ERROR, "Response is not a JSON object")

    if body.get("status") != "success":
        return _failure(
            endpoint,
            ApiErrorKind.UPSTREAM_BUSINESS_ERROR,
            f"Upstream reported status={body.get('status')!r}",
        )

    if "data" not in body:
        return _failure(endpoint, ApiErrorKind.SCHEMA_ERROR, "Response has no data field")

    try:
        data = endpoint.adapter.validate_python(body["data"])
    except ValidationError as exc:
        return _failure(
            endpoint,
            ApiErrorKind.SCHEMA_ERROR,
            f"Invalid {endpoint.name} data format ({exc.error_count()} errors)",
        )

    if endpoint.transform is not None:
        data = endpoint.transform(data)
    return UpstreamSuccess(data=data)
