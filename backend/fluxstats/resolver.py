"""Read path: turn cached metric payloads into display strings.

Lookup order is the fresh region, then the last-good region, then a
placeholder (display contract) or a typed error (strict API contract). The
read path never calls upstream.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Optional

from fluxstats.cache_store import CacheStore
from fluxstats.formatting import format_metric
from fluxstats.models import ApiErrorKind, CacheEntry, MetricKind

logger = logging.getLogger("fluxstats.resolver")

DISPLAY_PLACEHOLDER = "—"
LOADING_PLACEHOLDER = "Loading..."

_VALUE_FIELDS: dict[MetricKind, str] = {
    MetricKind.NODE_COUNT: "total",
    MetricKind.RUNNING_APPS: "count",
    MetricKind.TOTAL_CORES: "total_cores",
    MetricKind.TOTAL_RAM: "total_ram",
    MetricKind.TOTAL_SSD: "total_ssd",
}

ValueSource = Literal["fresh", "last_good", "placeholder"]


class MetricRequestError(RuntimeError):
    """Raised by the strict read path when a metric cannot be served."""

    _STATUS_CODES = {
        ApiErrorKind.INVALID_METRIC_REQUESTED: 400,
        ApiErrorKind.NO_DATA_AVAILABLE: 503,
    }

    def __init__(self, kind: ApiErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return self._STATUS_CODES.get(self.kind, 500)


@dataclass(frozen=True)
class ResolvedValue:
    metric: Optional[MetricKind]
    value: str
    cache_time: Optional[int]
    source: ValueSource


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def extract_raw_value(metric: MetricKind, data: Mapping[str, Any]) -> Optional[int]:
    """Raw integer for `metric` from a cached payload, or None when the field is unusable."""
    number = _numeric(data.get(_VALUE_FIELDS[metric]))
    if number is None or not math.isfinite(number):
        return None
    return int(number)


def _resolve_from_cache(
    store: CacheStore,
    metric: MetricKind,
    human_readable: bool,
) -> Optional[ResolvedValue]:
    lookups: tuple[tuple[ValueSource, Any], ...] = (
        ("fresh", store.get_fresh),
        ("last_good", store.get_last_good),
    )
    for source, lookup in lookups:
        entry: Optional[CacheEntry] = lookup(metric)
        if entry is None:
            continue
        raw_value = extract_raw_value(metric, entry.data)
        if raw_value is None:
            logger.warning("Unusable %s cache entry for %s; falling through", source, metric.value)
            continue
        return ResolvedValue(
            metric=metric,
            value=format_metric(metric, raw_value, human_readable),
            cache_time=int(entry.timestamp),
            source=source,
        )
    return None


def resolve_display(store: CacheStore, metric_name: str, human_readable: bool = False) -> ResolvedValue:
    """Best-effort value for page rendering. Always returns a string, never raises."""
    metric = MetricKind.parse(metric_name)
    if metric is None:
        return ResolvedValue(metric=None, value=LOADING_PLACEHOLDER, cache_time=None, source="placeholder")

    try:
        resolved = _resolve_from_cache(store, metric, human_readable)
    except Exception:
        logger.exception("Cache lookup failed for %s", metric.value)
        resolved = None

    if resolved is None:
        return ResolvedValue(metric=metric, value=DISPLAY_PLACEHOLDER, cache_time=None, source="placeholder")
    return resolved


def resolve_strict(store: CacheStore, metric_name: str, human_readable: bool = False) -> ResolvedValue:
    """Value for the explicit API; raises MetricRequestError instead of returning placeholders."""
    metric = MetricKind.parse(metric_name)
    if metric is None:
        raise MetricRequestError(ApiErrorKind.INVALID_METRIC_REQUESTED, "Invalid data type requested")

    resolved = _resolve_from_cache(store, metric, human_readable)
    if resolved is None:
        raise MetricRequestError(ApiErrorKind.NO_DATA_AVAILABLE, "Data temporarily unavailable")
    return resolved
