"""Two-region metric cache: a short-TTL `fresh` region and a `last_good` fallback region."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from fluxstats import config
from fluxstats.derivation import derive_totals
from fluxstats.models import CacheEntry, MetricKind, NodeCountData, RunningAppsData

logger = logging.getLogger("fluxstats.cache")

FRESH_REGION = "fresh"
LAST_GOOD_REGION = "last_good"
REGIONS = (FRESH_REGION, LAST_GOOD_REGION)
# Timestamp of seeded defaults; older than any fetched entry.
SEEDED_TIMESTAMP = 0.0


class CacheBackend:
    """Key-value storage for cache regions. Each region maps metric keys to raw entry dicts."""

    def load(self, region: str) -> dict[str, Any]:
        raise NotImplementedError

    def save(self, region: str, entries: dict[str, Any]) -> None:
        raise NotImplementedError


class MemoryCacheBackend(CacheBackend):
    def __init__(self) -> None:
        self._regions: dict[str, dict[str, Any]] = {region: {} for region in REGIONS}

    def load(self, region: str) -> dict[str, Any]:
        return deepcopy(self._regions.get(region, {}))

    def save(self, region: str, entries: dict[str, Any]) -> None:
        self._regions[region] = deepcopy(entries)


class JsonFileCacheBackend(CacheBackend):
    """One JSON file per region under `directory`, written atomically so it survives restarts."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, region: str) -> Path:
        return self.directory / f"{region}.json"

    def load(self, region: str) -> dict[str, Any]:
        path = self._path(region)
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except Exception:
            logger.exception("Failed to read cache region file %s; treating as empty", path)
            return {}
        if not isinstance(loaded, dict):
            logger.warning("Cache region file %s is not a JSON object; treating as empty", path)
            return {}
        return loaded

    def save(self, region: str, entries: dict[str, Any]) -> None:
        path = self._path(region)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(entries, indent=2) + "\n"
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f"{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = Path(tmp.name)
        tmp_path.replace(path)


def _payload_dict(payload: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    return json.loads(json.dumps(dict(payload)))


def default_last_good() -> dict[MetricKind, BaseModel]:
    """Plausible values served before the first successful refresh."""
    node_counts = NodeCountData(
        total=8200,
        cumulus_enabled=4800,
        nimbus_enabled=1800,
        stratus_enabled=1600,
    )
    totals = derive_totals(node_counts)
    return {
        MetricKind.NODE_COUNT: node_counts,
        MetricKind.RUNNING_APPS: RunningAppsData(count=2400),
        MetricKind.TOTAL_CORES: totals,
        MetricKind.TOTAL_RAM: totals,
        MetricKind.TOTAL_SSD: totals,
    }


class CacheStore:
    def __init__(
        self,
        backend: CacheBackend,
        *,
        clock: Callable[[], float] = time.time,
        cache_duration_seconds: float = 600,
        sweep_age_seconds: float = 3600,
    ):
        self.backend = backend
        self.clock = clock
        self.cache_duration_seconds = cache_duration_seconds
        self.sweep_age_seconds = sweep_age_seconds
        self._lock = Lock()

    def _read_entry_unlocked(self, region: str, metric: MetricKind) -> Optional[CacheEntry]:
        raw = self.backend.load(region).get(metric.cache_key)
        if raw is None:
            return None
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError:
            logger.warning("Ignoring malformed %s cache entry for %s", region, metric.value)
            return None

    def _write_entry_unlocked(self, region: str, metric: MetricKind, payload) -> dict[str, Any]:
        entries = self.backend.load(region)
        entry = CacheEntry(data=_payload_dict(payload), timestamp=self.clock())
        entries[metric.cache_key] = entry.model_dump(mode="json")
        return entries

    def get_fresh(self, metric: MetricKind) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._read_entry_unlocked(FRESH_REGION, metric)
        if entry is None:
            return None
        if self.clock() - entry.timestamp > self.cache_duration_seconds:
            return None
        return entry

    def set_fresh(self, metric: MetricKind, payload: BaseModel | Mapping[str, Any]) -> None:
        with self._lock:
            entries = self._write_entry_unlocked(FRESH_REGION, metric, payload)
            cutoff = self.clock() - self.sweep_age_seconds
            for key in list(entries):
                timestamp = entries[key].get("timestamp") if isinstance(entries[key], dict) else None
                if not isinstance(timestamp, (int, float)) or timestamp < cutoff:
                    del entries[key]
            self.backend.save(FRESH_REGION, entries)

    def get_last_good(self, metric: MetricKind) -> Optional[CacheEntry]:
        with self._lock:
            return self._read_entry_unlocked(LAST_GOOD_REGION, metric)

    def set_last_good(self, metric: MetricKind, payload: BaseModel | Mapping[str, Any]) -> None:
        """Overwrite the fallback entry. Callers pass only validated successful payloads."""
        with self._lock:
            entries = self._write_entry_unlocked(LAST_GOOD_REGION, metric, payload)
            self.backend.save(LAST_GOOD_REGION, entries)

    def clear_fresh(self) -> None:
        with self._lock:
            self.backend.save(FRESH_REGION, {})

    def seed_last_good(self, defaults: Mapping[MetricKind, BaseModel | Mapping[str, Any]]) -> bool:
        """Write defaults only when the fallback region is completely empty."""
        with self._lock:
            if self.backend.load(LAST_GOOD_REGION):
                return False
            entries = {
                metric.cache_key: CacheEntry(
                    data=_payload_dict(payload),
                    timestamp=SEEDED_TIMESTAMP,
                ).model_dump(mode="json")
                for metric, payload in defaults.items()
            }
            self.backend.save(LAST_GOOD_REGION, entries)
        logger.info("Seeded last-good cache with %d default entries", len(entries))
        return True

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {region: self.backend.load(region) for region in REGIONS}


cache_store = CacheStore(
    JsonFileCacheBackend(config.CACHE_DIR),
    cache_duration_seconds=config.CACHE_DURATION_SECONDS,
    sweep_age_seconds=config.CACHE_SWEEP_SECONDS,
)
