"""Typed records for metrics, upstream payloads, cache entries and API responses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetricKind(str, Enum):
    NODE_COUNT = "nodecount"
    RUNNING_APPS = "runningapps"
    TOTAL_CORES = "totalcores"
    TOTAL_RAM = "totalram"
    TOTAL_SSD = "totalssd"

    @property
    def cache_key(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str | None) -> Optional["MetricKind"]:
        """Exact, case-sensitive lookup; anything else is not a metric."""
        if not isinstance(name, str):
            return None
        try:
            return cls(name)
        except ValueError:
            return None


# Fixed refresh order; derived metrics come after node count.
REFRESH_ORDER: tuple[MetricKind, ...] = (
    MetricKind.NODE_COUNT,
    MetricKind.RUNNING_APPS,
    MetricKind.TOTAL_CORES,
    MetricKind.TOTAL_RAM,
    MetricKind.TOTAL_SSD,
)

DERIVED_METRICS: frozenset[MetricKind] = frozenset(
    {MetricKind.TOTAL_CORES, MetricKind.TOTAL_RAM, MetricKind.TOTAL_SSD}
)


class Tier(str, Enum):
    CUMULUS = "cumulus"
    NIMBUS = "nimbus"
    STRATUS = "stratus"


class TierSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    cores: int
    ram_gb: int
    ssd_gb: int


TIER_SPECS: dict[Tier, TierSpec] = {
    Tier.CUMULUS: TierSpec(cores=4, ram_gb=8, ssd_gb=220),
    Tier.NIMBUS: TierSpec(cores=8, ram_gb=32, ssd_gb=440),
    Tier.STRATUS: TierSpec(cores=16, ram_gb=64, ssd_gb=880),
}


class ApiErrorKind(str, Enum):
    TRANSPORT_ERROR = "transport_error"
    HTTP_STATUS_ERROR = "http_status_error"
    JSON_PARSE_ERROR = "json_parse_error"
    SCHEMA_ERROR = "schema_error"
    UPSTREAM_BUSINESS_ERROR = "upstream_business_error"
    INVALID_METRIC_REQUESTED = "invalid_metric_requested"
    NO_DATA_AVAILABLE = "no_data_available"
    CACHE_WRITE_ERROR = "cache_write_error"


def count_or_zero(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip()
    try:
        return max(int(float(value)), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


class NodeCountData(BaseModel):
    """`data` object of the node-count endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total: int = Field(ge=0)
    cumulus_enabled: int = Field(default=0, alias="cumulus-enabled")
    nimbus_enabled: int = Field(default=0, alias="nimbus-enabled")
    stratus_enabled: int = Field(default=0, alias="stratus-enabled")

    @field_validator("total", mode="before")
    @classmethod
    def reject_bool_total(cls, value):
        if isinstance(value, bool):
            raise ValueError("total must be numeric")
        return value

    @field_validator("cumulus_enabled", "nimbus_enabled", "stratus_enabled", mode="before")
    @classmethod
    def normalize_tier_count(cls, value):
        return count_or_zero(value)

    def tier_count(self, tier: Tier) -> int:
        return {
            Tier.CUMULUS: self.cumulus_enabled,
            Tier.NIMBUS: self.nimbus_enabled,
            Tier.STRATUS: self.stratus_enabled,
        }[tier]


class RunningAppsData(BaseModel):
    count: int = Field(ge=0)


class TierTotals(BaseModel):
    nodes: int
    cores: int
    ram: int
    ssd: int


class DerivedTotals(BaseModel):
    total_cores: int
    total_ram: int
    total_ssd: int
    tiers: dict[Tier, TierTotals] = Field(default_factory=dict)


class BenchResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cores: Optional[float] = None
    ram: Optional[float] = None
    ssd: Optional[float] = None


class NodeBenchmark(BaseModel):
    model_config = ConfigDict(extra="ignore")

    bench: Optional[BenchResult] = None


class FleetNode(BaseModel):
    """One element of the legacy fleet-info array."""

    model_config = ConfigDict(extra="ignore")

    tier: Optional[str] = None
    benchmark: Optional[NodeBenchmark] = None

    @field_validator("benchmark", mode="before")
    @classmethod
    def drop_malformed_benchmark(cls, value):
        if value is None or isinstance(value, dict):
            return value
        return None


PAYLOAD_MODELS: dict[MetricKind, type[BaseModel]] = {
    MetricKind.NODE_COUNT: NodeCountData,
    MetricKind.RUNNING_APPS: RunningAppsData,
    MetricKind.TOTAL_CORES: DerivedTotals,
    MetricKind.TOTAL_RAM: DerivedTotals,
    MetricKind.TOTAL_SSD: DerivedTotals,
}


@dataclass(frozen=True)
class UpstreamSuccess:
    data: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class UpstreamFailure:
    kind: ApiErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False


UpstreamResult = Union[UpstreamSuccess, UpstreamFailure]


class CacheEntry(BaseModel):
    data: dict[str, Any]
    timestamp: float


class MetricValue(BaseModel):
    value: str
    cache_time: Optional[int] = None


class MetricResponse(BaseModel):
    success: bool = True
    data: MetricValue
    type: MetricKind
    human_readable: bool
