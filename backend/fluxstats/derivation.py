"""Network resource totals derived from per-tier node counts.

Each enabled node is counted at its tier's default hardware spec. Per-node
benchmarks from the fleet-info endpoint would be more precise, but that payload
is large and slow to fetch; node counts are a single small request.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fluxstats.models import TIER_SPECS, DerivedTotals, NodeCountData, Tier, TierTotals, count_or_zero

_TIER_COUNT_FIELDS: dict[Tier, str] = {
    Tier.CUMULUS: "cumulus-enabled",
    Tier.NIMBUS: "nimbus-enabled",
    Tier.STRATUS: "stratus-enabled",
}


def _tier_counts(node_counts: NodeCountData | Mapping[str, Any]) -> dict[Tier, int]:
    if isinstance(node_counts, NodeCountData):
        return {tier: node_counts.tier_count(tier) for tier in Tier}
    return {tier: count_or_zero(node_counts.get(field)) for tier, field in _TIER_COUNT_FIELDS.items()}


def derive_totals(node_counts: NodeCountData | Mapping[str, Any]) -> DerivedTotals:
    tiers: dict[Tier, TierTotals] = {}
    for tier, nodes in _tier_counts(node_counts).items():
        spec = TIER_SPECS[tier]
        tiers[tier] = TierTotals(
            nodes=nodes,
            cores=nodes * spec.cores,
            ram=nodes * spec.ram_gb,
            ssd=nodes * spec.ssd_gb,
        )

    return DerivedTotals(
        total_cores=sum(t.cores for t in tiers.values()),
        total_ram=sum(t.ram for t in tiers.values()),
        total_ssd=sum(t.ssd for t in tiers.values()),
        tiers=tiers,
    )
