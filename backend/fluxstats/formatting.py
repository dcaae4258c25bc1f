"""Number formatting for displayed network statistics.

Counts use K/M/B suffixes, RAM switches to binary terabytes (1 TB = 1024 GB)
and SSD to decimal terabytes/petabytes (1 TB = 1,000 GB, 1 PB = 1,000,000 GB).
Rounding is half away from zero everywhere.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from fluxstats.models import MetricKind

_COMPACT_STEPS: tuple[tuple[int, str], ...] = (
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)
_SSD_STEPS: tuple[tuple[int, str], ...] = (
    (1_000_000, "PB"),
    (1_000, "TB"),
)
RAM_GB_PER_TB = 1024


def _round_half_away(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _one_decimal(value: Decimal) -> str:
    rounded = _round_half_away(value, 1)
    if rounded == rounded.to_integral_value():
        return str(int(rounded))
    return str(rounded)


def format_integer(number: int) -> str:
    return f"{int(number):,}"


def format_compact(number: int) -> str:
    number = int(number)
    for divisor, suffix in _COMPACT_STEPS:
        if number >= divisor:
            return _one_decimal(Decimal(number) / divisor) + suffix
    return str(number)


def format_ram(ram_gb: int, human_readable: bool = False) -> str:
    ram_gb = int(ram_gb)
    if not human_readable:
        return f"{format_integer(ram_gb)} GB"

    ram_tb = Decimal(ram_gb) / RAM_GB_PER_TB
    if ram_tb >= 1:
        return f"{int(_round_half_away(ram_tb, 0))} TB"
    return f"{format_integer(ram_gb)} GB"


def format_ssd(ssd_gb: int, human_readable: bool = False) -> str:
    ssd_gb = int(ssd_gb)
    if human_readable:
        for divisor, unit in _SSD_STEPS:
            scaled = Decimal(ssd_gb) / divisor
            if scaled >= 1:
                return _one_decimal(scaled) + unit
    return f"{format_integer(ssd_gb)} GB"


def format_metric(metric: MetricKind, raw_value: int, human_readable: bool) -> str:
    """Format a raw metric value with the unit rules of that metric."""
    if metric is MetricKind.TOTAL_RAM:
        return format_ram(raw_value, human_readable)
    if metric is MetricKind.TOTAL_SSD:
        return format_ssd(raw_value, human_readable)
    if human_readable:
        return format_compact(raw_value)
    return format_integer(raw_value)
