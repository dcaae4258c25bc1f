"""Server-side HTML fragment for a metric block."""

from __future__ import annotations

import html

from fluxstats.resolver import ResolvedValue


def render_block(metric_name: str, resolved: ResolvedValue, human_readable: bool, stale_threshold_seconds: int) -> str:
    """Render the block wrapper the front-end script reads `data-*` attributes from."""
    classes = "fluxdata-value"
    if resolved.source == "placeholder":
        classes += " fluxdata-loading"

    attributes = {
        "class": "fluxdata-block",
        "data-type": metric_name,
        "data-human-readable": "true" if human_readable else "false",
        "data-cache-time": "" if resolved.cache_time is None else str(resolved.cache_time),
        "data-stale-threshold": str(stale_threshold_seconds),
    }
    rendered_attributes = " ".join(
        f'{name}="{html.escape(value, quote=True)}"' for name, value in attributes.items()
    )
    return (
        f"<div {rendered_attributes}>"
        f'<span class="{classes}" aria-live="polite">{html.escape(resolved.value)}</span>'
        "</div>"
    )
