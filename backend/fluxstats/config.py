"""Configuration: reads all settings from environment variables."""

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str) -> list[str]:
    raw = os.getenv(name, "")
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


# Upstream Flux APIs
FLUX_NODE_COUNT_URL: str = os.getenv("FLUX_NODE_COUNT_URL", "https://api.runonflux.io/daemon/getfluxnodecount")
FLUX_RUNNING_APPS_URL: str = os.getenv("FLUX_RUNNING_APPS_URL", "https://api.runonflux.io/apps/listrunningapps")
FLUX_INFO_URL: str = os.getenv("FLUX_INFO_URL", "https://stats.runonflux.io/fluxinfo")
NODE_COUNT_TIMEOUT_SECONDS: float = float(os.getenv("NODE_COUNT_TIMEOUT_SECONDS", "15"))
RUNNING_APPS_TIMEOUT_SECONDS: float = float(os.getenv("RUNNING_APPS_TIMEOUT_SECONDS", "15"))
FLUX_INFO_TIMEOUT_SECONDS: float = float(os.getenv("FLUX_INFO_TIMEOUT_SECONDS", "30"))

# Cache
CACHE_DURATION_SECONDS: float = float(os.getenv("CACHE_DURATION_SECONDS", "600"))
CACHE_SWEEP_SECONDS: float = float(os.getenv("CACHE_SWEEP_SECONDS", "3600"))
CACHE_DIR: str = os.getenv("FLUXSTATS_CACHE_DIR", "/data/fluxstats")
SEED_LAST_GOOD: bool = _env_bool("SEED_LAST_GOOD", True)

# Refresh
REFRESH_INTERVAL_SECONDS: float = float(os.getenv("REFRESH_INTERVAL_SECONDS", "600"))
STALE_THRESHOLD_SECONDS: int = int(os.getenv("STALE_THRESHOLD_SECONDS", "600"))

CORS_ORIGINS: list[str] = _env_csv("CORS_ORIGINS")
