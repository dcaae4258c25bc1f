"""fluxstats: cached Flux network statistics."""
