from .metrics_cache import MetricsCache, make_key

__all__ = ["MetricsCache", "make_key"]
