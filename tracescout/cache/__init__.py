"""Process-local result cache with in-flight coalescing."""

from tracescout.cache.result_cache import ResultCache, cache_key

__all__ = ["ResultCache", "cache_key"]
