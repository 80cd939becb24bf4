"""
Serving Module
"""
from .cache import QueryCache, MemoryCacheBackend, RedisCacheBackend, create_query_cache, safe_request

__all__ = [
    "QueryCache",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "create_query_cache",
    "safe_request",
]
