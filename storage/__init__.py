"""
Storage Module
存储模块 - 目录缓存与调用限流
"""
from .cache import (
    BaseCatalogCache,
    MemoryCatalogCache,
    SQLiteCatalogCache,
    get_cache,
)
from .rate_limiter import EnrichmentRateLimiter

__all__ = [
    "BaseCatalogCache",
    "MemoryCatalogCache",
    "SQLiteCatalogCache",
    "get_cache",
    "EnrichmentRateLimiter",
]
