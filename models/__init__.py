"""
Data Models
"""
from .schemas import (
    SUITABLE_CLASSIFICATIONS,
    make_item_key,
    Provenance,
    ScoredBy,
    CatalogLink,
    RawItemDetail,
    CatalogItem,
    ProcessedItem,
    Criteria,
    Evaluation,
    CacheStats,
)

__all__ = [
    "SUITABLE_CLASSIFICATIONS",
    "make_item_key",
    "Provenance",
    "ScoredBy",
    "CatalogLink",
    "RawItemDetail",
    "CatalogItem",
    "ProcessedItem",
    "Criteria",
    "Evaluation",
    "CacheStats",
]
