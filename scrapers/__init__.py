"""
Scrapers Module
"""
from .base import BaseCatalogSource
from .static_catalog import StaticCatalogSource, SAMPLE_CATALOG, slugify, render_raw_content
from .enrichment import BaseEnrichmentService, TMDBEnrichmentService

__all__ = [
    # Base
    "BaseCatalogSource",
    # Static catalog
    "StaticCatalogSource",
    "SAMPLE_CATALOG",
    "slugify",
    "render_raw_content",
    # Enrichment
    "BaseEnrichmentService",
    "TMDBEnrichmentService",
]
