"""
Configuration Management Module
统一配置管理
"""
from .settings import (
    Settings,
    DiscoverySettings,
    EvaluationSettings,
    SelectionSettings,
    CacheSettings,
    EnrichmentSettings,
    LLMSettings,
    WorkflowSettings,
    get_settings,
    get_discovery_settings,
    get_evaluation_settings,
    get_cache_settings,
    get_enrichment_settings,
    get_llm_settings,
)

__all__ = [
    "Settings",
    "DiscoverySettings",
    "EvaluationSettings",
    "SelectionSettings",
    "CacheSettings",
    "EnrichmentSettings",
    "LLMSettings",
    "WorkflowSettings",
    "get_settings",
    "get_discovery_settings",
    "get_evaluation_settings",
    "get_cache_settings",
    "get_enrichment_settings",
    "get_llm_settings",
]
