"""
Utils Module
通用工具函数
"""
from .logger import setup_logger, setup_project_logging
from .exceptions import (
    CatalogCuratorError,
    ConfigurationError,
    StorageError,
    CacheError,
    CacheUnavailableError,
    CriteriaExtractionError,
    ScoringError,
    RunInProgressError,
    LLMError,
)

__all__ = [
    "setup_logger",
    "setup_project_logging",
    "CatalogCuratorError",
    "ConfigurationError",
    "StorageError",
    "CacheError",
    "CacheUnavailableError",
    "CriteriaExtractionError",
    "ScoringError",
    "RunInProgressError",
    "LLMError",
]
