"""
Custom Exceptions
自定义异常类
"""


class CatalogCuratorError(Exception):
    """推荐引擎基础异常类"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(CatalogCuratorError):
    """配置错误"""
    pass


class StorageError(CatalogCuratorError):
    """存储错误"""
    pass


class CacheError(StorageError):
    """缓存错误"""
    pass


class CacheUnavailableError(CacheError):
    """缓存启动失败 (致命)"""
    pass


class CriteriaExtractionError(CatalogCuratorError):
    """需求解析失败 (致命)"""
    pass


class ScoringError(CatalogCuratorError):
    """单条评分失败 (可降级)"""

    def __init__(self, message: str, item_key: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.item_key = item_key


class RunInProgressError(CatalogCuratorError):
    """同一工作流实例上已有运行中的任务"""

    def __init__(self, message: str, run_id: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.run_id = run_id


class LLMError(CatalogCuratorError):
    """LLM 调用错误"""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider
