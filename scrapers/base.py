"""
Base Catalog Source
所有目录数据源的抽象基类
"""
from abc import ABC, abstractmethod
from typing import Callable, List, TypeVar
import asyncio
import logging

from models import CatalogLink, Provenance, RawItemDetail


logger = logging.getLogger(__name__)

R = TypeVar("R")


class BaseCatalogSource(ABC):
    """
    目录数据源抽象基类
    所有具体数据源都需要继承此类并实现抽象方法
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """返回数据源名称"""
        pass

    @abstractmethod
    async def list_initial_links(self, seed_url: str) -> List[CatalogLink]:
        """
        获取初始链接列表

        Args:
            seed_url: 入口地址

        Returns:
            链接列表 (provenance=initial)
        """
        pass

    @abstractmethod
    async def fetch_details(self, link: CatalogLink) -> RawItemDetail:
        """
        获取单个链接的详情
        未找到时不抛异常，返回尽力而为的部分记录

        Args:
            link: 目录链接

        Returns:
            原始详情
        """
        pass

    def extract_related_links(self, detail: RawItemDetail) -> List[CatalogLink]:
        """
        从详情中提取相关链接
        子类可以覆盖此方法实现自定义解析
        """
        return list(detail.related_links)

    def is_configured(self) -> bool:
        """
        检查是否已正确配置
        子类可以覆盖此方法来检查必要的API密钥等
        """
        return True

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()

    async def close(self):
        """清理资源"""
        pass

    async def _run_blocking(self, func: Callable[..., R], *args, **kwargs) -> R:
        """在线程池中执行阻塞函数"""
        return await asyncio.to_thread(func, *args, **kwargs)

    def _make_link(self, title: str, url: str, provenance: Provenance = Provenance.INITIAL) -> CatalogLink:
        return CatalogLink(title=title, url=url, provenance=provenance)

    def _log_listing(self, seed_url: str, count: int):
        """记录列表日志"""
        logger.info(f"[{self.name}] Listing '{seed_url}' returned {count} links")

    def _log_error(self, message: str, error: Exception):
        """记录错误日志"""
        logger.error(f"[{self.name}] {message}: {error}")
