"""
Enrichment Service
外部元数据补全 (TMDB)
API 文档: https://developer.themoviedb.org/reference
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import asyncio
import logging

import httpx

from models import CatalogItem
from storage.cache import BaseCatalogCache
from storage.rate_limiter import EnrichmentRateLimiter


logger = logging.getLogger(__name__)


class BaseEnrichmentService(ABC):
    """
    补全服务抽象基类
    返回 None 表示 "不可用"，调用方把补全当作可选上下文
    """

    @abstractmethod
    async def enrich(self, item: CatalogItem) -> Optional[CatalogItem]:
        """补全单个条目，不可用时返回 None"""
        pass

    def reset(self) -> None:
        """新一次运行开始时重置调用预算"""
        pass

    async def close(self) -> None:
        pass


class TMDBEnrichmentService(BaseEnrichmentService):
    """
    TMDB 补全服务

    流程: 缓存 (title_year) -> 调用预算 -> 单次 HTTP 请求
    预算耗尽、未配置 Key、未找到、HTTP 错误时均返回 None，从不重试
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.themoviedb.org/3",
        image_base_url: str = "https://image.tmdb.org/t/p/w500",
        timeout: float = 10.0,
        rate_limiter: Optional[EnrichmentRateLimiter] = None,
        cache: Optional[BaseCatalogCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.image_base_url = image_base_url.rstrip("/")
        self.timeout = timeout
        self.rate_limiter = rate_limiter or EnrichmentRateLimiter()
        self.cache = cache
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_settings(
        cls,
        cache: Optional[BaseCatalogCache] = None,
        rate_limiter: Optional[EnrichmentRateLimiter] = None,
    ) -> "TMDBEnrichmentService":
        from config import get_enrichment_settings

        settings = get_enrichment_settings()
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            image_base_url=settings.image_base_url,
            timeout=settings.timeout,
            rate_limiter=rate_limiter or EnrichmentRateLimiter(settings.max_calls),
            cache=cache,
        )

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def reset(self) -> None:
        self.rate_limiter.reset()

    def _get_client(self) -> httpx.AsyncClient:
        """获取或创建 HTTP 客户端"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def enrich(self, item: CatalogItem) -> Optional[CatalogItem]:
        """
        补全条目

        Args:
            item: 原始条目

        Returns:
            补全后的新条目 (原条目不变)，不可用时返回 None
        """
        key = item.item_key

        if self.cache is not None:
            cached = await asyncio.to_thread(self.cache.get, key)
            if cached is not None:
                logger.debug(f"[TMDB] Cache hit for {key}")
                return cached

        if not self.is_configured():
            logger.debug("[TMDB] API key not configured, enrichment unavailable")
            return None

        if not self.rate_limiter.can_call():
            logger.warning(
                f"[TMDB] Call budget exhausted ({self.rate_limiter.max_calls}), skipping '{item.title}'"
            )
            return None

        try:
            details = await self._lookup(item)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[TMDB] Enrichment failed for '{item.title}': {e}")
            return None

        if details is None:
            logger.warning(f"[TMDB] No results for '{item.title}' ({item.year})")
            return None

        enriched = self._merge(item, details)
        if self.cache is not None:
            await asyncio.to_thread(self.cache.set, key, enriched)

        logger.info(f"[TMDB] Enriched '{item.title}'")
        return enriched

    async def _lookup(self, item: CatalogItem) -> Optional[Dict[str, Any]]:
        client = self._get_client()
        params: Dict[str, Any] = {"api_key": self.api_key, "query": item.title}
        if item.year is not None:
            params["year"] = item.year

        response = await client.get(f"{self.base_url}/search/movie", params=params)
        response.raise_for_status()
        results = response.json().get("results") or []
        if not results:
            return None

        movie_id = results[0].get("id")
        if movie_id is None:
            logger.debug(f"[TMDB] Top search result for '{item.title}' has no id")
            return None

        response = await client.get(
            f"{self.base_url}/movie/{movie_id}",
            params={"api_key": self.api_key},
        )
        response.raise_for_status()
        return response.json()

    def _merge(self, item: CatalogItem, details: Dict[str, Any]) -> CatalogItem:
        overview = str(details.get("overview") or "").strip()
        genres: List[str] = [
            str(genre.get("name")).strip()
            for genre in details.get("genres") or []
            if isinstance(genre, dict) and genre.get("name")
        ]

        update: Dict[str, Any] = {}
        if len(overview) > len(item.description):
            update["description"] = overview

        merged_tags = list(item.tags)
        for genre in genres:
            if genre.lower() not in {tag.lower() for tag in merged_tags}:
                merged_tags.append(genre)
        if merged_tags != list(item.tags):
            update["tags"] = merged_tags

        vote_average = details.get("vote_average")
        if not item.rating and isinstance(vote_average, (int, float)):
            update["rating"] = max(0.0, min(10.0, float(vote_average)))

        if item.classification.upper() == "NR" and details.get("adult") is True:
            update["classification"] = "R"

        poster_path = details.get("poster_path")
        if not item.poster_url and poster_path:
            update["poster_url"] = f"{self.image_base_url}{poster_path}"

        return item.model_copy(update=update)
