"""
Data Models / Schemas
定义统一的数据结构
"""
import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# 儿童/家庭适宜的分级
SUITABLE_CLASSIFICATIONS = frozenset({"G", "PG", "PG-13"})

_KEY_PATTERN = re.compile(r"[^a-z0-9]+")


def make_item_key(title: str, year: Optional[int] = None) -> str:
    """
    生成归一化缓存键 ("title_year")

    Args:
        title: 条目标题
        year: 年份 (可选)

    Returns:
        小写、非字母数字替换为下划线的键
    """
    normalized = _KEY_PATTERN.sub("_", str(title or "").strip().lower()).strip("_")
    return f"{normalized}_{year if year is not None else 'unknown'}"


class Provenance(str, Enum):
    """链接来源路径"""
    INITIAL = "initial"
    RELATED = "related"
    RECURSIVE = "recursive"


class ScoredBy(str, Enum):
    """评分来源"""
    SCORER = "scorer"
    FALLBACK = "fallback"


class CatalogLink(BaseModel):
    """待处理的目录链接"""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="链接标题")
    url: str = Field(..., description="链接地址")
    provenance: Provenance = Field(default=Provenance.INITIAL, description="发现路径")
    added_at: datetime = Field(default_factory=datetime.now, description="入队时间")


class RawItemDetail(BaseModel):
    """目录源返回的原始详情"""
    title: str = Field(..., description="标题")
    url: str = Field(..., description="详情页地址")
    raw_content: str = Field(default="", description="原始内容")
    year: Optional[int] = Field(None, description="年份")
    description: Optional[str] = Field(None, description="简介")
    related_links: List[CatalogLink] = Field(default_factory=list, description="相关链接")


class CatalogItem(BaseModel):
    """归一化后的目录条目 (不可变)"""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="标题")
    year: Optional[int] = Field(None, description="年份")
    tags: List[str] = Field(default_factory=list, description="类型标签")
    rating: float = Field(default=0.0, ge=0.0, le=10.0, description="评分 (0-10)")
    creator: str = Field(default="", description="主创 (导演/作者)")
    description: str = Field(default="", description="简介")
    classification: str = Field(default="NR", description="内容分级")
    themes: List[str] = Field(default_factory=list, description="主题")
    poster_url: Optional[str] = Field(None, description="海报地址")

    @property
    def item_key(self) -> str:
        """归一化键"""
        return make_item_key(self.title, self.year)

    @property
    def is_suitable(self) -> bool:
        """是否属于家庭适宜分级"""
        return self.classification.strip().upper() in SUITABLE_CLASSIFICATIONS


class ProcessedItem(BaseModel):
    """已发现的条目及其来源"""
    model_config = ConfigDict(frozen=True)

    item: CatalogItem
    source_url: str = Field(..., description="来源链接")
    provenance: Provenance = Field(default=Provenance.INITIAL, description="发现路径")
    processed_at: datetime = Field(default_factory=datetime.now, description="处理时间")


class Criteria(BaseModel):
    """由自然语言请求解析出的检索条件"""
    model_config = ConfigDict(frozen=True)

    original_request: str = Field(default="", description="原始请求")
    target_tags: List[str] = Field(default_factory=list, description="目标类型")
    excluded_tags: List[str] = Field(default_factory=list, description="排除类型")
    audience: str = Field(default="general", description="目标受众")
    suitable_only: bool = Field(default=False, description="仅限家庭适宜")
    preferred_themes: List[str] = Field(default_factory=list, description="偏好主题")
    avoided_themes: List[str] = Field(default_factory=list, description="回避主题")
    search_keywords: List[str] = Field(default_factory=list, description="检索关键词")
    widening_level: int = Field(default=0, description="放宽次数")


class Evaluation(BaseModel):
    """单条评估结果"""
    model_config = ConfigDict(frozen=True)

    item: CatalogItem
    confidence_score: float = Field(..., ge=0.0, le=1.0, description="置信度")
    reasoning: str = Field(default="", description="评估理由")
    suitable: bool = Field(default=False, description="是否满足受众要求")
    scored_by: ScoredBy = Field(default=ScoredBy.SCORER, description="评分来源")

    @property
    def item_key(self) -> str:
        return self.item.item_key


class CacheStats(BaseModel):
    """缓存统计"""
    count: int = 0
    oldest: Optional[datetime] = None
    newest: Optional[datetime] = None
