"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class DiscoverySettings(BaseSettings):
    """目录发现配置"""
    seed_url: str = Field(default="catalog://movies", description="初始链接列表地址")
    batch_size: int = Field(default=10, description="每批评估的条目数")
    max_links_per_round: int = Field(default=20, description="每轮最多处理的链接数")
    max_total_items: int = Field(default=200, description="单次运行最多发现的条目数")
    max_queue_size: int = Field(default=100, description="待处理链接队列上限")
    max_execution_seconds: float = Field(default=300.0, description="单轮发现的时间预算(秒)")
    max_discovery_depth: int = Field(default=3, description="最大发现轮数")
    fetch_concurrency: int = Field(default=4, description="详情抓取并发数")
    fetch_delay_min: float = Field(default=0.05, description="抓取间隔下限(秒)")
    fetch_delay_max: float = Field(default=0.2, description="抓取间隔上限(秒)")

    class Config:
        env_prefix = "DISCOVERY_"


class EvaluationSettings(BaseSettings):
    """批量评估与质量门控配置"""
    high_confidence_threshold: float = Field(default=0.75, description="高置信度阈值")
    quality_gate_min: int = Field(default=3, description="质量门控所需高置信度条目数")
    min_candidates: int = Field(default=3, description="进入最终选择前所需候选数")
    max_search_attempts: int = Field(default=3, description="最大搜索尝试次数")
    item_timeout_seconds: Optional[float] = Field(default=60.0, description="单条评估超时(秒)")
    thin_description_chars: int = Field(default=50, description="触发补全的描述长度")

    class Config:
        env_prefix = "EVALUATION_"


class SelectionSettings(BaseSettings):
    """最终推荐选择配置"""
    final_count: int = Field(default=5, description="最终推荐数量")
    unconditional_ratio: float = Field(default=0.6, description="无条件入选的名额比例")

    class Config:
        env_prefix = "SELECTION_"


class CacheSettings(BaseSettings):
    """缓存配置"""
    provider: str = Field(default="sqlite", description="缓存后端: sqlite, memory")
    db_path: str = Field(default="./data/catalog_cache.db", description="SQLite 缓存文件")

    class Config:
        env_prefix = "CACHE_"


class EnrichmentSettings(BaseSettings):
    """外部补全服务配置 (TMDB)"""
    api_key: Optional[str] = Field(default=None, description="TMDB API Key")
    base_url: str = Field(default="https://api.themoviedb.org/3", description="TMDB API 地址")
    image_base_url: str = Field(default="https://image.tmdb.org/t/p/w500", description="海报地址前缀")
    max_calls: int = Field(default=10, description="每次运行允许的补全调用数")
    timeout: float = Field(default=10.0, description="请求超时时间(秒)")

    class Config:
        env_prefix = "ENRICHMENT_"


class LLMSettings(BaseSettings):
    """LLM 配置"""
    provider: str = Field(default="anthropic", description="LLM提供商: openai, anthropic")
    model_name: Optional[str] = Field(default=None, description="模型名称(不填则使用默认)")
    temperature: float = Field(default=0.2, description="生成温度")
    max_tokens: int = Field(default=2048, description="最大生成token数")

    # API Keys
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API Key")

    class Config:
        env_prefix = "LLM_"


class WorkflowSettings(BaseSettings):
    """工作流配置"""
    recursion_limit: int = Field(default=200, description="LangGraph 最大步数")

    class Config:
        env_prefix = "WORKFLOW_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    evaluation: EvaluationSettings = Field(default_factory=EvaluationSettings)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    enrichment: EnrichmentSettings = Field(default_factory=EnrichmentSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            # 默认查找 config/.env
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            discovery=DiscoverySettings(),
            evaluation=EvaluationSettings(),
            selection=SelectionSettings(),
            cache=CacheSettings(),
            enrichment=EnrichmentSettings(),
            llm=LLMSettings(),
            workflow=WorkflowSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


# 便捷访问
def get_discovery_settings() -> DiscoverySettings:
    return get_settings().discovery


def get_evaluation_settings() -> EvaluationSettings:
    return get_settings().evaluation


def get_cache_settings() -> CacheSettings:
    return get_settings().cache


def get_enrichment_settings() -> EnrichmentSettings:
    return get_settings().enrichment


def get_llm_settings() -> LLMSettings:
    return get_settings().llm
