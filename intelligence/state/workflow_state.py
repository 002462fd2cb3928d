"""
Workflow State
全局状态定义 - 用于 LangGraph 状态管理
"""
from typing import Any, Annotated, Dict, List, Optional, Set, TypedDict
from enum import Enum
import operator

from models import CatalogItem, CatalogLink, Criteria, Evaluation, ProcessedItem, Provenance


class WorkflowPhase(str, Enum):
    """工作流执行阶段"""
    INIT = "init"                    # 初始化
    EXTRACTING = "extracting"        # 解析需求
    DISCOVERING = "discovering"      # 发现条目
    EVALUATING = "evaluating"        # 批量评估
    ADAPTING = "adapting"            # 放宽条件
    FINALIZING = "finalizing"        # 最终选择
    COMPLETED = "completed"          # 完成
    ERROR = "error"                  # 错误


# 用于 LangGraph 的状态累加器
def merge_seen_urls(existing: Optional[Set[str]], new: Optional[Set[str]]) -> Set[str]:
    """合并已见链接 (并集)"""
    merged = set(existing or ())
    merged.update(new or ())
    return merged


class WorkflowState(TypedDict, total=False):
    """
    推荐流程状态

    每个节点只返回增量；processed_items 与 acceptable_candidates 只追加，
    seen_urls 取并集，其余字段直接覆盖
    """
    # 输入
    user_request: str
    criteria: Optional[Criteria]

    # 发现
    processed_items: Annotated[List[ProcessedItem], operator.add]
    link_queue: List[CatalogLink]
    seen_urls: Annotated[Set[str], merge_seen_urls]
    discovery_depth: int
    max_discovery_depth: int

    # 分页窗口
    batch_offset: int
    batch_size: int
    discovered_batch: List[CatalogItem]

    # 评估
    evaluated_batch: List[Evaluation]
    acceptable_candidates: Annotated[List[Evaluation], operator.add]
    min_candidates: int
    quality_gate_passed: bool
    high_confidence_count: int

    # 重试
    search_attempt: int
    max_search_attempts: int

    # 输出
    final_recommendations: List[Evaluation]
    completed: bool

    # 控制
    phase: str
    last_error: Optional[str]


def create_initial_state(
    user_request: str,
    *,
    batch_size: Optional[int] = None,
    max_discovery_depth: Optional[int] = None,
    min_candidates: Optional[int] = None,
    max_search_attempts: Optional[int] = None,
) -> WorkflowState:
    """创建初始状态 (未指定的参数读取配置)"""
    from config import get_settings

    settings = get_settings()
    return {
        "user_request": str(user_request or "").strip(),
        "criteria": None,
        "processed_items": [],
        "link_queue": [],
        "seen_urls": set(),
        "discovery_depth": 0,
        "max_discovery_depth": (
            settings.discovery.max_discovery_depth if max_discovery_depth is None else max_discovery_depth
        ),
        "batch_offset": 0,
        "batch_size": settings.discovery.batch_size if batch_size is None else batch_size,
        "discovered_batch": [],
        "evaluated_batch": [],
        "acceptable_candidates": [],
        "min_candidates": settings.evaluation.min_candidates if min_candidates is None else min_candidates,
        "quality_gate_passed": False,
        "high_confidence_count": 0,
        "search_attempt": 0,
        "max_search_attempts": (
            settings.evaluation.max_search_attempts if max_search_attempts is None else max_search_attempts
        ),
        "final_recommendations": [],
        "completed": False,
        "phase": WorkflowPhase.INIT.value,
        "last_error": None,
    }


def current_window(state: WorkflowState) -> List[CatalogItem]:
    """当前分页窗口内的条目"""
    offset = int(state.get("batch_offset", 0) or 0)
    size = int(state.get("batch_size", 0) or 0)
    processed = list(state.get("processed_items") or [])
    return [entry.item for entry in processed[offset:offset + size]]


def candidate_keys(state: WorkflowState) -> Set[str]:
    """已入选候选的条目键"""
    return {evaluation.item_key for evaluation in state.get("acceptable_candidates") or []}


def discovery_stats(state: WorkflowState) -> Dict[str, Any]:
    """发现阶段统计: 各来源路径的已处理/排队数量与深度"""
    processed: Dict[str, int] = {provenance.value: 0 for provenance in Provenance}
    for entry in state.get("processed_items") or []:
        processed[Provenance(entry.provenance).value] += 1

    queued: Dict[str, int] = {provenance.value: 0 for provenance in Provenance}
    for link in state.get("link_queue") or []:
        queued[Provenance(link.provenance).value] += 1

    return {
        "processed": processed,
        "queued": queued,
        "total_processed": sum(processed.values()),
        "total_queued": sum(queued.values()),
        "seen_urls": len(state.get("seen_urls") or ()),
        "depth": int(state.get("discovery_depth", 0) or 0),
        "max_depth": int(state.get("max_discovery_depth", 0) or 0),
    }
