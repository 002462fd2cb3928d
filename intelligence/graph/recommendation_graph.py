"""
Recommendation Graph
LangGraph 主图定义 - 发现 / 评估 / 放宽 / 最终选择 循环
"""
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional
import asyncio
import logging
import threading
import time
import uuid

from langgraph.graph import StateGraph, END, START
from langgraph.checkpoint.memory import MemorySaver

from config import Settings, get_settings
from intelligence.adaptation import adapt_criteria, needs_adaptation
from intelligence.agents import (
    BaseCriteriaExtractor,
    BaseItemScorer,
    HeuristicItemScorer,
    ItemNormalizer,
    KeywordCriteriaExtractor,
    LLMCriteriaExtractor,
    LLMItemScorer,
)
from intelligence.discovery import discover
from intelligence.evaluation import BatchEvaluation, BatchEvaluator
from intelligence.events import (
    ERROR,
    FINAL_RESULT,
    PROGRESS,
    STAGE_COMPLETED,
    STAGE_STARTED,
    ProgressCallback,
    emit_event,
)
from intelligence.llm import has_llm_credentials
from intelligence.routing import RouteDecision, explain_route, route
from intelligence.selection import select_final, summarize_recommendations
from intelligence.state import (
    WorkflowPhase,
    WorkflowState,
    candidate_keys,
    create_initial_state,
    current_window,
    discovery_stats,
)
from intelligence.token_tracker import TokenTracker
from scrapers.base import BaseCatalogSource
from scrapers.enrichment import BaseEnrichmentService, TMDBEnrichmentService
from scrapers.static_catalog import StaticCatalogSource
from storage.cache import BaseCatalogCache, get_cache
from utils.exceptions import CatalogCuratorError, RunInProgressError


logger = logging.getLogger(__name__)

CANCELLED = "cancelled"

NodeFn = Callable[[WorkflowState], Awaitable[Dict[str, Any]]]
CommitFn = Callable[[WorkflowState, Dict[str, Any]], Awaitable[None]]

# 路由决策 -> 节点名
ROUTE_TARGETS = {
    RouteDecision.END.value: END,
    RouteDecision.FINALIZE.value: "finalize",
    RouteDecision.EVALUATE_BATCH.value: "evaluate",
    RouteDecision.CONTINUE_DISCOVERY.value: "discover",
}


# ===== 边函数 (条件路由) =====

def route_next(state: WorkflowState) -> str:
    """按转移表决定下一步"""
    decision = route(state)
    logger.debug(f"Route -> {decision.value} ({explain_route(state)})")
    return decision.value


def route_after_evaluation(state: WorkflowState) -> str:
    """评估后: 质量门控失败且仍有尝试次数时先放宽条件"""
    if needs_adaptation(state):
        return "adapt"
    return route_next(state)


# ===== 图构建 =====

def create_recommendation_graph(nodes: Dict[str, NodeFn]) -> StateGraph:
    """
    创建推荐工作流图

    流程：
    1. Extract -> Discover
    2. Discover -> 路由 (Evaluate / Discover / Finalize / END)
    3. Evaluate -> Adapt (门控失败) 或 路由
    4. Adapt -> 路由
    5. Finalize -> 路由 (END)

    Args:
        nodes: 节点名 -> 异步节点函数 (extract_criteria, discover, evaluate, adapt, finalize)

    Returns:
        未编译的 StateGraph
    """
    workflow = StateGraph(WorkflowState)

    for name in ("extract_criteria", "discover", "evaluate", "adapt", "finalize"):
        workflow.add_node(name, nodes[name])

    # START -> Extract -> Discover
    workflow.add_edge(START, "extract_criteria")
    workflow.add_edge("extract_criteria", "discover")

    workflow.add_conditional_edges("discover", route_next, ROUTE_TARGETS)
    workflow.add_conditional_edges(
        "evaluate",
        route_after_evaluation,
        {**ROUTE_TARGETS, "adapt": "adapt"},
    )
    workflow.add_conditional_edges("adapt", route_next, ROUTE_TARGETS)
    workflow.add_conditional_edges("finalize", route_next, ROUTE_TARGETS)

    return workflow


class RecommendationGraph:
    """
    推荐图封装类

    持有所有可注入的协作者 (目录源、缓存、解析器、评分器、补全服务)，
    并在每个阶段边界检查取消标记
    """

    def __init__(
        self,
        *,
        source: Optional[BaseCatalogSource] = None,
        cache: Optional[BaseCatalogCache] = None,
        extractor: Optional[BaseCriteriaExtractor] = None,
        scorer: Optional[BaseItemScorer] = None,
        normalizer: Optional[ItemNormalizer] = None,
        enrichment: Optional[BaseEnrichmentService] = None,
        settings: Optional[Settings] = None,
        progress_callback: Optional[ProgressCallback] = None,
        token_tracker: Optional[TokenTracker] = None,
        checkpointer: bool = False,
    ):
        """
        初始化推荐图

        Args:
            source: 目录数据源 (默认内置示例库)
            cache: 目录缓存 (默认读取配置)
            extractor: 需求解析器 (有 LLM Key 时用 LLM，否则关键词)
            scorer: 评分器 (有 LLM Key 时用 LLM，否则启发式)
            normalizer: 归一化器
            enrichment: 补全服务 (仅 LLM 评分器使用)
            settings: 配置 (默认全局配置)
            progress_callback: 生命周期通知回调
            token_tracker: token 用量统计
            checkpointer: 是否启用状态检查点
        """
        self.settings = settings or get_settings()
        self.token_tracker = token_tracker or TokenTracker()
        self.progress_callback = progress_callback
        self.source = source or StaticCatalogSource(base_url=self.settings.discovery.seed_url)
        self.cache = cache or get_cache()
        self.normalizer = normalizer or ItemNormalizer()

        use_llm = has_llm_credentials()
        if extractor is None:
            extractor = (
                LLMCriteriaExtractor(token_tracker=self.token_tracker) if use_llm else KeywordCriteriaExtractor()
            )
        self.extractor = extractor

        if scorer is None:
            if use_llm:
                if enrichment is None:
                    enrichment = TMDBEnrichmentService.from_settings(cache=self.cache)
                scorer = LLMItemScorer(
                    enrichment=enrichment,
                    token_tracker=self.token_tracker,
                    thin_description_chars=self.settings.evaluation.thin_description_chars,
                )
            else:
                scorer = HeuristicItemScorer()
        self.scorer = scorer
        self.enrichment = enrichment

        self.evaluator = BatchEvaluator(
            self.scorer,
            high_confidence_threshold=self.settings.evaluation.high_confidence_threshold,
            quality_gate_min=self.settings.evaluation.quality_gate_min,
            item_timeout_seconds=self.settings.evaluation.item_timeout_seconds,
        )

        # run_id、取消标记、token 统计与补全计数均按实例保存，同一时刻只允许一个运行
        self._cancel_event = threading.Event()
        self._cache_ready = False
        self._running = False
        self.run_id: Optional[str] = None

        self.workflow = create_recommendation_graph(
            {
                "extract_criteria": self._stage("extract_criteria", WorkflowPhase.EXTRACTING, self._extract_criteria),
                "discover": self._stage("discover", WorkflowPhase.DISCOVERING, self._discover),
                "evaluate": self._stage("evaluate", WorkflowPhase.EVALUATING, self._evaluate),
                "adapt": self._stage("adapt", WorkflowPhase.ADAPTING, self._adapt),
                "finalize": self._stage(
                    "finalize", WorkflowPhase.FINALIZING, self._finalize, on_commit=self._publish_final
                ),
            }
        )

        if checkpointer:
            self.memory = MemorySaver()
            self.graph = self.workflow.compile(checkpointer=self.memory)
        else:
            self.graph = self.workflow.compile()

    # ===== 取消 =====

    def cancel(self) -> None:
        """请求取消 (在下一个阶段边界生效)"""
        logger.warning(f"Cancellation requested for run {self.run_id}")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # ===== 阶段包装 =====

    async def _emit(self, event: str, **payload: Any) -> None:
        await emit_event(self.progress_callback, event=event, run_id=self.run_id, **payload)

    async def _cancelled_delta(self, stage: str) -> Dict[str, Any]:
        logger.warning(f"Run {self.run_id} cancelled at stage '{stage}'")
        await self._emit(ERROR, stage=stage, message=CANCELLED)
        return {
            "phase": WorkflowPhase.ERROR.value,
            "completed": True,
            "last_error": CANCELLED,
        }

    def _stage(
        self,
        name: str,
        phase: WorkflowPhase,
        fn: NodeFn,
        on_commit: Optional[CommitFn] = None,
    ) -> NodeFn:
        """
        包装节点: 取消检查、阶段事件与耗时日志

        on_commit 仅在阶段结果被采纳 (未被取消) 后执行，用于对外发布结果
        """

        async def node(state: WorkflowState) -> Dict[str, Any]:
            if self.cancelled:
                return await self._cancelled_delta(name)

            await self._emit(STAGE_STARTED, stage=name, phase=phase.value)
            started = time.perf_counter()
            delta = await fn(state)
            elapsed = time.perf_counter() - started

            if self.cancelled:
                return await self._cancelled_delta(name)
            if on_commit is not None:
                await on_commit(state, delta)

            logger.info(f"[{name}] completed in {elapsed:.2f}s")
            await self._emit(STAGE_COMPLETED, stage=name, phase=phase.value, duration_seconds=round(elapsed, 3))
            return delta

        node.__name__ = name
        return node

    # ===== 节点函数 =====

    async def _extract_criteria(self, state: WorkflowState) -> Dict[str, Any]:
        criteria = await self.extractor.extract(state.get("user_request", ""))
        await self._emit(
            PROGRESS,
            stage="extract_criteria",
            criteria=criteria.model_dump(mode="json"),
        )
        return {
            "criteria": criteria,
            "phase": WorkflowPhase.EXTRACTING.value,
        }

    async def _discover(self, state: WorkflowState) -> Dict[str, Any]:
        result = await discover(
            state,
            source=self.source,
            cache=self.cache,
            settings=self.settings.discovery,
            normalizer=self.normalizer,
            progress_callback=self.progress_callback,
            run_id=self.run_id,
        )
        delta: Dict[str, Any] = {
            "processed_items": result.new_items,
            "link_queue": result.queue,
            "seen_urls": result.seen_urls,
            "discovery_depth": result.depth,
            "discovered_batch": result.batch,
            "phase": WorkflowPhase.DISCOVERING.value,
        }
        if result.truncated:
            delta["last_error"] = "discovery truncated by guardrail"

        preview: WorkflowState = dict(state)
        preview.update(
            processed_items=list(state.get("processed_items") or []) + result.new_items,
            link_queue=result.queue,
            seen_urls=result.seen_urls,
            discovery_depth=result.depth,
        )
        await self._emit(
            PROGRESS,
            stage="discover",
            new_items=len(result.new_items),
            cache_hits=result.cache_hits,
            fetched=result.fetched,
            failed=result.failed,
            stats=discovery_stats(preview),
        )
        return delta

    async def _evaluate(self, state: WorkflowState) -> Dict[str, Any]:
        offset = int(state.get("batch_offset", 0) or 0)
        window = current_window(state)

        known = candidate_keys(state)
        items = [item for item in window if item.item_key not in known]
        if len(items) < len(window):
            logger.debug(f"Skipping {len(window) - len(items)} items already accepted")

        batch = await self.evaluator.evaluate(items, state["criteria"]) if items else BatchEvaluation()

        accepted = []
        for evaluation in batch.high_confidence:
            if evaluation.item_key not in known:
                known.add(evaluation.item_key)
                accepted.append(evaluation)

        await self._emit(
            PROGRESS,
            stage="evaluate",
            evaluated=len(batch.evaluations),
            high_confidence=batch.high_confidence_count,
            quality_gate_passed=batch.quality_gate_passed,
            fallback=batch.fallback_count,
            candidates=len(state.get("acceptable_candidates") or []) + len(accepted),
        )
        return {
            "evaluated_batch": batch.evaluations,
            "acceptable_candidates": accepted,
            "quality_gate_passed": batch.quality_gate_passed,
            "high_confidence_count": batch.high_confidence_count,
            "batch_offset": offset + len(window),
            "phase": WorkflowPhase.EVALUATING.value,
        }

    async def _adapt(self, state: WorkflowState) -> Dict[str, Any]:
        attempt = int(state.get("search_attempt", 0) or 0) + 1
        criteria = adapt_criteria(state["criteria"], attempt)
        await self._emit(
            PROGRESS,
            stage="adapt",
            search_attempt=attempt,
            max_search_attempts=state.get("max_search_attempts"),
            target_tags=list(criteria.target_tags),
        )
        return {
            "criteria": criteria,
            "search_attempt": attempt,
            "phase": WorkflowPhase.ADAPTING.value,
        }

    async def _finalize(self, state: WorkflowState) -> Dict[str, Any]:
        candidates = list(state.get("acceptable_candidates") or [])
        final = select_final(
            candidates,
            k=self.settings.selection.final_count,
            unconditional_ratio=self.settings.selection.unconditional_ratio,
        )
        return {
            "final_recommendations": final,
            "completed": True,
            "phase": WorkflowPhase.COMPLETED.value,
        }

    async def _publish_final(self, state: WorkflowState, delta: Dict[str, Any]) -> None:
        final = delta["final_recommendations"]
        summary = summarize_recommendations(final)
        logger.info(
            f"Final recommendations: {summary['count']} items, "
            f"average confidence {summary['average_confidence']}"
        )
        await self._emit(
            FINAL_RESULT,
            recommendations=[evaluation.model_dump(mode="json") for evaluation in final],
            quality=summary,
            candidates=len(state.get("acceptable_candidates") or []),
            stats=discovery_stats(state),
            tokens=self.token_tracker.breakdown(),
        )

    # ===== 执行 =====

    @property
    def running(self) -> bool:
        return self._running

    def _claim_run(self, run_id: Optional[str]) -> None:
        """占用实例; 须在任何 await 之前调用"""
        if self._running:
            raise RunInProgressError(
                f"Run {self.run_id} is still in progress on this graph; "
                "use a separate RecommendationGraph for concurrent runs",
                run_id=run_id,
            )
        self._running = True

    async def _prepare_run(self, user_request: str, run_id: Optional[str]) -> WorkflowState:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self._cancel_event.clear()

        if not self._cache_ready:
            await asyncio.to_thread(self.cache.initialize)
            self._cache_ready = True

        if self.enrichment is not None:
            self.enrichment.reset()
        self.token_tracker.reset()

        return create_initial_state(
            user_request,
            batch_size=self.settings.discovery.batch_size,
            max_discovery_depth=self.settings.discovery.max_discovery_depth,
            min_candidates=self.settings.evaluation.min_candidates,
            max_search_attempts=self.settings.evaluation.max_search_attempts,
        )

    def _config(self, thread_id: Optional[str]) -> Dict[str, Any]:
        config: Dict[str, Any] = {"recursion_limit": self.settings.workflow.recursion_limit}
        if thread_id:
            config["configurable"] = {"thread_id": thread_id}
        return config

    async def run(
        self,
        user_request: str,
        *,
        run_id: Optional[str] = None,
        thread_id: Optional[str] = None,
    ) -> WorkflowState:
        """
        执行推荐流程

        Args:
            user_request: 自然语言请求
            run_id: 运行 ID (用于事件关联)
            thread_id: 会话 ID (用于状态持久化)

        Returns:
            最终状态

        Raises:
            RunInProgressError: 本实例已有运行中的任务
            CriteriaExtractionError: 需求解析失败
            CacheUnavailableError: 缓存启动失败
        """
        self._claim_run(run_id)
        try:
            initial_state = await self._prepare_run(user_request, run_id)
            final_state = await self.graph.ainvoke(initial_state, self._config(thread_id))
        except CatalogCuratorError as e:
            logger.error(f"Run {self.run_id} failed: {e}")
            await self._emit(ERROR, message=str(e), error_type=type(e).__name__)
            raise
        finally:
            self._running = False

        logger.info(
            f"Run {self.run_id} finished in phase '{final_state.get('phase')}' with "
            f"{len(final_state.get('final_recommendations') or [])} recommendations"
        )
        return final_state

    async def stream(
        self,
        user_request: str,
        *,
        run_id: Optional[str] = None,
        thread_id: Optional[str] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        流式执行，实时返回状态更新

        Yields:
            {node_name: state_delta}

        Raises:
            RunInProgressError: 本实例已有运行中的任务
        """
        self._claim_run(run_id)
        try:
            initial_state = await self._prepare_run(user_request, run_id)
            async for event in self.graph.astream(initial_state, self._config(thread_id)):
                yield event
        except CatalogCuratorError as e:
            logger.error(f"Run {self.run_id} failed: {e}")
            await self._emit(ERROR, message=str(e), error_type=type(e).__name__)
            raise
        finally:
            self._running = False

    async def aclose(self) -> None:
        """释放缓存与补全客户端"""
        if self.enrichment is not None:
            await self.enrichment.close()
        await self.source.close()
        await asyncio.to_thread(self.cache.close)
        self._cache_ready = False


async def run_recommendation(
    user_request: str,
    progress_callback: Optional[ProgressCallback] = None,
    **kwargs: Any,
) -> WorkflowState:
    """
    便捷函数 - 执行推荐流程 (非流式)

    Args:
        user_request: 自然语言请求
        progress_callback: 生命周期通知回调
        **kwargs: 透传给 RecommendationGraph 的协作者

    Returns:
        最终状态
    """
    graph = RecommendationGraph(progress_callback=progress_callback, **kwargs)
    try:
        return await graph.run(user_request)
    finally:
        await graph.aclose()
