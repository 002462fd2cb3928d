"""
Intelligence Module
智能层 - LLM抽象 + LangGraph编排 + 发现/评估/路由/选择
"""
from .llm import (
    BaseLLM,
    OpenAILLM,
    AnthropicLLM,
    get_llm,
)
from .state import WorkflowState, WorkflowPhase, create_initial_state
from .agents import (
    KeywordCriteriaExtractor,
    LLMCriteriaExtractor,
    LLMItemScorer,
    HeuristicItemScorer,
    ItemNormalizer,
)
from .discovery import LinkQueue, DiscoveryResult, discover
from .evaluation import BatchEvaluator, BatchEvaluation, fallback_evaluation
from .routing import RouteDecision, ROUTING_TABLE, route, explain_route
from .adaptation import adapt_criteria
from .selection import select_final, summarize_recommendations
from .token_tracker import TokenTracker
from .graph import RecommendationGraph, create_recommendation_graph, run_recommendation

__all__ = [
    # LLM
    "BaseLLM",
    "OpenAILLM",
    "AnthropicLLM",
    "get_llm",
    # State
    "WorkflowState",
    "WorkflowPhase",
    "create_initial_state",
    # Agents
    "KeywordCriteriaExtractor",
    "LLMCriteriaExtractor",
    "LLMItemScorer",
    "HeuristicItemScorer",
    "ItemNormalizer",
    # Engine
    "LinkQueue",
    "DiscoveryResult",
    "discover",
    "BatchEvaluator",
    "BatchEvaluation",
    "fallback_evaluation",
    "RouteDecision",
    "ROUTING_TABLE",
    "route",
    "explain_route",
    "adapt_criteria",
    "select_final",
    "summarize_recommendations",
    "TokenTracker",
    # Graph
    "RecommendationGraph",
    "create_recommendation_graph",
    "run_recommendation",
]
