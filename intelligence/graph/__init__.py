"""
Graph Module
LangGraph 工作流定义
"""
from .recommendation_graph import (
    RecommendationGraph,
    create_recommendation_graph,
    route_after_evaluation,
    route_next,
    run_recommendation,
)

__all__ = [
    "RecommendationGraph",
    "create_recommendation_graph",
    "route_after_evaluation",
    "route_next",
    "run_recommendation",
]
