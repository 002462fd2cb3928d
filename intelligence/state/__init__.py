"""
State Module
工作流状态定义
"""
from .workflow_state import (
    WorkflowState,
    WorkflowPhase,
    merge_seen_urls,
    create_initial_state,
    current_window,
    candidate_keys,
    discovery_stats,
)

__all__ = [
    "WorkflowState",
    "WorkflowPhase",
    "merge_seen_urls",
    "create_initial_state",
    "current_window",
    "candidate_keys",
    "discovery_stats",
]
