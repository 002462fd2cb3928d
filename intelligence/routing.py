"""
Routing
纯函数路由：按顺序匹配转移表，首条命中即为决策。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Tuple

from intelligence.state.workflow_state import WorkflowState


class RouteDecision(str, Enum):
    END = "end"
    FINALIZE = "finalize"
    EVALUATE_BATCH = "evaluate_batch"
    CONTINUE_DISCOVERY = "continue_discovery"


@dataclass(frozen=True)
class RoutingRule:
    name: str
    predicate: Callable[[WorkflowState], bool]
    decision: RouteDecision


def _candidate_count(state: WorkflowState) -> int:
    return len(state.get("acceptable_candidates") or [])


def _is_done(state: WorkflowState) -> bool:
    return bool(state.get("final_recommendations")) or bool(state.get("completed"))


def _enough_candidates(state: WorkflowState) -> bool:
    return _candidate_count(state) >= int(state.get("min_candidates", 0) or 0)


def _attempts_exhausted(state: WorkflowState) -> bool:
    return int(state.get("search_attempt", 0) or 0) >= int(state.get("max_search_attempts", 0) or 0)


def _unevaluated_items(state: WorkflowState) -> bool:
    return int(state.get("batch_offset", 0) or 0) < len(state.get("processed_items") or [])


def _can_discover(state: WorkflowState) -> bool:
    return (
        int(state.get("discovery_depth", 0) or 0) < int(state.get("max_discovery_depth", 0) or 0)
        and bool(state.get("link_queue"))
        and not _enough_candidates(state)
    )


ROUTING_TABLE: Tuple[RoutingRule, ...] = (
    RoutingRule("completed", _is_done, RouteDecision.END),
    RoutingRule("enough_candidates", _enough_candidates, RouteDecision.FINALIZE),
    RoutingRule("attempts_exhausted", _attempts_exhausted, RouteDecision.FINALIZE),
    RoutingRule("unevaluated_items", _unevaluated_items, RouteDecision.EVALUATE_BATCH),
    RoutingRule("continue_discovery", _can_discover, RouteDecision.CONTINUE_DISCOVERY),
    RoutingRule("exhausted", lambda state: True, RouteDecision.FINALIZE),
)


def match_rule(state: WorkflowState) -> RoutingRule:
    for rule in ROUTING_TABLE:
        if rule.predicate(state):
            return rule
    return ROUTING_TABLE[-1]


def route(state: WorkflowState) -> RouteDecision:
    """Decide the next step from the accumulated state alone."""
    return match_rule(state).decision


def explain_route(state: WorkflowState) -> str:
    """Name of the rule that produced the decision."""
    return match_rule(state).name
