"""Tests for the routing table."""

from __future__ import annotations

import copy
from typing import Any, Dict

from intelligence.routing import ROUTING_TABLE, RouteDecision, explain_route, route
from models import CatalogItem, CatalogLink, Evaluation, ProcessedItem


def _processed(count: int) -> list:
    return [
        ProcessedItem(item=CatalogItem(title=f"Film {i}", year=2000 + i), source_url=f"catalog://movies/film-{i}")
        for i in range(count)
    ]


def _candidates(count: int) -> list:
    return [
        Evaluation(item=CatalogItem(title=f"Pick {i}", year=2000 + i), confidence_score=0.9, suitable=True)
        for i in range(count)
    ]


def _state(**overrides) -> Dict[str, Any]:
    state: Dict[str, Any] = {
        "processed_items": [],
        "link_queue": [],
        "discovery_depth": 0,
        "max_discovery_depth": 3,
        "batch_offset": 0,
        "acceptable_candidates": [],
        "min_candidates": 3,
        "search_attempt": 0,
        "max_search_attempts": 3,
        "final_recommendations": [],
        "completed": False,
    }
    state.update(overrides)
    return state


def test_rule_order_matches_decision_table() -> None:
    assert [rule.name for rule in ROUTING_TABLE] == [
        "completed",
        "enough_candidates",
        "attempts_exhausted",
        "unevaluated_items",
        "continue_discovery",
        "exhausted",
    ]


def test_completed_state_ends() -> None:
    assert route(_state(completed=True, acceptable_candidates=_candidates(5))) == RouteDecision.END
    assert route(_state(final_recommendations=_candidates(1))) == RouteDecision.END


def test_enough_candidates_finalizes_even_with_pending_work() -> None:
    state = _state(
        acceptable_candidates=_candidates(3),
        processed_items=_processed(10),
        link_queue=[CatalogLink(title="x", url="catalog://movies/x")],
    )

    assert route(state) == RouteDecision.FINALIZE
    assert explain_route(state) == "enough_candidates"


def test_exhausted_attempts_finalize_before_more_evaluation() -> None:
    state = _state(search_attempt=3, processed_items=_processed(10), batch_offset=3)

    assert route(state) == RouteDecision.FINALIZE
    assert explain_route(state) == "attempts_exhausted"


def test_unevaluated_items_are_evaluated() -> None:
    state = _state(processed_items=_processed(10), batch_offset=5)
    assert route(state) == RouteDecision.EVALUATE_BATCH


def test_queue_with_depth_left_continues_discovery() -> None:
    state = _state(
        processed_items=_processed(4),
        batch_offset=4,
        discovery_depth=1,
        link_queue=[CatalogLink(title="x", url="catalog://movies/x")],
    )
    assert route(state) == RouteDecision.CONTINUE_DISCOVERY


def test_depth_limit_or_empty_queue_finalizes() -> None:
    queue = [CatalogLink(title="x", url="catalog://movies/x")]
    at_limit = _state(discovery_depth=3, link_queue=queue)
    empty = _state(discovery_depth=1)

    assert route(at_limit) == RouteDecision.FINALIZE
    assert explain_route(at_limit) == "exhausted"
    assert route(empty) == RouteDecision.FINALIZE


def test_route_is_pure() -> None:
    state = _state(processed_items=_processed(2), acceptable_candidates=_candidates(1))
    snapshot = copy.deepcopy(state)

    decisions = {route(state) for _ in range(5)}

    assert decisions == {RouteDecision.EVALUATE_BATCH}
    assert state == snapshot
