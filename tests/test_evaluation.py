"""Tests for batch evaluation, the quality gate and the fallback heuristic."""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable

import pytest

from intelligence.agents import HeuristicItemScorer, heuristic_evaluation
from intelligence.agents.scoring_agent import BaseItemScorer
from intelligence.evaluation import BatchEvaluator, count_high_confidence, fallback_evaluation
from models import CatalogItem, Criteria, Evaluation, ScoredBy
from utils.exceptions import ScoringError


def _item(title: str, **overrides) -> CatalogItem:
    payload = {"title": title, "year": 2010, "tags": ["Science Fiction"], "rating": 6.0, "classification": "PG"}
    payload.update(overrides)
    return CatalogItem(**payload)


class _ScriptedScorer(BaseItemScorer):
    def __init__(self, scores: Dict[str, float], *, failing: Iterable[str] = (), slow: Iterable[str] = ()) -> None:
        self.scores = scores
        self.failing = set(failing)
        self.slow = set(slow)

    async def score(self, item: CatalogItem, criteria: Criteria) -> Evaluation:
        if item.title in self.failing:
            raise ScoringError("malformed response", item_key=item.item_key)
        if item.title in self.slow:
            await asyncio.sleep(5)
        return Evaluation(
            item=item,
            confidence_score=self.scores.get(item.title, 0.5),
            reasoning="scripted",
            suitable=True,
        )


@pytest.mark.asyncio
async def test_high_confidence_count_is_exact_at_threshold() -> None:
    scores = {"a": 0.9, "b": 0.75, "c": 0.7499, "d": 0.2}
    evaluator = BatchEvaluator(_ScriptedScorer(scores), high_confidence_threshold=0.75, quality_gate_min=3)

    result = await evaluator.evaluate([_item(title) for title in scores], Criteria())

    assert [evaluation.item.title for evaluation in result.evaluations] == ["a", "b", "c", "d"]
    assert result.high_confidence_count == 2
    assert [evaluation.item.title for evaluation in result.high_confidence] == ["a", "b"]
    assert result.quality_gate_passed is False
    assert count_high_confidence(result.evaluations, 0.75) == 2


@pytest.mark.asyncio
async def test_quality_gate_passes_with_enough_high_scores() -> None:
    scores = {"a": 0.9, "b": 0.8, "c": 0.76}
    evaluator = BatchEvaluator(_ScriptedScorer(scores), quality_gate_min=3)

    result = await evaluator.evaluate([_item(title) for title in scores], Criteria())

    assert result.quality_gate_passed is True
    assert result.fallback_count == 0


@pytest.mark.asyncio
async def test_scorer_failure_falls_back_to_heuristic_for_that_item_only() -> None:
    criteria = Criteria(target_tags=["Science Fiction"])
    evaluator = BatchEvaluator(_ScriptedScorer({"a": 0.9, "b": 0.9}, failing=["b"]))

    result = await evaluator.evaluate([_item("a"), _item("b")], criteria)

    assert len(result.evaluations) == 2
    assert result.evaluations[0].scored_by == ScoredBy.SCORER
    assert result.evaluations[1].scored_by == ScoredBy.FALLBACK
    assert result.evaluations[1] == fallback_evaluation(_item("b"), criteria)
    assert result.fallback_count == 1


@pytest.mark.asyncio
async def test_timed_out_item_uses_fallback() -> None:
    evaluator = BatchEvaluator(_ScriptedScorer({"a": 0.9}, slow=["a"]), item_timeout_seconds=0.01)

    result = await evaluator.evaluate([_item("a")], Criteria())

    assert result.evaluations[0].scored_by == ScoredBy.FALLBACK
    assert result.fallback_count == 1


@pytest.mark.asyncio
async def test_empty_batch_fails_the_gate() -> None:
    result = await BatchEvaluator(HeuristicItemScorer()).evaluate([], Criteria())

    assert result.evaluations == []
    assert result.quality_gate_passed is False


def test_heuristic_rewards_alignment_suitability_and_rating() -> None:
    criteria = Criteria(target_tags=["Animation", "Family"], suitable_only=True, preferred_themes=["Friendship"])
    item = _item("Up", tags=["Animation", "Family"], rating=8.3, themes=["Friendship"], classification="PG")

    evaluation = heuristic_evaluation(item, criteria)

    # 0.5 + 0.2 alignment + 0.15 suitable + 0.15 rating + 0.05 theme, clamped
    assert evaluation.confidence_score == 0.95
    assert evaluation.suitable is True
    assert evaluation.scored_by == ScoredBy.FALLBACK
    assert evaluation.reasoning.startswith("Heuristic:")


def test_heuristic_penalizes_excluded_and_unsuitable_items() -> None:
    criteria = Criteria(excluded_tags=["Horror"], suitable_only=True)
    item = _item("Scary", tags=["Horror"], rating=5.0, classification="R")

    evaluation = heuristic_evaluation(item, criteria)

    assert evaluation.confidence_score == 0.05
    assert evaluation.suitable is False


def test_heuristic_is_deterministic() -> None:
    criteria = Criteria(target_tags=["Science Fiction"], avoided_themes=["Violence"])
    item = _item("Dune", rating=7.5, themes=["Violence"])

    first = heuristic_evaluation(item, criteria)
    second = heuristic_evaluation(item, criteria)

    assert first == second
    assert first.confidence_score == 0.7
