"""
Batch Evaluator
并发评分 + 质量门控；单条失败降级为启发式评分，不影响整批。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from intelligence.agents.heuristics import heuristic_evaluation
from intelligence.agents.scoring_agent import BaseItemScorer
from models import CatalogItem, Criteria, Evaluation, ScoredBy

logger = logging.getLogger(__name__)


def fallback_evaluation(item: CatalogItem, criteria: Criteria) -> Evaluation:
    """Deterministic replacement score for a failed scorer call."""
    return heuristic_evaluation(item, criteria, scored_by=ScoredBy.FALLBACK)


def count_high_confidence(evaluations: Sequence[Evaluation], threshold: float) -> int:
    return sum(1 for evaluation in evaluations if evaluation.confidence_score >= threshold)


@dataclass
class BatchEvaluation:
    evaluations: List[Evaluation] = field(default_factory=list)
    high_confidence: List[Evaluation] = field(default_factory=list)
    high_confidence_count: int = 0
    quality_gate_passed: bool = False
    fallback_count: int = 0


class BatchEvaluator:
    """Scores every item concurrently and applies the quality gate."""

    def __init__(
        self,
        scorer: BaseItemScorer,
        *,
        high_confidence_threshold: float = 0.75,
        quality_gate_min: int = 3,
        item_timeout_seconds: Optional[float] = None,
    ) -> None:
        self.scorer = scorer
        self.high_confidence_threshold = float(high_confidence_threshold)
        self.quality_gate_min = int(quality_gate_min)
        self.item_timeout_seconds = item_timeout_seconds

    async def _score(self, item: CatalogItem, criteria: Criteria) -> Evaluation:
        if self.item_timeout_seconds:
            return await asyncio.wait_for(
                self.scorer.score(item, criteria),
                timeout=self.item_timeout_seconds,
            )
        return await self.scorer.score(item, criteria)

    async def evaluate(self, items: Sequence[CatalogItem], criteria: Criteria) -> BatchEvaluation:
        items = list(items)
        if not items:
            return BatchEvaluation()

        results = await asyncio.gather(
            *(self._score(item, criteria) for item in items),
            return_exceptions=True,
        )

        evaluations: List[Evaluation] = []
        fallback_count = 0
        for item, result in zip(items, results):
            if isinstance(result, Evaluation):
                evaluations.append(result)
                continue
            fallback_count += 1
            reason = "timed out" if isinstance(result, asyncio.TimeoutError) else str(result) or type(result).__name__
            logger.warning(f"Scorer failed for '{item.title}' ({reason}), using fallback heuristic")
            evaluations.append(fallback_evaluation(item, criteria))

        high_confidence = [
            evaluation for evaluation in evaluations
            if evaluation.confidence_score >= self.high_confidence_threshold
        ]
        passed = len(high_confidence) >= self.quality_gate_min
        logger.info(
            f"Evaluated {len(evaluations)} items: {len(high_confidence)} high confidence "
            f"(>= {self.high_confidence_threshold}), gate {'passed' if passed else 'failed'}"
        )
        return BatchEvaluation(
            evaluations=evaluations,
            high_confidence=high_confidence,
            high_confidence_count=len(high_confidence),
            quality_gate_passed=passed,
            fallback_count=fallback_count,
        )
