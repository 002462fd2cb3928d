"""
Final Selector
按置信度排序并施加多样性约束的最终推荐选择。
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence, Set

from models import Evaluation


def select_final(
    candidates: Sequence[Evaluation],
    k: int = 5,
    unconditional_ratio: float = 0.6,
) -> List[Evaluation]:
    """Top-k by confidence; later slots must add an unused tag or creator, then fill by rank."""
    if k <= 0 or not candidates:
        return []

    ranked = sorted(candidates, key=lambda evaluation: evaluation.confidence_score, reverse=True)
    unconditional = min(k, math.ceil(k * unconditional_ratio))

    admitted: List[int] = []
    used_tags: Set[str] = set()
    used_creators: Set[str] = set()

    def _admit(index: int) -> None:
        item = ranked[index].item
        admitted.append(index)
        used_tags.update(tag.lower() for tag in item.tags)
        if item.creator.strip():
            used_creators.add(item.creator.strip().lower())

    for index, evaluation in enumerate(ranked):
        if len(admitted) >= k:
            break
        if len(admitted) < unconditional:
            _admit(index)
            continue
        item = evaluation.item
        new_tag = any(tag.lower() not in used_tags for tag in item.tags)
        creator = item.creator.strip().lower()
        new_creator = bool(creator) and creator not in used_creators
        if new_tag or new_creator:
            _admit(index)

    if len(admitted) < k:
        chosen = set(admitted)
        for index in range(len(ranked)):
            if len(admitted) >= k:
                break
            if index not in chosen:
                admitted.append(index)

    return [ranked[index] for index in admitted]


def summarize_recommendations(recommendations: Sequence[Evaluation]) -> Dict[str, Any]:
    """Average confidence and tag distribution of the final list."""
    tag_counts: Dict[str, int] = {}
    for evaluation in recommendations:
        for tag in evaluation.item.tags:
            tag_counts[tag] = tag_counts.get(tag, 0) + 1

    count = len(recommendations)
    average = sum(evaluation.confidence_score for evaluation in recommendations) / count if count else 0.0
    return {
        "count": count,
        "average_confidence": round(average, 3),
        "tag_distribution": dict(sorted(tag_counts.items(), key=lambda pair: (-pair[1], pair[0]))),
        "creators": sorted({evaluation.item.creator for evaluation in recommendations if evaluation.item.creator}),
    }
