"""
Heuristic Scoring
确定性启发式评分 - 评分器失败时的降级方案，也可作为离线评分器。
"""

from __future__ import annotations

from typing import Iterable, List, Set

from models import CatalogItem, Criteria, Evaluation, ScoredBy

from .scoring_agent import BaseItemScorer

BASE_SCORE = 0.5
TAG_ALIGNMENT_MIN = 0.3
TAG_ALIGNMENT_BONUS = 0.2
SUITABLE_BONUS = 0.15
UNSUITABLE_PENALTY = 0.2
EXCLUDED_TAG_PENALTY = 0.3
GOOD_RATING = 7.0
GOOD_RATING_BONUS = 0.1
GREAT_RATING = 8.0
GREAT_RATING_BONUS = 0.05
THEME_BONUS_STEP = 0.05
THEME_BONUS_MAX = 0.1
AVOIDED_THEME_PENALTY = 0.1
SCORE_FLOOR = 0.05
SCORE_CEILING = 0.95


def _lowered(values: Iterable[str]) -> Set[str]:
    return {str(value).strip().lower() for value in values or [] if str(value).strip()}


def tag_alignment(item: CatalogItem, criteria: Criteria) -> float:
    """Share of target tags present on the item (0 when no targets)."""
    targets = _lowered(criteria.target_tags)
    if not targets:
        return 0.0
    return len(targets & _lowered(item.tags)) / len(targets)


def heuristic_evaluation(
    item: CatalogItem,
    criteria: Criteria,
    *,
    scored_by: ScoredBy = ScoredBy.FALLBACK,
) -> Evaluation:
    """Pure score from tag overlap, suitability and rating."""
    score = BASE_SCORE
    reasons: List[str] = []

    alignment = tag_alignment(item, criteria)
    if alignment > TAG_ALIGNMENT_MIN:
        score += TAG_ALIGNMENT_BONUS
        reasons.append(f"genre alignment {alignment:.2f}")

    excluded_hits = sorted(_lowered(criteria.excluded_tags) & _lowered(item.tags))
    if excluded_hits:
        score -= EXCLUDED_TAG_PENALTY
        reasons.append(f"excluded genres {', '.join(excluded_hits)}")

    if criteria.suitable_only:
        if item.is_suitable:
            score += SUITABLE_BONUS
            reasons.append(f"family appropriate ({item.classification})")
        else:
            score -= UNSUITABLE_PENALTY
            reasons.append(f"not family appropriate ({item.classification})")

    if item.rating >= GOOD_RATING:
        score += GOOD_RATING_BONUS
        if item.rating >= GREAT_RATING:
            score += GREAT_RATING_BONUS
        reasons.append(f"rated {item.rating:.1f}")

    item_themes = _lowered(item.themes)
    preferred_hits = _lowered(criteria.preferred_themes) & item_themes
    if preferred_hits:
        score += min(THEME_BONUS_MAX, THEME_BONUS_STEP * len(preferred_hits))
        reasons.append(f"preferred themes {', '.join(sorted(preferred_hits))}")
    avoided_hits = _lowered(criteria.avoided_themes) & item_themes
    if avoided_hits:
        score -= AVOIDED_THEME_PENALTY
        reasons.append(f"avoided themes {', '.join(sorted(avoided_hits))}")

    suitable = not excluded_hits and (item.is_suitable or not criteria.suitable_only)
    return Evaluation(
        item=item,
        confidence_score=round(max(SCORE_FLOOR, min(SCORE_CEILING, score)), 3),
        reasoning="Heuristic: " + ("; ".join(reasons) if reasons else "no strong signals"),
        suitable=suitable,
        scored_by=scored_by,
    )


class HeuristicItemScorer(BaseItemScorer):
    """Offline scorer backed by the heuristic; used when no LLM is configured."""

    async def score(self, item: CatalogItem, criteria: Criteria) -> Evaluation:
        return heuristic_evaluation(item, criteria, scored_by=ScoredBy.SCORER)
