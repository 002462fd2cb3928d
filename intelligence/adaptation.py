"""
Adaptive Retry
质量门控失败时确定性地放宽检索条件。
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from intelligence.state.workflow_state import WorkflowState
from models import Criteria

logger = logging.getLogger(__name__)

# 一跳相关类型
RELATED_TAGS: Dict[str, Tuple[str, ...]] = {
    "science fiction": ("Adventure", "Mystery", "Fantasy"),
    "fantasy": ("Adventure", "Animation", "Science Fiction"),
    "adventure": ("Action", "Family", "Fantasy"),
    "action": ("Adventure", "Thriller"),
    "thriller": ("Mystery", "Drama"),
    "mystery": ("Thriller", "Drama"),
    "drama": ("History", "Biography"),
    "history": ("Drama", "Biography"),
    "biography": ("Drama", "History"),
    "comedy": ("Family", "Animation"),
    "family": ("Animation", "Comedy", "Adventure"),
    "animation": ("Family", "Comedy", "Adventure"),
    "romance": ("Drama", "Comedy"),
    "horror": ("Thriller", "Mystery"),
}

# 无目标类型时按轮次加入的通用类型
FALLBACK_TAGS: Tuple[str, ...] = ("Adventure", "Drama", "Comedy", "Family")


def _dedupe(values: List[str]) -> List[str]:
    ordered: List[str] = []
    seen = set()
    for value in values:
        key = value.strip().lower()
        if key and key not in seen:
            seen.add(key)
            ordered.append(value.strip())
    return ordered


def widen_tags(criteria: Criteria, attempt: int) -> List[str]:
    excluded = {tag.lower() for tag in criteria.excluded_tags}
    tags = list(criteria.target_tags)
    if tags:
        for tag in criteria.target_tags:
            tags.extend(RELATED_TAGS.get(tag.lower(), ()))
    else:
        tags.extend(FALLBACK_TAGS[: max(1, attempt)])
    return sorted(
        (tag for tag in _dedupe(tags) if tag.lower() not in excluded),
        key=str.lower,
    )


def adapt_criteria(criteria: Criteria, attempt: int) -> Criteria:
    """Clone criteria with one more hop of related tags and the matching keywords."""
    tags = widen_tags(criteria, attempt)
    added = [tag for tag in tags if tag.lower() not in {t.lower() for t in criteria.target_tags}]
    keywords = _dedupe(
        list(criteria.search_keywords)
        + sorted(tag.lower() for tag in added)
        + sorted(theme.lower() for theme in criteria.preferred_themes)
    )
    widened = criteria.model_copy(
        update={
            "target_tags": tags,
            "search_keywords": keywords,
            "widening_level": criteria.widening_level + 1,
        }
    )
    logger.info(f"Widened criteria (attempt {attempt}): added tags {added or 'none'}")
    return widened


def needs_adaptation(state: WorkflowState) -> bool:
    """Adapt only after a non-empty batch failed the gate with attempts remaining."""
    if state.get("completed"):
        return False
    return (
        bool(state.get("evaluated_batch"))
        and not state.get("quality_gate_passed", False)
        and int(state.get("search_attempt", 0) or 0) < int(state.get("max_search_attempts", 0) or 0)
    )
