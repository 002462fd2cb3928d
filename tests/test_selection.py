"""Tests for final recommendation selection."""

from __future__ import annotations

from intelligence.selection import select_final, summarize_recommendations
from models import CatalogItem, Evaluation


def _evaluation(title: str, score: float, tags=("Drama",), creator: str = "") -> Evaluation:
    return Evaluation(
        item=CatalogItem(title=title, year=2000, tags=list(tags), creator=creator),
        confidence_score=score,
        suitable=True,
    )


def test_returns_min_of_five_and_candidate_count() -> None:
    assert select_final([]) == []
    assert len(select_final([_evaluation("a", 0.9), _evaluation("b", 0.8)])) == 2

    many = [_evaluation(f"film {i}", 0.5 + i / 100, tags=[f"Tag {i}"]) for i in range(9)]
    assert len(select_final(many)) == 5


def test_first_slots_follow_confidence_order() -> None:
    candidates = [_evaluation("low", 0.6), _evaluation("high", 0.95), _evaluation("mid", 0.8)]

    picked = select_final(candidates)

    assert [evaluation.item.title for evaluation in picked] == ["high", "mid", "low"]


def test_later_slots_prefer_new_tags_or_creators() -> None:
    candidates = [
        _evaluation("a", 0.95, tags=["Drama"], creator="X"),
        _evaluation("b", 0.94, tags=["Drama"], creator="X"),
        _evaluation("c", 0.93, tags=["Drama"], creator="X"),
        _evaluation("d", 0.92, tags=["Drama"], creator="X"),
        _evaluation("e", 0.91, tags=["Drama"], creator="X"),
        _evaluation("f", 0.90, tags=["Comedy"], creator="X"),
        _evaluation("g", 0.89, tags=["Drama"], creator="Y"),
    ]

    picked = [evaluation.item.title for evaluation in select_final(candidates)]

    assert picked == ["a", "b", "c", "f", "g"]


def test_remaining_slots_fill_by_rank_when_diversity_runs_out() -> None:
    candidates = [_evaluation(title, 0.9 - i / 100, creator="X") for i, title in enumerate("abcdef")]

    picked = [evaluation.item.title for evaluation in select_final(candidates)]

    assert picked == ["a", "b", "c", "d", "e"]


def test_equal_scores_keep_input_order() -> None:
    candidates = [_evaluation(title, 0.8, tags=[title]) for title in "wxyz"]

    assert [evaluation.item.title for evaluation in select_final(candidates, k=3)] == ["w", "x", "y"]


def test_summary_reports_average_and_tag_distribution() -> None:
    picked = [
        _evaluation("a", 0.9, tags=["Drama", "History"], creator="X"),
        _evaluation("b", 0.7, tags=["Drama"], creator="Y"),
    ]

    summary = summarize_recommendations(picked)

    assert summary["count"] == 2
    assert summary["average_confidence"] == 0.8
    assert summary["tag_distribution"] == {"Drama": 2, "History": 1}
    assert summary["creators"] == ["X", "Y"]
