"""Tests for criteria widening on failed quality gates."""

from __future__ import annotations

from intelligence.adaptation import adapt_criteria, needs_adaptation, widen_tags
from models import CatalogItem, Criteria, Evaluation


def _evaluated() -> list:
    return [Evaluation(item=CatalogItem(title="Gravity", year=2013), confidence_score=0.4)]


def test_widening_adds_related_tags_and_bumps_level() -> None:
    criteria = Criteria(
        original_request="sci-fi",
        target_tags=["Science Fiction"],
        search_keywords=["sci-fi"],
    )

    widened = adapt_criteria(criteria, attempt=1)

    assert widened.target_tags == ["Adventure", "Fantasy", "Mystery", "Science Fiction"]
    assert widened.search_keywords == ["sci-fi", "adventure", "fantasy", "mystery"]
    assert widened.widening_level == 1
    assert widened.original_request == "sci-fi"
    # the input criteria are left untouched
    assert criteria.target_tags == ["Science Fiction"]
    assert criteria.widening_level == 0


def test_widening_never_reintroduces_excluded_tags() -> None:
    criteria = Criteria(target_tags=["Family"], excluded_tags=["Comedy"])

    assert "Comedy" not in widen_tags(criteria, attempt=1)
    assert widen_tags(criteria, attempt=1) == ["Adventure", "Animation", "Family"]


def test_widening_is_deterministic() -> None:
    criteria = Criteria(target_tags=["Thriller", "Drama"])

    assert adapt_criteria(criteria, 2) == adapt_criteria(criteria, 2)


def test_empty_targets_gain_fallback_tags_per_attempt() -> None:
    criteria = Criteria()

    assert widen_tags(criteria, attempt=1) == ["Adventure"]
    assert widen_tags(criteria, attempt=2) == ["Adventure", "Drama"]


def test_needs_adaptation_only_after_failed_nonempty_batch() -> None:
    base = {
        "evaluated_batch": _evaluated(),
        "quality_gate_passed": False,
        "search_attempt": 0,
        "max_search_attempts": 3,
        "completed": False,
    }

    assert needs_adaptation(base) is True
    assert needs_adaptation({**base, "quality_gate_passed": True}) is False
    assert needs_adaptation({**base, "evaluated_batch": []}) is False
    assert needs_adaptation({**base, "search_attempt": 3}) is False
    assert needs_adaptation({**base, "completed": True}) is False
