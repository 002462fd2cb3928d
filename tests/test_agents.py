"""Tests for criteria extraction, LLM scoring and token accounting."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest

from intelligence.adaptation import adapt_criteria
from intelligence.agents import KeywordCriteriaExtractor, LLMCriteriaExtractor, LLMItemScorer
from intelligence.llm.base import BaseLLM, LLMResponse, Message, extract_json
from intelligence.token_tracker import TokenTracker
from models import CatalogItem, Criteria, ScoredBy
from scrapers.enrichment import BaseEnrichmentService
from utils.exceptions import CriteriaExtractionError, LLMError, ScoringError


class _FakeLLM(BaseLLM):
    def __init__(self, payload: Any, *, usage: Optional[Dict[str, int]] = None) -> None:
        super().__init__(model="fake-model")
        self.payload = payload
        self.usage = usage or {}
        self.calls: List[List[Message]] = []

    @property
    def provider(self) -> str:
        return "fake"

    async def acomplete(self, messages, **kwargs) -> LLMResponse:
        self.calls.append(list(messages))
        content = self.payload if isinstance(self.payload, str) else json.dumps(self.payload)
        return LLMResponse(content=content, model=self.model, usage=dict(self.usage))


class _FailingLLM(_FakeLLM):
    def __init__(self) -> None:
        super().__init__({})

    async def acomplete(self, messages, **kwargs) -> LLMResponse:
        raise LLMError("rate limited", provider="fake")


class _FakeEnrichment(BaseEnrichmentService):
    def __init__(self) -> None:
        self.seen: List[str] = []

    async def enrich(self, item: CatalogItem) -> Optional[CatalogItem]:
        self.seen.append(item.title)
        return item.model_copy(update={"description": item.description + " Expanded synopsis from the enrichment service."})


def _item(**overrides) -> CatalogItem:
    payload = {
        "title": "Finding Nemo",
        "year": 2003,
        "tags": ["Animation", "Family"],
        "rating": 8.2,
        "classification": "G",
        "description": "A clown fish.",
    }
    payload.update(overrides)
    return CatalogItem(**payload)


@pytest.mark.asyncio
async def test_keyword_extractor_maps_family_and_negations() -> None:
    criteria = await KeywordCriteriaExtractor().extract(
        "something smart and not too violent for a family night"
    )

    assert criteria.target_tags == ["Family"]
    assert criteria.excluded_tags == ["Horror"]
    assert criteria.suitable_only is True
    assert criteria.audience == "family"
    assert criteria.avoided_themes == ["Violence", "Gore"]
    assert criteria.preferred_themes == ["Philosophy", "Science"]
    assert criteria.original_request.startswith("something smart")


@pytest.mark.asyncio
async def test_keyword_extractor_skips_negated_genres() -> None:
    criteria = await KeywordCriteriaExtractor().extract("sci-fi adventure, no horror please")

    assert criteria.target_tags == ["Science Fiction", "Adventure"]
    assert criteria.excluded_tags == ["Horror"]
    assert criteria.suitable_only is False


@pytest.mark.asyncio
async def test_extractors_reject_empty_requests() -> None:
    with pytest.raises(CriteriaExtractionError):
        await KeywordCriteriaExtractor().extract("   ")
    with pytest.raises(CriteriaExtractionError):
        await LLMCriteriaExtractor(llm=_FakeLLM({})).extract("")


@pytest.mark.asyncio
async def test_llm_extractor_builds_criteria_and_tracks_tokens() -> None:
    tracker = TokenTracker()
    llm = _FakeLLM(
        {
            "target_tags": ["Animation", "Adventure", "Horror"],
            "excluded_tags": ["Horror"],
            "audience": "Child",
            "preferred_themes": ["Friendship", "friendship"],
            "avoided_themes": [],
        },
        usage={"prompt_tokens": 120, "completion_tokens": 40},
    )

    criteria = await LLMCriteriaExtractor(llm=llm, token_tracker=tracker).extract("cartoons for my 6 year old")

    assert criteria.target_tags == ["Animation", "Adventure"]
    assert criteria.audience == "child"
    assert criteria.suitable_only is True
    assert criteria.preferred_themes == ["Friendship"]
    assert criteria.search_keywords == ["animation", "adventure"]
    assert tracker.breakdown()["by_operation"] == {"criteria-extraction": 160}
    assert llm.calls[0][0].content.startswith("You are a film recommendation analyst")


@pytest.mark.asyncio
async def test_llm_extractor_failures_are_fatal_extraction_errors() -> None:
    with pytest.raises(CriteriaExtractionError):
        await LLMCriteriaExtractor(llm=_FailingLLM()).extract("anything")
    with pytest.raises(CriteriaExtractionError):
        await LLMCriteriaExtractor(llm=_FakeLLM("no json here")).extract("anything")


@pytest.mark.asyncio
async def test_llm_scorer_parses_and_clamps_confidence() -> None:
    llm = _FakeLLM({"confidence": 1.4, "suitable": True, "reasoning": "Gentle ocean adventure."})

    evaluation = await LLMItemScorer(llm=llm).score(_item(), Criteria(target_tags=["Animation"]))

    assert evaluation.confidence_score == 1.0
    assert evaluation.suitable is True
    assert evaluation.reasoning == "Gentle ocean adventure."
    assert evaluation.scored_by == ScoredBy.SCORER


@pytest.mark.asyncio
async def test_llm_scorer_prompt_carries_widened_keywords() -> None:
    llm = _FakeLLM({"confidence": 0.6})
    scorer = LLMItemScorer(llm=llm)
    criteria = Criteria(target_tags=["Animation"], search_keywords=["animation"])

    await scorer.score(_item(), criteria)
    await scorer.score(_item(), adapt_criteria(criteria, 1))

    first, second = (json.loads(call[-1].content)["criteria"] for call in llm.calls)
    assert first["search_keywords"] == ["animation"]
    assert first["widening_level"] == 0
    assert second["search_keywords"] == ["animation", "adventure", "comedy", "family"]
    assert second["widening_level"] == 1
    assert second["target_genres"] == ["Adventure", "Animation", "Comedy", "Family"]


@pytest.mark.asyncio
async def test_llm_scorer_raises_scoring_error_on_bad_output() -> None:
    with pytest.raises(ScoringError):
        await LLMItemScorer(llm=_FakeLLM({"reasoning": "forgot the score"})).score(_item(), Criteria())
    with pytest.raises(ScoringError):
        await LLMItemScorer(llm=_FailingLLM()).score(_item(), Criteria())


@pytest.mark.asyncio
async def test_llm_scorer_enriches_only_thin_descriptions() -> None:
    enrichment = _FakeEnrichment()
    llm = _FakeLLM({"confidence": 0.8})
    scorer = LLMItemScorer(llm=llm, enrichment=enrichment)

    thin = await scorer.score(_item(), Criteria())
    rich = await scorer.score(
        _item(title="Up", description="An elderly widower ties thousands of balloons to his house and flies away."),
        Criteria(),
    )

    assert enrichment.seen == ["Finding Nemo"]
    assert "Expanded synopsis" in thin.item.description
    assert rich.item.title == "Up"
    # suitability defaults to the item classification
    assert thin.suitable is True


def test_token_tracker_estimates_when_usage_missing() -> None:
    tracker = TokenTracker()

    tracker.add_response({}, operation="item-scoring", prompt_text="x" * 40, response_text="y" * 8)
    tracker.add_usage(10, 5, "criteria-extraction")

    breakdown = tracker.breakdown()
    assert breakdown["input_tokens"] == 20
    assert breakdown["output_tokens"] == 7
    assert breakdown["total_tokens"] == 27
    assert breakdown["operation_count"] == 2

    tracker.reset()
    assert tracker.total_tokens == 0


def test_extract_json_handles_wrapped_output() -> None:
    assert extract_json('```json\n{"confidence": 0.7}\n```') == {"confidence": 0.7}
    assert extract_json("[1, 2]") == {}
    assert extract_json("") == {}
