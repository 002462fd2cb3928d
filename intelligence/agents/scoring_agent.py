"""
Scoring Agent
条目评分 - 判断单个条目与检索条件的匹配度
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import json
import logging

from intelligence.llm import BaseLLM, get_llm
from intelligence.token_tracker import TokenTracker
from models import CatalogItem, Criteria, Evaluation, ScoredBy
from scrapers.enrichment import BaseEnrichmentService
from utils.exceptions import LLMError, ScoringError


logger = logging.getLogger(__name__)


SCORING_SYSTEM_PROMPT = """You evaluate whether a film fits a viewer's criteria.

Scoring guide:
- 0.9-1.0: excellent match on genres, themes and audience
- 0.75-0.89: strong match, minor gaps
- 0.5-0.74: partial match
- below 0.5: poor match or contains excluded content

A film is "suitable" when it respects the audience restriction
(family audiences need G, PG or PG-13) and contains no excluded genres.

"widening_level" counts how many times the criteria were relaxed after too
few strong matches; at higher levels, treat films matching any of the
"search_keywords" as acceptable partial matches.

Return JSON: {"confidence": 0.0-1.0, "suitable": true|false, "reasoning": "one or two sentences"}
"""


class BaseItemScorer(ABC):
    """评分器抽象基类"""

    @abstractmethod
    async def score(self, item: CatalogItem, criteria: Criteria) -> Evaluation:
        """
        评估单个条目

        Args:
            item: 目录条目
            criteria: 检索条件

        Returns:
            Evaluation

        Raises:
            ScoringError: 单次评分失败 (调用方降级为启发式评分)
        """
        pass


class LLMItemScorer(BaseItemScorer):
    """
    基于 LLM 的评分器

    负责：
    1. 描述过短时通过补全服务获取更多上下文 (可选)
    2. 调用 LLM 给出置信度与理由
    3. 记录 token 用量
    """

    def __init__(
        self,
        llm: Optional[BaseLLM] = None,
        *,
        enrichment: Optional[BaseEnrichmentService] = None,
        token_tracker: Optional[TokenTracker] = None,
        thin_description_chars: int = 50,
    ):
        self.llm = llm or get_llm()
        self.enrichment = enrichment
        self.token_tracker = token_tracker
        self.thin_description_chars = thin_description_chars

    async def _maybe_enrich(self, item: CatalogItem) -> CatalogItem:
        if self.enrichment is None or len(item.description) >= self.thin_description_chars:
            return item
        enriched = await self.enrichment.enrich(item)
        if enriched is None:
            logger.debug(f"[ScoringAgent] Enrichment unavailable for '{item.title}'")
            return item
        return enriched

    @staticmethod
    def _format_prompt(item: CatalogItem, criteria: Criteria) -> str:
        payload = {
            "criteria": {
                "request": criteria.original_request,
                "target_genres": criteria.target_tags,
                "excluded_genres": criteria.excluded_tags,
                "audience": criteria.audience,
                "family_appropriate_only": criteria.suitable_only,
                "preferred_themes": criteria.preferred_themes,
                "avoided_themes": criteria.avoided_themes,
                "search_keywords": criteria.search_keywords,
                "widening_level": criteria.widening_level,
            },
            "film": {
                "title": item.title,
                "year": item.year,
                "genres": item.tags,
                "rating": item.rating,
                "director": item.creator,
                "classification": item.classification,
                "themes": item.themes,
                "description": item.description,
            },
        }
        return json.dumps(payload, ensure_ascii=False, indent=2)

    async def score(self, item: CatalogItem, criteria: Criteria) -> Evaluation:
        item = await self._maybe_enrich(item)
        prompt = self._format_prompt(item, criteria)

        try:
            parsed, response = await self.llm.ajson(prompt, system_prompt=SCORING_SYSTEM_PROMPT)
        except LLMError as e:
            raise ScoringError(f"Scorer call failed: {e.message}", item_key=item.item_key) from e

        if self.token_tracker is not None:
            self.token_tracker.add_response(
                response.usage,
                operation="item-scoring",
                prompt_text=SCORING_SYSTEM_PROMPT + prompt,
                response_text=response.content,
            )

        return self._to_evaluation(item, parsed)

    @staticmethod
    def _to_evaluation(item: CatalogItem, parsed: Dict[str, Any]) -> Evaluation:
        raw_confidence = parsed.get("confidence", parsed.get("confidence_score"))
        try:
            confidence = float(raw_confidence)
        except (TypeError, ValueError) as e:
            raise ScoringError(
                f"Scorer returned no usable confidence: {raw_confidence!r}",
                item_key=item.item_key,
            ) from e

        return Evaluation(
            item=item,
            confidence_score=round(max(0.0, min(1.0, confidence)), 3),
            reasoning=str(parsed.get("reasoning") or "").strip(),
            suitable=bool(parsed.get("suitable", item.is_suitable)),
            scored_by=ScoredBy.SCORER,
        )
