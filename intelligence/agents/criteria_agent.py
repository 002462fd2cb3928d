"""
Criteria Agent
需求解析 - 把自然语言请求转为结构化检索条件
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional
import logging
import re

from intelligence.llm import BaseLLM, get_llm
from intelligence.token_tracker import TokenTracker
from models import Criteria
from utils.exceptions import CriteriaExtractionError, LLMError


logger = logging.getLogger(__name__)


CRITERIA_SYSTEM_PROMPT = """You are a film recommendation analyst. Turn the viewer's request into structured search criteria.

Consider:
1. Genres the viewer wants, expanded with closely related genres.
2. Genres to exclude based on stated dislikes.
3. The audience: child, teen, adult, family or general.
4. Whether content must be family appropriate (G / PG / PG-13).
5. Themes the viewer would enjoy and themes to avoid.
6. Short search keywords for catalog discovery.

Return JSON with exactly these fields:
{
  "target_tags": ["..."],
  "excluded_tags": ["..."],
  "audience": "child|teen|adult|family|general",
  "suitable_only": true,
  "preferred_themes": ["..."],
  "avoided_themes": ["..."],
  "search_keywords": ["..."]
}
"""


# 关键词 -> 类型标签
TAG_KEYWORDS: Dict[str, str] = {
    "sci-fi": "Science Fiction",
    "scifi": "Science Fiction",
    "science fiction": "Science Fiction",
    "space": "Science Fiction",
    "comedy": "Comedy",
    "funny": "Comedy",
    "animated": "Animation",
    "animation": "Animation",
    "cartoon": "Animation",
    "adventure": "Adventure",
    "drama": "Drama",
    "thriller": "Thriller",
    "action": "Action",
    "fantasy": "Fantasy",
    "historical": "History",
    "history": "History",
    "mystery": "Mystery",
    "horror": "Horror",
    "scary": "Horror",
    "biography": "Biography",
}

# 关键词 -> 偏好主题
THEME_KEYWORDS: Dict[str, List[str]] = {
    "smart": ["Philosophy", "Science"],
    "intelligent": ["Philosophy", "Science"],
    "thought-provoking": ["Philosophy", "Identity"],
    "uplifting": ["Hope", "Optimism"],
    "feel-good": ["Hope", "Kindness"],
    "heartwarming": ["Family bonds", "Friendship"],
    "space": ["Space exploration"],
    "robot": ["Artificial Intelligence", "Technology"],
    "ai": ["Artificial Intelligence"],
    "survival": ["Survival"],
}

FAMILY_WORDS = ("family", "kids", "kid", "children", "child", "daughter", "son")

# 否定短语 -> (排除标签, 回避主题)
AVOIDANCE_PATTERNS: List[tuple] = [
    (r"\b(?:not too|not|no|non|without)[\s-]+(?:violent|violence|gore|gory)\b", ["Horror"], ["Violence", "Gore"]),
    (r"\b(?:not too|not|no|without)[\s-]+(?:scary|horror|frightening)\b", ["Horror"], ["Fear"]),
    (r"\b(?:not too|not|no|without)[\s-]+(?:sad|depressing|dark)\b", [], ["Grief", "Future dystopia"]),
    (r"\b(?:not too|not|no|without)[\s-]+(?:romance|romantic|cheesy)\b", ["Romance"], ["Predictable plots"]),
]


def _clean_list(values: Optional[Iterable[Any]]) -> List[str]:
    """去空、去重并保持顺序"""
    ordered: List[str] = []
    seen = set()
    for value in values or []:
        text = str(value or "").strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        ordered.append(text)
    return ordered


class BaseCriteriaExtractor(ABC):
    """需求解析器抽象基类"""

    @abstractmethod
    async def extract(self, text: str) -> Criteria:
        """
        解析自然语言请求

        Args:
            text: 用户请求

        Returns:
            Criteria

        Raises:
            CriteriaExtractionError: 无法解析时 (对本次运行是致命错误)
        """
        pass


class KeywordCriteriaExtractor(BaseCriteriaExtractor):
    """
    基于关键词表的确定性解析器
    无需 LLM，用于离线运行与测试
    """

    async def extract(self, text: str) -> Criteria:
        request = str(text or "").strip()
        if not request:
            raise CriteriaExtractionError("Empty request, nothing to extract")

        lowered = request.lower()
        excluded_tags: List[str] = []
        avoided_themes: List[str] = []
        negated_spans = []
        for pattern, tags, themes in AVOIDANCE_PATTERNS:
            for match in re.finditer(pattern, lowered):
                negated_spans.append(match.span())
                excluded_tags.extend(tags)
                avoided_themes.extend(themes)

        def _negated(position: int) -> bool:
            return any(start <= position < end for start, end in negated_spans)

        target_tags: List[str] = []
        for keyword, tag in TAG_KEYWORDS.items():
            for match in re.finditer(rf"\b{re.escape(keyword)}\b", lowered):
                if _negated(match.start()):
                    continue
                target_tags.append(tag)

        preferred_themes: List[str] = []
        for keyword, themes in THEME_KEYWORDS.items():
            if re.search(rf"\b{re.escape(keyword)}\b", lowered):
                preferred_themes.extend(themes)

        suitable_only = any(re.search(rf"\b{word}\b", lowered) for word in FAMILY_WORDS)
        if suitable_only:
            target_tags.append("Family")
            excluded_tags.append("Horror")

        target_tags = [tag for tag in _clean_list(target_tags) if tag not in excluded_tags]
        preferred_themes = _clean_list(preferred_themes)

        criteria = Criteria(
            original_request=request,
            target_tags=target_tags,
            excluded_tags=_clean_list(excluded_tags),
            audience="family" if suitable_only else "general",
            suitable_only=suitable_only,
            preferred_themes=preferred_themes,
            avoided_themes=_clean_list(avoided_themes),
            search_keywords=_clean_list(
                [tag.lower() for tag in target_tags] + [theme.lower() for theme in preferred_themes]
            ),
        )
        logger.info(f"[CriteriaAgent] Keyword criteria: tags={criteria.target_tags}")
        return criteria


class LLMCriteriaExtractor(BaseCriteriaExtractor):
    """
    基于 LLM 的解析器

    负责：
    1. 推断目标/排除类型
    2. 推断受众与家庭适宜性
    3. 生成检索关键词
    """

    def __init__(
        self,
        llm: Optional[BaseLLM] = None,
        token_tracker: Optional[TokenTracker] = None,
    ):
        self.llm = llm or get_llm()
        self.token_tracker = token_tracker

    async def extract(self, text: str) -> Criteria:
        request = str(text or "").strip()
        if not request:
            raise CriteriaExtractionError("Empty request, nothing to extract")

        prompt = f'Viewer request: "{request}"'
        try:
            parsed, response = await self.llm.ajson(prompt, system_prompt=CRITERIA_SYSTEM_PROMPT)
        except LLMError as e:
            raise CriteriaExtractionError(
                f"Criteria extraction failed: {e.message}",
                {"provider": e.provider},
            ) from e

        if self.token_tracker is not None:
            self.token_tracker.add_response(
                response.usage,
                operation="criteria-extraction",
                prompt_text=CRITERIA_SYSTEM_PROMPT + prompt,
                response_text=response.content,
            )

        if not parsed:
            raise CriteriaExtractionError(
                "Criteria extraction returned no JSON",
                {"response": response.content[:200]},
            )

        return self._to_criteria(request, parsed)

    @staticmethod
    def _to_criteria(request: str, parsed: Dict[str, Any]) -> Criteria:
        excluded_tags = _clean_list(parsed.get("excluded_tags"))
        target_tags = [
            tag for tag in _clean_list(parsed.get("target_tags"))
            if tag not in excluded_tags
        ]
        audience = str(parsed.get("audience") or "general").strip().lower() or "general"
        suitable_only = bool(parsed.get("suitable_only", audience in ("child", "family")))
        keywords = _clean_list(parsed.get("search_keywords")) or [tag.lower() for tag in target_tags]

        return Criteria(
            original_request=request,
            target_tags=target_tags,
            excluded_tags=excluded_tags,
            audience=audience,
            suitable_only=suitable_only,
            preferred_themes=_clean_list(parsed.get("preferred_themes")),
            avoided_themes=_clean_list(parsed.get("avoided_themes")),
            search_keywords=keywords,
        )
