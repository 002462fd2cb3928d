"""
Agents Module
需求解析、条目评分与归一化
"""
from .criteria_agent import BaseCriteriaExtractor, KeywordCriteriaExtractor, LLMCriteriaExtractor
from .scoring_agent import BaseItemScorer, LLMItemScorer
from .heuristics import HeuristicItemScorer, heuristic_evaluation, tag_alignment
from .normalizer import ItemNormalizer

__all__ = [
    "BaseCriteriaExtractor",
    "KeywordCriteriaExtractor",
    "LLMCriteriaExtractor",
    "BaseItemScorer",
    "LLMItemScorer",
    "HeuristicItemScorer",
    "heuristic_evaluation",
    "tag_alignment",
    "ItemNormalizer",
]
