"""
LLM Module
多供应商 LLM 抽象层
"""
from .base import BaseLLM, LLMResponse, Message, MessageRole, extract_json
from .openai_llm import OpenAILLM
from .anthropic_llm import AnthropicLLM
from .factory import get_llm, has_llm_credentials

__all__ = [
    "BaseLLM",
    "LLMResponse",
    "Message",
    "MessageRole",
    "extract_json",
    "OpenAILLM",
    "AnthropicLLM",
    "get_llm",
    "has_llm_credentials",
]
