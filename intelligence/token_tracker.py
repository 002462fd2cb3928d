"""
Token Tracker
按操作累计 LLM token 用量。
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int
    output_tokens: int
    operation: str
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def estimate_tokens(text: str) -> int:
    """Rough token estimate (chars / 4) when the provider reports no usage."""
    return (len(str(text or "")) + 3) // 4


class TokenTracker:
    """Thread-safe accumulator of per-operation token usage."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._usage: List[TokenUsage] = []

    def add_usage(self, input_tokens: int, output_tokens: int, operation: str = "llm-call") -> None:
        entry = TokenUsage(
            input_tokens=max(0, int(input_tokens or 0)),
            output_tokens=max(0, int(output_tokens or 0)),
            operation=str(operation or "llm-call").strip() or "llm-call",
        )
        with self._lock:
            self._usage.append(entry)

    def add_response(
        self,
        usage: Optional[Dict[str, int]],
        *,
        operation: str,
        prompt_text: str = "",
        response_text: str = "",
    ) -> None:
        """Record an LLMResponse.usage dict, estimating from text when it is empty."""
        usage = dict(usage or {})
        input_tokens = usage.get("prompt_tokens")
        output_tokens = usage.get("completion_tokens")
        if not input_tokens and not output_tokens:
            input_tokens = estimate_tokens(prompt_text)
            output_tokens = estimate_tokens(response_text)
        self.add_usage(input_tokens or 0, output_tokens or 0, operation)

    @property
    def total_tokens(self) -> int:
        with self._lock:
            return sum(entry.total_tokens for entry in self._usage)

    def breakdown(self) -> Dict[str, Any]:
        with self._lock:
            entries = list(self._usage)
        by_operation: Dict[str, int] = {}
        for entry in entries:
            by_operation[entry.operation] = by_operation.get(entry.operation, 0) + entry.total_tokens
        return {
            "total_tokens": sum(entry.total_tokens for entry in entries),
            "input_tokens": sum(entry.input_tokens for entry in entries),
            "output_tokens": sum(entry.output_tokens for entry in entries),
            "operation_count": len(entries),
            "by_operation": by_operation,
        }

    def reset(self) -> None:
        with self._lock:
            self._usage.clear()
