"""
Enrichment Rate Limiter
外部补全服务的单次运行调用预算
"""
import threading


class EnrichmentRateLimiter:
    """
    按运行计数的调用上限

    can_call() 在预算内时消耗一个单位并返回 True；
    耗尽后一律返回 False，直到 reset()。从不阻塞。
    """

    def __init__(self, max_calls: int = 10):
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        self.max_calls = max_calls
        self._used = 0
        self._lock = threading.Lock()

    def can_call(self) -> bool:
        with self._lock:
            if self._used >= self.max_calls:
                return False
            self._used += 1
            return True

    @property
    def remaining(self) -> int:
        with self._lock:
            return self.max_calls - self._used

    @property
    def used(self) -> int:
        with self._lock:
            return self._used

    def reset(self) -> None:
        with self._lock:
            self._used = 0
