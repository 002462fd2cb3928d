"""Tests for the enrichment rate limiter."""

from __future__ import annotations

import threading

import pytest

from storage import EnrichmentRateLimiter


def test_limiter_refuses_after_max_calls_until_reset() -> None:
    limiter = EnrichmentRateLimiter(max_calls=3)

    assert [limiter.can_call() for _ in range(3)] == [True, True, True]
    assert limiter.can_call() is False
    assert limiter.can_call() is False
    assert limiter.remaining == 0

    limiter.reset()

    assert limiter.remaining == 3
    assert limiter.can_call() is True


def test_limiter_with_zero_budget_never_allows() -> None:
    limiter = EnrichmentRateLimiter(max_calls=0)
    assert limiter.can_call() is False


def test_limiter_rejects_negative_budget() -> None:
    with pytest.raises(ValueError):
        EnrichmentRateLimiter(max_calls=-1)


def test_limiter_is_exact_under_concurrent_callers() -> None:
    limiter = EnrichmentRateLimiter(max_calls=10)
    granted = []
    lock = threading.Lock()

    def _worker() -> None:
        for _ in range(5):
            allowed = limiter.can_call()
            with lock:
                granted.append(allowed)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(granted) == 10
    assert limiter.used == 10
